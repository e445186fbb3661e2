import pytest

from wpdocker.vault import CredentialVault, VaultConfig

# Fast KDF for tests; production default is 600k iterations.
TEST_ITERATIONS = 1_000


@pytest.fixture
def vault_config(tmp_path):
    """Vault configuration rooted in a temporary directory."""
    return VaultConfig(
        config_dir=tmp_path / "wp-docker",
        kdf_iterations=TEST_ITERATIONS,
    )


@pytest.fixture
def vault(vault_config):
    """Fresh vault with no file on disk yet."""
    return CredentialVault(vault_config)


@pytest.fixture
def unlocked_vault(vault):
    """Vault created with PIN 1234 holding two secrets."""
    vault.store("CLOUDFLARE_API_TOKEN", "cf-token", "1234")
    vault.store("GITHUB_TOKEN", "ghp_example", "1234")
    return vault
