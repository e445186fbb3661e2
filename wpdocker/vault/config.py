"""
Vault Configuration — Validated settings for the credential vault.

Reads overrides from environment variables:
    WP_DOCKER_CONFIG_DIR = <directory holding the vault file>
    WP_DOCKER_VAULT_FILE = <vault file name>
    WP_DOCKER_VAULT_ITERATIONS = <PBKDF2 iterations>
    WP_DOCKER_VAULT_CIPHER = aesgcm | chacha20
    WP_DOCKER_VAULT_MAX_ATTEMPTS = <PIN attempts per unlock>
    WP_DOCKER_VAULT_MIN_PIN = <minimum PIN length>

Security Note:
    The retry limit and minimum PIN length are operator policy, not
    cryptographic parameters. The KDF iteration count is what makes
    offline guessing expensive.
"""
import os
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from ..conf import (
    ENV_CONFIG_DIR,
    ENV_VAULT_FILE,
    ENV_VAULT_ITERATIONS,
    ENV_VAULT_CIPHER,
    ENV_VAULT_MAX_ATTEMPTS,
    ENV_VAULT_MIN_PIN,
    DEFAULT_CONFIG_DIR,
    DEFAULT_VAULT_FILE,
    DEFAULT_KDF_ITERATIONS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MIN_PIN_LENGTH,
)

logger = logging.getLogger("wpdocker.vault")

SUPPORTED_CIPHERS = ("aesgcm", "chacha20")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    config_dir: Path = Field(default=DEFAULT_CONFIG_DIR)
    vault_file: str = Field(default=DEFAULT_VAULT_FILE)
    kdf_iterations: int = Field(default=DEFAULT_KDF_ITERATIONS, ge=1_000, le=10_000_000)
    cipher_backend: str = Field(default="aesgcm")
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1, le=10)
    min_pin_length: int = Field(default=DEFAULT_MIN_PIN_LENGTH, ge=1)

    @field_validator("config_dir")
    @classmethod
    def expand_config_dir(cls, v: Path) -> Path:
        """Expand ``~`` so the vault path never depends on the shell."""
        return v.expanduser()

    @field_validator("vault_file")
    @classmethod
    def validate_vault_file(cls, v: str) -> str:
        """Vault file must be a bare file name inside config_dir."""
        if not v or v in (".", "..") or Path(v).name != v:
            raise ValueError(f"vault_file must be a plain file name, got {v!r}")
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in SUPPORTED_CIPHERS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @property
    def vault_path(self) -> Path:
        return self.config_dir / self.vault_file

    @classmethod
    def from_env(cls, **overrides) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Args:
            overrides: Explicit values (e.g. from CLI options) that win over
                the environment. ``None`` values are ignored.

        Returns:
            Populated VaultConfig instance.
        """
        values: dict = {}
        env_map = {
            "config_dir": ENV_CONFIG_DIR,
            "vault_file": ENV_VAULT_FILE,
            "kdf_iterations": ENV_VAULT_ITERATIONS,
            "cipher_backend": ENV_VAULT_CIPHER,
            "max_attempts": ENV_VAULT_MAX_ATTEMPTS,
            "min_pin_length": ENV_VAULT_MIN_PIN,
        }
        for field, env_name in env_map.items():
            raw = os.environ.get(env_name)
            if raw:
                values[field] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        config = cls(**values)
        logger.debug(
            "Vault config: path=%s cipher=%s iterations=%d",
            config.vault_path, config.cipher_backend, config.kdf_iterations,
        )
        return config
