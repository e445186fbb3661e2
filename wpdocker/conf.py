"""
WP Docker CLI settings.

Environment variable names, defaults and the well-known credential names the
deployment commands read from the vault.
"""
from pathlib import Path

# Environment variables
ENV_CONFIG_DIR = "WP_DOCKER_CONFIG_DIR"
ENV_VAULT_FILE = "WP_DOCKER_VAULT_FILE"
ENV_VAULT_ITERATIONS = "WP_DOCKER_VAULT_ITERATIONS"
ENV_VAULT_CIPHER = "WP_DOCKER_VAULT_CIPHER"
ENV_VAULT_MAX_ATTEMPTS = "WP_DOCKER_VAULT_MAX_ATTEMPTS"
ENV_VAULT_MIN_PIN = "WP_DOCKER_VAULT_MIN_PIN"

# Defaults
DEFAULT_CONFIG_DIR = Path.home() / ".wp-docker"
DEFAULT_VAULT_FILE = "credentials.vault"
DEFAULT_KDF_ITERATIONS = 600_000  # OWASP 2023 for PBKDF2-SHA256
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_PIN_LENGTH = 4

# Credentials consumed by the Cloudflare, GitHub and Komodo integrations
CLOUDFLARE_API_TOKEN = "CLOUDFLARE_API_TOKEN"
GITHUB_TOKEN = "GITHUB_TOKEN"
GITHUB_USERNAME = "GITHUB_USERNAME"
KOMODO_BASE_URL = "KOMODO_BASE_URL"
KOMODO_API_KEY = "KOMODO_API_KEY"
KOMODO_API_SECRET = "KOMODO_API_SECRET"

KNOWN_CREDENTIALS = (
    CLOUDFLARE_API_TOKEN,
    GITHUB_TOKEN,
    GITHUB_USERNAME,
    KOMODO_BASE_URL,
    KOMODO_API_KEY,
    KOMODO_API_SECRET,
)
