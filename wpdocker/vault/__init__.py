"""Credential Vault — PIN-encrypted storage for deployment API secrets.

Security Note (Threat Model):
    The vault protects secrets at rest between CLI runs. While a command
    runs, decrypted secrets and the PIN live in process memory; an attacker
    with access to the running process or arbitrary filesystem access during
    a run is out of scope.
"""

from .credential_vault import CredentialVault
from .config import VaultConfig
from .crypto import derive_key, encrypt_store, decrypt_store
from .exceptions import (
    VaultError,
    WrongPinOrCorrupt,
    TooManyAttempts,
    VaultNotFound,
    VaultExists,
    InvalidPin,
    EncryptionError,
    StoreInterrupted,
    VaultIOError,
)

__all__ = [
    "CredentialVault",
    "VaultConfig",
    "derive_key",
    "encrypt_store",
    "decrypt_store",
    "VaultError",
    "WrongPinOrCorrupt",
    "TooManyAttempts",
    "VaultNotFound",
    "VaultExists",
    "InvalidPin",
    "EncryptionError",
    "StoreInterrupted",
    "VaultIOError",
]
