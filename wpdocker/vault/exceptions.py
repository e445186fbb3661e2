"""Vault exceptions."""
from typing import Optional


class VaultError(Exception):
    """Base class for credential vault errors."""


class WrongPinOrCorrupt(VaultError):
    """The vault could not be authenticated or parsed.

    Raised for a wrong PIN and for a damaged file alike; the two cases are
    indistinguishable by design of the AEAD tag check.
    """

    def __init__(self, message: str = "Wrong PIN or corrupted vault file"):
        super().__init__(message)


class TooManyAttempts(WrongPinOrCorrupt):
    """The unlock attempt budget was exhausted."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Wrong PIN or corrupted vault file ({attempts} failed attempt(s))"
        )


class VaultNotFound(VaultError):
    """No vault file exists yet (first run)."""


class VaultExists(VaultError):
    """A vault file already exists at the target path."""


class InvalidPin(VaultError, ValueError):
    """The PIN does not satisfy the configured policy."""


class EncryptionError(VaultError):
    """The cipher or key derivation failed."""


class StoreInterrupted(VaultError):
    """A termination signal arrived while the vault file was being replaced."""

    def __init__(self, signum: int):
        self.signum = signum
        super().__init__(f"Store interrupted by signal {signum}")


class VaultIOError(VaultError, OSError):
    """Filesystem failure while reading or replacing the vault file."""

    def __init__(self, message: str, path: Optional[object] = None):
        self.path = path
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message)
