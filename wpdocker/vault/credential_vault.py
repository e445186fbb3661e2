"""
CredentialVault — PIN-encrypted, file-backed storage for deployment secrets.

Provides the public API of the credential vault:
- ``setup(pin)`` — create an empty vault on first run
- ``unlock(pin)`` / ``unlock_with_retry(pin_source)`` — decrypt the vault
- ``store(name, value, pin)`` — read-merge-write one secret
- ``store_many(secrets, pin)`` / ``remove(name, pin)`` — batch update, delete
- ``export_all(pin)`` — decrypt everything for the caller's validation step
- ``recover()`` / ``destroy()`` / ``status()`` — lifecycle and cleanup

Security Note:
    Never log PINs, secret values or ciphertext. Only log secret names,
    paths and attempt counts. The PIN is passed per call and never kept on
    the vault object.
"""
import logging
from pathlib import Path
from typing import Callable, Optional
from collections.abc import Mapping

from ..data import SecretStore, validate_name
from .atomic import (
    LiveFileSlot,
    backup_path,
    fsync_directory,
    stale_temporaries,
    unlink_quietly,
)
from .config import VaultConfig
from .crypto import decrypt_store, encrypt_store
from .exceptions import (
    InvalidPin,
    TooManyAttempts,
    VaultExists,
    VaultIOError,
    VaultNotFound,
    WrongPinOrCorrupt,
)

logger = logging.getLogger("wpdocker.vault")

PinSource = Callable[[int], str]


class CredentialVault:
    """Encrypted credential vault bound to one file.

    The vault file holds the whole secret store encrypted under a key
    derived from the PIN. Every mutation decrypts the current file with the
    caller's PIN first, so a file whose PIN cannot be verified is never
    overwritten, then replaces it atomically through ``LiveFileSlot``.
    """

    def __init__(self, config: Optional[VaultConfig] = None):
        self._config = config or VaultConfig()
        self._path = self._config.vault_path

    def __repr__(self) -> str:
        return f"<CredentialVault path={str(self._path)!r} exists={self.exists}>"

    @property
    def config(self) -> VaultConfig:
        return self._config

    @property
    def path(self) -> Path:
        return self._path

    @property
    def exists(self) -> bool:
        return self._path.is_file()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_pin(self, pin: str) -> None:
        """Validate a new PIN against the configured policy.

        Raises:
            InvalidPin: If the PIN is empty, not UTF-8 encodable or shorter
                than min_pin_length.
        """
        if not isinstance(pin, str) or not pin:
            raise InvalidPin("PIN cannot be empty")
        try:
            pin.encode("utf-8")
        except UnicodeEncodeError:
            raise InvalidPin("PIN is not valid UTF-8 text") from None
        if len(pin) < self._config.min_pin_length:
            raise InvalidPin(
                f"PIN must be at least {self._config.min_pin_length} characters"
            )

    def _read_blob(self) -> bytes:
        try:
            return self._path.read_bytes()
        except FileNotFoundError:
            raise VaultNotFound(f"No vault found at {self._path}") from None
        except OSError as err:
            raise VaultIOError("Cannot read vault file", self._path) from err

    def _encrypt(self, secrets: SecretStore, pin: str) -> bytes:
        return encrypt_store(
            secrets,
            pin,
            iterations=self._config.kdf_iterations,
            cipher_backend=self._config.cipher_backend,
        )

    def _load(self, pin: str) -> SecretStore:
        """Decrypt the live file, or start an empty store if there is none."""
        if not self.exists:
            self._check_pin(pin)
            return SecretStore()
        return decrypt_store(self._read_blob(), pin)

    def _update(self, pin: str, mutate: Callable[[SecretStore], None]) -> SecretStore:
        """Read-merge-write protocol shared by every mutation.

        The current file is decrypted before anything is touched; a failed
        PIN check leaves the directory exactly as it was.
        """
        self.recover()
        secrets = self._load(pin)
        with LiveFileSlot(self._path) as slot:
            mutate(secrets)
            slot.commit(self._encrypt(secrets, pin))
        secrets.is_changed = False
        return secrets

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def setup(self, pin: str) -> SecretStore:
        """Create an empty vault protected by ``pin``.

        Raises:
            VaultExists: If a vault file already exists.
            InvalidPin: If the PIN does not satisfy the policy.
        """
        self.recover()
        if self.exists:
            raise VaultExists(f"A vault already exists at {self._path}")
        self._check_pin(pin)
        secrets = SecretStore()
        with LiveFileSlot(self._path) as slot:
            slot.commit(self._encrypt(secrets, pin))
        logger.info("Created credential vault at %s", self._path)
        return secrets

    def recover(self) -> list[str]:
        """Clean up after a write that was killed before it could roll back.

        A leftover backup is only authoritative when the live file is gone;
        otherwise the live file is always complete (it is only ever replaced
        by rename) and the backup is stale.

        Returns:
            Human-readable list of the actions taken.
        """
        actions: list[str] = []
        backup = backup_path(self._path)
        try:
            for temp in stale_temporaries(self._path):
                if unlink_quietly(temp):
                    actions.append(f"removed stale temporary {temp.name}")
            if backup.exists():
                if self.exists:
                    unlink_quietly(backup)
                    actions.append(f"removed stale backup {backup.name}")
                else:
                    backup.replace(self._path)
                    fsync_directory(self._path.parent)
                    actions.append(f"restored {self._path.name} from backup")
        except OSError as err:
            raise VaultIOError("Cannot recover vault directory", self._path.parent) from err
        for action in actions:
            logger.warning("Vault recovery: %s", action)
        return actions

    def destroy(self) -> bool:
        """Delete the vault file together with any backup or temporaries.

        Returns:
            True if a vault file was removed.
        """
        # leftovers first: a backup without a live file would be restored
        try:
            unlink_quietly(backup_path(self._path))
            for temp in stale_temporaries(self._path):
                unlink_quietly(temp)
            removed = unlink_quietly(self._path)
        except OSError as err:
            raise VaultIOError("Cannot delete vault file", self._path) from err
        if removed:
            logger.info("Destroyed credential vault at %s", self._path)
        return removed

    def status(self) -> dict:
        """Describe the vault without decrypting it."""
        backup = backup_path(self._path)
        return {
            "path": str(self._path),
            "exists": self.exists,
            "backup": backup.exists(),
            "temporaries": [p.name for p in stale_temporaries(self._path)],
        }

    # ------------------------------------------------------------------
    # Unlock
    # ------------------------------------------------------------------

    def unlock(self, pin: str) -> SecretStore:
        """Decrypt the vault with ``pin``. A single attempt; never writes
        the vault file.

        Raises:
            VaultNotFound: If there is no vault yet.
            WrongPinOrCorrupt: If the PIN is wrong or the file is damaged.
        """
        self.recover()
        try:
            secrets = decrypt_store(self._read_blob(), pin)
        except WrongPinOrCorrupt:
            logger.warning("Failed to unlock vault %s", self._path)
            raise
        logger.debug("Unlocked vault %s: %d secret(s)", self._path, len(secrets))
        return secrets

    def unlock_with_retry(
        self,
        pin_source: PinSource,
        max_attempts: Optional[int] = None,
    ) -> tuple[SecretStore, str]:
        """Unlock the vault, asking ``pin_source`` for a PIN on each attempt.

        Args:
            pin_source: Called with the 1-based attempt number, returns a PIN.
            max_attempts: Attempt budget; defaults to config.max_attempts.

        Returns:
            Tuple of (secrets, verified_pin).

        Raises:
            ValueError: If max_attempts is less than 1.
            VaultNotFound: If there is no vault yet.
            TooManyAttempts: If every attempt failed.
        """
        budget = self._config.max_attempts if max_attempts is None else max_attempts
        if budget < 1:
            raise ValueError(f"max_attempts must be at least 1, got {budget}")
        self.recover()
        if not self.exists:
            raise VaultNotFound(f"No vault found at {self._path}")
        for attempt in range(1, budget + 1):
            pin = pin_source(attempt)
            try:
                return self.unlock(pin), pin
            except WrongPinOrCorrupt:
                logger.info(
                    "Unlock attempt %d/%d failed for %s", attempt, budget, self._path,
                )
        raise TooManyAttempts(budget)

    def export_all(self, pin: str) -> SecretStore:
        """Decrypt and return every stored secret. Never writes."""
        return self.unlock(pin).copy()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def store(self, name: str, value: str, pin: str) -> SecretStore:
        """Encrypt and persist one secret, replacing any previous value.

        Args:
            name: Secret name (e.g. ``CLOUDFLARE_API_TOKEN``).
            value: Secret value.
            pin: PIN of the existing vault, or the new PIN on first run.

        Returns:
            The merged store as written.

        Raises:
            ValueError: If name is invalid.
            WrongPinOrCorrupt: If the existing vault cannot be decrypted.
            EncryptionError, VaultIOError: After the previous file has been
                restored.
        """
        validate_name(name)

        def merge(secrets: SecretStore) -> None:
            secrets.pop(name, None)
            secrets[name] = value

        secrets = self._update(pin, merge)
        logger.info("Vault store: key=%s path=%s", name, self._path)
        return secrets

    def store_many(self, secrets: Mapping[str, str], pin: str) -> SecretStore:
        """Merge several secrets in a single atomic replace."""
        for name in secrets:
            validate_name(name)
        merged = self._update(pin, lambda s: s.merge(secrets))
        logger.info(
            "Vault store: keys=%s path=%s", ",".join(sorted(secrets)), self._path,
        )
        return merged

    def remove(self, name: str, pin: str) -> SecretStore:
        """Delete one secret.

        Raises:
            VaultNotFound: If there is no vault yet.
            KeyError: If the secret is not stored; the file is untouched.
        """
        if not self.exists:
            raise VaultNotFound(f"No vault found at {self._path}")
        # KeyError inside the slot rolls back before anything is replaced
        secrets = self._update(pin, lambda s: s.__delitem__(name))
        logger.info("Vault remove: key=%s path=%s", name, self._path)
        return secrets

