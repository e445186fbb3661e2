"""
Vault Crypto Core — Key derivation, encryption/decryption of the secret store.

Container layout of an encrypted vault file:
    [magic 4B "WPDV"][version 1B][cipher id 1B][iterations 4B uint32 BE]
    [salt 16B][nonce 12B][encrypted_payload + tag 16B]

The 38-byte header is bound to the ciphertext as AEAD associated data, so
tampering with the KDF parameters is detected like any other corruption.

Security Note:
    Never log PINs, plaintext or ciphertext values.
    Salt and nonce are fresh per encryption; the same PIN never reuses a key.
"""
import os
import struct
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..data import SecretStore
from ..conf import DEFAULT_KDF_ITERATIONS
from .exceptions import EncryptionError, WrongPinOrCorrupt

logger = logging.getLogger("wpdocker.vault")

MAGIC = b"WPDV"
FORMAT_VERSION = 1
SALT_SIZE = 16
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256 / ChaCha20

# Upper bound on the iteration count accepted from a file header.
MAX_ITERATIONS = 10_000_000

_HEADER = struct.Struct("!4sBBI")
HEADER_SIZE = _HEADER.size + SALT_SIZE + NONCE_SIZE

CIPHERS: dict[str, tuple[int, type]] = {
    "aesgcm": (1, AESGCM),
    "chacha20": (2, ChaCha20Poly1305),
}
_CIPHERS_BY_ID = {cid: cls for cid, cls in CIPHERS.values()}


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(pin: str, salt: bytes, iterations: int = DEFAULT_KDF_ITERATIONS) -> bytes:
    """Derive a 32-byte encryption key from a PIN using PBKDF2-HMAC-SHA256.

    Args:
        pin: User PIN.
        salt: Random salt stored in the vault header.
        iterations: PBKDF2 iteration count.

    Returns:
        32-byte derived key.
    """
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(pin.encode("utf-8"))
    except (TypeError, ValueError) as err:
        raise EncryptionError(f"Key derivation failed: {err}") from err


# ---------------------------------------------------------------------------
# Container helpers
# ---------------------------------------------------------------------------

def _pack_header(cipher_id: int, iterations: int, salt: bytes, nonce: bytes) -> bytes:
    return _HEADER.pack(MAGIC, FORMAT_VERSION, cipher_id, iterations) + salt + nonce


def _unpack_header(blob: bytes) -> tuple[type, int, bytes, bytes, bytes]:
    """Split a vault blob into (cipher_cls, iterations, salt, nonce, header).

    Raises:
        WrongPinOrCorrupt: If the header is truncated or not a vault header.
    """
    if len(blob) < HEADER_SIZE + TAG_SIZE:
        logger.debug("Vault blob too short: %d bytes", len(blob))
        raise WrongPinOrCorrupt()
    magic, version, cipher_id, iterations = _HEADER.unpack_from(blob)
    if magic != MAGIC or version != FORMAT_VERSION:
        logger.debug("Vault blob has unknown magic/version")
        raise WrongPinOrCorrupt()
    cipher_cls = _CIPHERS_BY_ID.get(cipher_id)
    if cipher_cls is None or not 1 <= iterations <= MAX_ITERATIONS:
        logger.debug("Vault blob has invalid cipher id or iteration count")
        raise WrongPinOrCorrupt()
    offset = _HEADER.size
    salt = blob[offset:offset + SALT_SIZE]
    nonce = blob[offset + SALT_SIZE:HEADER_SIZE]
    return cipher_cls, iterations, salt, nonce, blob[:HEADER_SIZE]


# ---------------------------------------------------------------------------
# Store encryption
# ---------------------------------------------------------------------------

def encrypt_store(
    store: SecretStore,
    pin: str,
    iterations: int = DEFAULT_KDF_ITERATIONS,
    cipher_backend: str = "aesgcm",
) -> bytes:
    """Serialize and encrypt a secret store under a PIN.

    An empty store is valid and produces a normal vault blob.

    Args:
        store: Secrets to encrypt.
        pin: User PIN.
        iterations: PBKDF2 iteration count, recorded in the header.
        cipher_backend: ``aesgcm`` or ``chacha20``.

    Returns:
        Self-describing vault blob.

    Raises:
        EncryptionError: If the cipher or KDF fails.
    """
    try:
        cipher_id, cipher_cls = CIPHERS[cipher_backend]
    except KeyError:
        raise EncryptionError(f"Unsupported cipher backend: {cipher_backend}") from None
    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    key = derive_key(pin, salt, iterations)
    try:
        header = _pack_header(cipher_id, iterations, salt, nonce)
        ct = cipher_cls(key).encrypt(nonce, store.encode(), header)
    except (struct.error, TypeError, ValueError, OverflowError) as err:
        raise EncryptionError(f"Encryption failed: {err}") from err
    return header + ct


def decrypt_store(blob: bytes, pin: str) -> SecretStore:
    """Decrypt a vault blob and rebuild the secret store.

    The AEAD tag is verified in constant time by the cipher implementation.
    A wrong PIN, a flipped byte and a malformed payload all raise the same
    error.

    Args:
        blob: Output of ``encrypt_store``.
        pin: User PIN.

    Returns:
        The stored secrets.

    Raises:
        WrongPinOrCorrupt: If authentication or deserialization fails.
    """
    cipher_cls, iterations, salt, nonce, header = _unpack_header(blob)
    try:
        pin.encode("utf-8")
    except UnicodeEncodeError:
        # no stored PIN can match it
        raise WrongPinOrCorrupt() from None
    key = derive_key(pin, salt, iterations)
    try:
        plaintext = cipher_cls(key).decrypt(nonce, blob[HEADER_SIZE:], header)
    except InvalidTag:
        raise WrongPinOrCorrupt() from None
    try:
        return SecretStore.decode(plaintext)
    except ValueError:
        # authentic but not a store; treat as corruption
        raise WrongPinOrCorrupt() from None
