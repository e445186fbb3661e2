import re
import time
from typing import Optional, Any
from datetime import datetime, timezone
from collections.abc import Iterator, Mapping, MutableMapping
import orjson


_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_MAX_NAME_LENGTH = 255


def validate_name(name: str) -> None:
    """Validate a secret name.

    Names are exported as shell variables by the CLI, so they follow the
    same rules.

    Raises:
        ValueError: If name is empty, too long or not a valid identifier.
    """
    if not isinstance(name, str) or not name:
        raise ValueError("Secret name cannot be empty")
    if len(name) > _MAX_NAME_LENGTH:
        raise ValueError(
            f"Secret name cannot exceed {_MAX_NAME_LENGTH} characters"
        )
    if not _NAME_PATTERN.match(name):
        raise ValueError(
            f"Invalid secret name {name!r}: use letters, digits and '_', "
            "not starting with a digit"
        )


class SecretStore(MutableMapping[str, str]):
    """Secret name to value mapping.

    Plaintext contents of the vault. It only ever lives in memory: the
    vault serializes it with ``encode()`` and encrypts the result before
    anything reaches the disk.
    """

    def __init__(
        self,
        data: Optional[Mapping[str, str]] = None,
        created: Optional[int] = None,
    ) -> None:
        self._data: dict[str, str] = {}
        self._changed = False
        self._created = int(time.time()) if created is None else created
        if data:
            for name, value in data.items():
                self._set_value(name, value)
            self._changed = False

    def __repr__(self) -> str:
        # values are never shown
        return (
            f'<SecretStore [created:{self.created_at.isoformat()}] '
            f'names={sorted(self._data)!r}>'
        )

    def _set_value(self, name: str, value: str) -> None:
        validate_name(name)
        if not isinstance(value, str):
            raise TypeError(
                f"Secret value for {name!r} must be str, "
                f"got {type(value).__name__}"
            )
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            raise ValueError(
                f"Secret value for {name!r} is not valid UTF-8 text"
            ) from None
        if self._data.get(name) != value:
            self._data[name] = value
            self._changed = True

    # --- Properties ---

    @property
    def created(self) -> int:
        return self._created

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self._created, timezone.utc)

    @property
    def empty(self) -> bool:
        return not bool(self._data)

    @property
    def is_changed(self) -> bool:
        return self._changed

    @is_changed.setter
    def is_changed(self, value: bool) -> None:
        self._changed = value

    def names(self) -> list[str]:
        return sorted(self._data)

    def copy(self) -> "SecretStore":
        return SecretStore(self._data, created=self._created)

    def merge(self, secrets: Mapping[str, str]) -> None:
        """Replace or insert every entry of ``secrets``."""
        for name, value in secrets.items():
            self._set_value(name, value)

    # --- Magic Methods ---

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._set_value(key, value)

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._changed = True

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretStore):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    # --- Serialization ---

    def encode(self) -> bytes:
        """encode.

            Serialize the store to its canonical form.

        Names are sorted so the same contents always produce the same bytes.

        Returns:
            bytes: orjson document ``{"created": int, "secrets": {...}}``.
        """
        return orjson.dumps(
            {"created": self._created, "secrets": self._data},
            option=orjson.OPT_SORT_KEYS,
        )

    @classmethod
    def decode(cls, payload: bytes) -> "SecretStore":
        """decode.

            Rebuild a store from ``encode()`` output.
        Args:
            payload (bytes): serialized store.

        Raises:
            ValueError: payload is not a well-formed serialized store.

        Returns:
            SecretStore: the restored store, marked unchanged.
        """
        try:
            document: Any = orjson.loads(payload)
        except orjson.JSONDecodeError as err:
            raise ValueError(f"Malformed secret store: {err}") from err
        if not isinstance(document, dict) or set(document) != {"created", "secrets"}:
            raise ValueError("Malformed secret store: unexpected document shape")
        created = document["created"]
        secrets = document["secrets"]
        if not isinstance(created, int) or isinstance(created, bool):
            raise ValueError("Malformed secret store: invalid timestamp")
        if not isinstance(secrets, dict):
            raise ValueError("Malformed secret store: secrets must be an object")
        try:
            return cls(secrets, created=created)
        except (TypeError, ValueError) as err:
            raise ValueError(f"Malformed secret store: {err}") from err
