"""
Atomic replacement of the live vault file.

``LiveFileSlot`` holds the live path for the duration of one write:

    with LiveFileSlot(path) as slot:
        slot.commit(blob)

On entry the current file (if any) is copied to ``<name>.backup``. ``commit``
writes the new content to a temporary file in the same directory, fsyncs it
and renames it over the live path. On a clean exit the backup is removed; on
any exception, including ``KeyboardInterrupt`` and SIGTERM, the temporary is
removed and, if the live path was already replaced, the backup is renamed
back. The live file therefore ends every write either fully updated or
exactly as it was. A SIGTERM that arrives during the rollback is held and
delivered to the previous handler once the slot is released.
"""
import os
import signal
import shutil
import logging
import tempfile
import threading
from pathlib import Path
from typing import Optional

from .exceptions import StoreInterrupted, VaultIOError

logger = logging.getLogger("wpdocker.vault")

BACKUP_SUFFIX = ".backup"
TEMP_SUFFIX = ".tmp"
FILE_MODE = 0o600
DIR_MODE = 0o700


def backup_path(path: Path) -> Path:
    return path.with_name(path.name + BACKUP_SUFFIX)


def temp_prefix(path: Path) -> str:
    return f".{path.name}."


def stale_temporaries(path: Path) -> list[Path]:
    """Temporary files left in the vault directory by an interrupted write."""
    if not path.parent.is_dir():
        return []
    prefix = temp_prefix(path)
    return sorted(
        p for p in path.parent.iterdir()
        if p.name.startswith(prefix) and p.name.endswith(TEMP_SUFFIX)
    )


def ensure_directory(directory: Path) -> None:
    """Create the vault directory owner-only, or tighten an existing one."""
    try:
        directory.mkdir(parents=True, exist_ok=True, mode=DIR_MODE)
        os.chmod(directory, DIR_MODE)
    except OSError as err:
        raise VaultIOError("Cannot prepare vault directory", directory) from err


def fsync_directory(directory: Path) -> None:
    """Flush a rename to disk. Not every platform can open directories."""
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def unlink_quietly(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


def _raise_interrupted(signum, frame):
    raise StoreInterrupted(signum)


class LiveFileSlot:
    """Scoped ownership of the live vault path with rollback on any exit."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.backup = backup_path(self.path)
        self._temp: Optional[Path] = None
        self._had_original = False
        self._replaced = False
        self._previous_handler = None
        self._handler_installed = False
        self._deferred_signal = None

    # ------------------------------------------------------------------
    # Signal handling
    # ------------------------------------------------------------------

    def _install_signal_handler(self) -> None:
        # signal.signal() only works from the main thread
        if threading.current_thread() is not threading.main_thread():
            return
        self._previous_handler = signal.signal(signal.SIGTERM, _raise_interrupted)
        self._handler_installed = True

    def _defer_signal(self, signum, frame) -> None:
        self._deferred_signal = signum

    def _hold_signals(self) -> None:
        """Record SIGTERM instead of raising while the rollback runs."""
        if self._handler_installed:
            signal.signal(signal.SIGTERM, self._defer_signal)

    def _restore_signal_handler(self) -> None:
        if self._handler_installed:
            signal.signal(signal.SIGTERM, self._previous_handler)
            self._handler_installed = False
        if self._deferred_signal is not None:
            signum, self._deferred_signal = self._deferred_signal, None
            signal.raise_signal(signum)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "LiveFileSlot":
        ensure_directory(self.path.parent)
        self._install_signal_handler()
        try:
            if self.path.exists():
                shutil.copy2(self.path, self.backup)
                self._had_original = True
                logger.debug("Backed up vault file to %s", self.backup)
        except BaseException as err:
            # a partial copy is not a backup
            unlink_quietly(self.backup)
            self._restore_signal_handler()
            if isinstance(err, OSError):
                raise VaultIOError("Cannot back up vault file", self.path) from err
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                if self._had_original:
                    unlink_quietly(self.backup)
                return False
            logger.warning(
                "Vault write failed (%s), rolling back %s",
                exc_type.__name__, self.path,
            )
            self._hold_signals()
            self._rollback()
            return False
        finally:
            self._discard_temp()
            self._restore_signal_handler()

    def _rollback(self) -> None:
        if self._replaced:
            if self._had_original:
                os.replace(self.backup, self.path)
                logger.info("Restored previous vault file %s", self.path)
            else:
                unlink_quietly(self.path)
        elif self._had_original:
            unlink_quietly(self.backup)
        fsync_directory(self.path.parent)

    def _discard_temp(self) -> None:
        if self._temp is not None:
            unlink_quietly(self._temp)
            self._temp = None

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(self, data: bytes) -> None:
        """Write ``data`` to a temporary file and rename it over the live path.

        Raises:
            VaultIOError: If writing or renaming fails.
        """
        try:
            fd, name = tempfile.mkstemp(
                prefix=temp_prefix(self.path),
                suffix=TEMP_SUFFIX,
                dir=self.path.parent,
            )
        except OSError as err:
            raise VaultIOError("Cannot create temporary vault file", self.path.parent) from err
        self._temp = Path(name)
        try:
            with os.fdopen(fd, "wb") as fp:
                fp.write(data)
                fp.flush()
                os.fsync(fp.fileno())
            os.chmod(self._temp, FILE_MODE)
        except OSError as err:
            raise VaultIOError("Cannot write temporary vault file", self._temp) from err
        try:
            os.replace(self._temp, self.path)
        except OSError as err:
            raise VaultIOError("Cannot replace vault file", self.path) from err
        self._replaced = True
        self._temp = None
        fsync_directory(self.path.parent)
        logger.debug("Replaced vault file %s (%d bytes)", self.path, len(data))
