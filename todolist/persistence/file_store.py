from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

from todolist.errors import PersistenceError

from .interface import PreferenceStore

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class FilePreferenceStore(PreferenceStore):
    """JSON-file store: one ``<key>.json`` file per key under a directory.

    Writes go to a temp file in the same directory and are moved into place
    with ``os.replace`` so a crash never leaves a half-written snapshot.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._dir = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, key: str) -> Path:
        safe = _UNSAFE_KEY_CHARS.sub("_", key.strip()) or "_"
        return self._dir / f"{safe}.json"

    def save(self, snapshot: bytes, key: str) -> None:
        target = self.path_for(key)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.stem}.", dir=self._dir)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(snapshot)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"failed to write {target}: {exc}") from exc

    def load(self, key: str) -> bytes | None:
        target = self.path_for(key)
        try:
            return target.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(f"failed to read {target}: {exc}") from exc


__all__ = ["FilePreferenceStore"]
