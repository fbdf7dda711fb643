"""Key-value store backing the local variant.

Every write replaces the full value of a key; there are no partial or merge
writes. ``set_many`` replaces several keys in one write.
"""
import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import TransportError

logger = logging.getLogger("tuigram.store")

USERS_KEY = "users"
POSTS_KEY = "posts"
SESSION_KEY = "loggedInUserId"

COLLECTION_KEYS = (USERS_KEY, POSTS_KEY)


class Store:
    """Base class; subclasses provide ``_load`` and ``_save``."""

    def _load(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _save(self, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def get(self, key: str) -> Any:
        """Return the stored value, ``[]`` for a missing collection, else None."""
        data = self._load()
        if key not in data or data[key] is None:
            return [] if key in COLLECTION_KEYS else None
        return copy.deepcopy(data[key])

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def _load_for_write(self) -> Dict[str, Any]:
        return self._load()

    def set_many(self, values: Dict[str, Any]) -> None:
        data = self._load_for_write()
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = copy.deepcopy(value)
        self._save(data)

    def get_session_user_id(self) -> Optional[str]:
        value = self.get(SESSION_KEY)
        return str(value) if value else None

    def set_session_user_id(self, user_id: Optional[str]) -> None:
        self.set(SESSION_KEY, user_id or None)


class MemoryStore(Store):
    """In-process store. Nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def _load(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    def _save(self, data: Dict[str, Any]) -> None:
        self._data = copy.deepcopy(data)


class JsonFileStore(Store):
    """All keys in a single JSON document on disk.

    A file that cannot be parsed reads as empty. Before the first write over
    it, the damaged file is moved aside to ``<name>.corrupt`` so nothing it
    held is lost. A file that cannot be read at all refuses writes.
    """

    def __init__(self, path):
        self.path = Path(path)

    @property
    def corrupt_path(self) -> Path:
        return self.path.with_name(self.path.name + ".corrupt")

    def _read(self) -> Dict[str, Any]:
        """Parse the file; raises OSError or ValueError when that fails."""
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("top level is not an object")
        return data

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return self._read()
        except (OSError, ValueError) as e:
            logger.warning("store file %s is unreadable, starting empty: %s", self.path, e)
            return {}

    def _load_for_write(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return self._read()
        except OSError as e:
            logger.error("store file %s could not be read, refusing to write: %s", self.path, e)
            raise TransportError("Could not read the data file; nothing was saved.") from e
        except ValueError as e:
            os.replace(self.path, self.corrupt_path)
            logger.warning(
                "store file %s is damaged (%s), moved it to %s", self.path, e, self.corrupt_path
            )
            return {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a sibling temp file and swap it in so readers never see half a file.
        fd, tmp_name = tempfile.mkstemp(
            prefix=self.path.name + ".", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
