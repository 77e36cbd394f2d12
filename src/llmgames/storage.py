"""
Durable key → JSON document store, one file per key.

Writes go to a temp file in the same directory and are renamed over the target,
so a crash mid-write leaves the previous document intact.
"""
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import PersistenceError

log = logging.getLogger("storage")

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_key(key: str) -> str:
    cleaned = _UNSAFE.sub("_", str(key)).strip(".")
    if not cleaned:
        raise PersistenceError(f"Unusable document key {key!r}", key=str(key))
    return cleaned


class JsonFileStore:
    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{_safe_key(key)}.json"

    def save(self, key: str, doc: Dict[str, Any]) -> None:
        path = self.path_for(key)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(doc, ensure_ascii=False, indent=2)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed writing {path}: {e}", key=key) from e
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        log.debug("Saved document %s", path)

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed reading {path}: {e}", key=key) from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Document {path} is not a JSON object", key=key)
        return data

    def keys(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))
