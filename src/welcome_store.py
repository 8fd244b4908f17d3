# Copyright (c) 2025 Stephen Clau
#
# This file is part of IIROSE Room Plugins.
#
# IIROSE Room Plugins is dual-licensed:
#
# 1. GNU Affero General Public License v3.0 (AGPL-3.0)
#    See LICENSE file for full terms
#
# 2. Commercial License
#    For proprietary use without AGPL requirements
#    Contact: licensing@laudiversified.com
#
# SPDX-License-Identifier: AGPL-3.0-only OR Commercial

"""
Per-user welcome settings storage.

A record is keyed by user ID and holds the user's custom templates and
personal toggles. Unset fields are None:
- template None: never customized, fall back to the configured list
- template "": explicitly cleared, send nothing
- toggle None: enabled
"""

from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
import os
import tempfile
import threading
import yaml
import structlog

logger = structlog.get_logger()


@dataclass
class WelcomeRecord:
    """Stored welcome settings for one user."""

    uid: str
    welcome_msg: Optional[str] = None
    leave_msg: Optional[str] = None
    refresh_msg: Optional[str] = None
    add_enabled: Optional[bool] = None
    remove_enabled: Optional[bool] = None
    refresh_enabled: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize, dropping unset fields."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WelcomeRecord":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown welcome record fields: {sorted(unknown)}")
        if not data.get("uid"):
            raise ValueError("Welcome record requires a uid")
        return cls(**{**data, "uid": str(data["uid"])})


RECORD_FIELDS = frozenset(f.name for f in fields(WelcomeRecord)) - {"uid"}


class WelcomeStore(Protocol):
    """Minimal key-value contract used by the welcome plugin."""

    async def get(self, uid: str) -> Optional[WelcomeRecord]:
        ...

    async def upsert(self, uid: str, **changes: Any) -> WelcomeRecord:
        ...


def _apply_changes(record: WelcomeRecord, changes: Dict[str, Any]) -> WelcomeRecord:
    """Return a copy of record with changes applied; record itself is untouched."""
    unknown = set(changes) - RECORD_FIELDS
    if unknown:
        raise ValueError(f"Unknown welcome record fields: {sorted(unknown)}")
    return replace(record, **changes)


class MemoryWelcomeStore:
    """In-process store. Contents are lost on restart."""

    def __init__(self) -> None:
        self.records: Dict[str, WelcomeRecord] = {}

    async def get(self, uid: str) -> Optional[WelcomeRecord]:
        return self.records.get(str(uid))

    def _merged(self, uid: str, changes: Dict[str, Any]) -> WelcomeRecord:
        current = self.records.get(uid) or WelcomeRecord(uid=uid)
        return _apply_changes(current, changes)

    async def upsert(self, uid: str, **changes: Any) -> WelcomeRecord:
        uid = str(uid)
        record = self._merged(uid, changes)
        self.records[uid] = record
        return record


class YamlWelcomeStore(MemoryWelcomeStore):
    """Store persisted to a YAML file, rewritten atomically on every upsert."""

    def __init__(self, path: Path):
        """
        Initialize and load existing records.

        Args:
            path: YAML file holding a top-level 'users' mapping

        Raises:
            ValueError: If the file exists but has an unexpected shape
            yaml.YAMLError: If the file is not valid YAML
        """
        super().__init__()
        self.path = Path(path)
        self._write_lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            logger.info("welcome_store_not_found", path=str(self.path))
            return

        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"{self.path}: top level must be a mapping")

        users = data.get("users") or {}
        if not isinstance(users, dict):
            raise ValueError(f"{self.path}: 'users' must be a mapping")

        for uid, entry in users.items():
            entry = entry or {}
            if not isinstance(entry, dict):
                raise ValueError(f"{self.path}: entry for user {uid!r} must be a mapping")
            self.records[str(uid)] = WelcomeRecord.from_dict({**entry, "uid": str(uid)})

        logger.info("welcome_store_loaded", path=str(self.path), records=len(self.records))

    def _dump(self, records: Dict[str, WelcomeRecord]) -> None:
        payload = {
            "users": {
                uid: {k: v for k, v in record.to_dict().items() if k != "uid"}
                for uid, record in sorted(records.items())
            }
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._write_lock:
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    yaml.safe_dump(payload, f, allow_unicode=True, sort_keys=True)
                os.replace(tmp_name, self.path)
            except Exception:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

    async def upsert(self, uid: str, **changes: Any) -> WelcomeRecord:
        uid = str(uid)
        record = self._merged(uid, changes)
        # Memory only changes once the file has been replaced
        self._dump({**self.records, uid: record})
        self.records[uid] = record
        logger.debug("welcome_record_saved", uid=record.uid, fields=sorted(changes))
        return record
