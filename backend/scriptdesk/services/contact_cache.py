"""
Local fallback cache for contact form submissions.

Every submission is mirrored into `{DATA_DIR}/contacts_cache.json`. When the
database write fails the entry stays `synced: false` and reconcile() inserts
it later. After a successful reconcile, synced entries cached before that
moment are pruned. The database stays authoritative; the cache only fills
the gap for writes that never landed.
"""
from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from scriptdesk.models import Contact, ContactStatus
from scriptdesk.settings import get_settings

logger = logging.getLogger(__name__)

CACHE_FILENAME = "contacts_cache.json"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ContactCache:
    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {"last_sync_at": None, "entries": []}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"[contacts] unreadable cache {self.path}, starting empty: {exc}")
            return {"last_sync_at": None, "entries": []}
        data.setdefault("last_sync_at", None)
        data.setdefault("entries", [])
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def entries(self) -> list[dict[str, Any]]:
        return list(self._load()["entries"])

    def unsynced(self) -> list[dict[str, Any]]:
        return [e for e in self.entries() if not e.get("synced")]

    @property
    def last_sync_at(self) -> str | None:
        return self._load()["last_sync_at"]

    def add(self, payload: dict[str, Any], db_id: int | None = None) -> dict[str, Any]:
        data = self._load()
        entry = {
            "local_id": f"local-{uuid.uuid4().hex[:12]}",
            "db_id": db_id,
            "synced": db_id is not None,
            "cached_at": _now().isoformat(),
            "status": ContactStatus.new.value,
            **{k: payload.get(k) for k in ("name", "email", "phone", "subject", "message")},
        }
        data["entries"].append(entry)
        self._save(data)
        return entry

    def update_status(self, ident: int | str, status: str) -> bool:
        data = self._load()
        hit = False
        for entry in data["entries"]:
            if entry.get("db_id") == ident or entry.get("local_id") == ident:
                entry["status"] = status
                hit = True
        if hit:
            self._save(data)
        return hit

    def remove(self, ident: int | str) -> bool:
        data = self._load()
        before = len(data["entries"])
        data["entries"] = [
            e for e in data["entries"] if e.get("db_id") != ident and e.get("local_id") != ident
        ]
        if len(data["entries"]) == before:
            return False
        self._save(data)
        return True

    def prune(self, before: datetime) -> int:
        data = self._load()
        keep = []
        for entry in data["entries"]:
            cached_at = datetime.fromisoformat(entry["cached_at"])
            if entry.get("synced") and cached_at <= before:
                continue
            keep.append(entry)
        removed = len(data["entries"]) - len(keep)
        if removed:
            data["entries"] = keep
            self._save(data)
        return removed

    async def reconcile(self, session: AsyncSession) -> dict[str, int]:
        """Push unsynced entries to the database, then prune synced ones."""
        pushed = 0
        for entry in self.unsynced():
            contact = Contact(
                name=entry["name"],
                email=entry["email"],
                phone=entry.get("phone"),
                subject=entry.get("subject"),
                message=entry["message"],
                status=entry.get("status") or ContactStatus.new.value,
            )
            session.add(contact)
            try:
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception(f"[contacts] reconcile stopped at {entry['local_id']}")
                return {"pushed": pushed, "pruned": 0, "pending": len(self.unsynced())}
            await session.refresh(contact)
            self._mark_synced(entry["local_id"], contact.id)
            pushed += 1

        sync_time = _now()
        data = self._load()
        data["last_sync_at"] = sync_time.isoformat()
        self._save(data)
        pruned = self.prune(sync_time)
        logger.info(f"[contacts] reconcile pushed={pushed} pruned={pruned}")
        return {"pushed": pushed, "pruned": pruned, "pending": 0}

    def _mark_synced(self, local_id: str, db_id: int) -> None:
        data = self._load()
        for entry in data["entries"]:
            if entry["local_id"] == local_id:
                entry["synced"] = True
                entry["db_id"] = db_id
        self._save(data)


def get_contact_cache() -> ContactCache:
    return ContactCache(Path(get_settings().data_dir) / CACHE_FILENAME)
