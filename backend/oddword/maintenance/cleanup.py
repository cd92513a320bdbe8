"""Deletes stale rooms from the shared store.

Run once from cron or a scheduler::

    ODDWORD_STORE_URL=http://localhost:5000 oddword-cleanup
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from ..config import Config
from ..errors import GameError
from ..game.timer import now_ms
from ..store.base import Store, room_path
from ..store.socketio_client import SocketIOStore


log = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000


@dataclass
class CleanupReport:
    deleted: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)


def room_timestamp(data: dict) -> int | None:
    for key in ("createdAt", "startTime"):
        value = data.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value:
            return int(value)
    return None


def cleanup_old_rooms(store: Store, now: int | None = None, max_age_hours: int = 24) -> CleanupReport:
    if now is None:
        now = now_ms()
    cutoff = now - max_age_hours * HOUR_MS
    report = CleanupReport()

    rooms = store.once("rooms") or {}
    if not rooms:
        log.info("no rooms found")
        return report

    for code, data in rooms.items():
        data = data if isinstance(data, dict) else {}

        if not data.get("players"):
            log.info("deleting room %s (no players)", code)
            store.remove(room_path(code))
            report.deleted.append(code)
            continue

        created = room_timestamp(data)
        if created is None:
            log.warning("room %s has no timestamp, keeping it", code)
            report.kept.append(code)
            continue

        if created < cutoff:
            log.info("deleting room %s (age: %dh)", code, (now - created) // HOUR_MS)
            store.remove(room_path(code))
            report.deleted.append(code)
        else:
            report.kept.append(code)

    log.info("cleanup complete: deleted=%d kept=%d", len(report.deleted), len(report.kept))
    return report


def _open_store(url: str, timeout: float) -> Store:
    if not url:
        raise GameError("ODDWORD_STORE_URL is not set", code="missing_store_url")
    return SocketIOStore(url, timeout=timeout).connect()


def main(config: type[Config] = Config) -> int:
    load_dotenv(Path.cwd() / ".env")
    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = None
    try:
        # .env may have been loaded after Config was imported.
        url = os.environ.get("ODDWORD_STORE_URL", "") or config.STORE_URL
        store = _open_store(url, config.STORE_TIMEOUT_SEC)
        cleanup_old_rooms(store, max_age_hours=config.ROOM_MAX_AGE_HOURS)
    except GameError:
        log.exception("cleanup failed")
        return 1
    finally:
        if store is not None:
            store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
