"""One-way push of the local inventory to the remote mirror."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Optional

from .exceptions import AuthError, RemoteError
from .remote import RemoteMirror

logger = logging.getLogger(__name__)

RowsProvider = Callable[[], List[Mapping[str, Any]]]


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


class SyncOrchestrator:
    """Tracks sync status and pushes the full row set on every trigger.

    The automatic trigger skips silently without a remote session, and
    leaves the state untouched when there is nothing to push. The manual
    trigger signs in first. A trigger arriving while a push is in flight is
    ignored. Failures stay in ``error`` until the next trigger; the local
    inventory is never rolled back.
    """

    def __init__(self, mirror: RemoteMirror, rows_provider: RowsProvider) -> None:
        self.mirror = mirror
        self._rows_provider = rows_provider
        self._guard = Lock()
        self.status = SyncStatus.IDLE
        self.error: Optional[str] = None
        self.last_synced_at: Optional[datetime] = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "error": self.error,
            "last_synced_at": (
                None if self.last_synced_at is None else self.last_synced_at.isoformat()
            ),
        }

    def on_store_changed(self) -> SyncStatus:
        if not self._guard.acquire(blocking=False):
            logger.debug("Sync already in progress; ignoring trigger")
            return self.status
        try:
            rows = self._rows_provider()
            if not rows:
                return self.status
            if not self.mirror.is_authenticated():
                self.status = SyncStatus.IDLE
                return self.status
            self._push_locked(rows)
            return self.status
        finally:
            self._guard.release()

    def sync_now(self) -> SyncStatus:
        if not self._guard.acquire(blocking=False):
            logger.debug("Sync already in progress; ignoring manual trigger")
            return self.status
        try:
            if not self.mirror.is_authenticated():
                try:
                    self.mirror.login()
                except AuthError as exc:
                    self._fail_locked(exc)
                    return self.status
                except Exception as exc:
                    logger.exception("Unexpected error signing in to the remote mirror")
                    self._fail_locked(exc, logged=True)
                    return self.status
            self._push_locked(self._rows_provider())
            return self.status
        finally:
            self._guard.release()

    def _push_locked(self, rows: List[Mapping[str, Any]]) -> None:
        self.status = SyncStatus.SYNCING
        self.error = None
        try:
            self.mirror.push_rows(rows)
        except RemoteError as exc:
            self._fail_locked(exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error pushing to the remote mirror")
            self._fail_locked(exc, logged=True)
            return
        self.status = SyncStatus.SUCCESS
        self.last_synced_at = datetime.now(timezone.utc)
        logger.info("Synced %d row(s) to the remote mirror", len(rows))

    def _fail_locked(self, exc: Exception, *, logged: bool = False) -> None:
        self.status = SyncStatus.ERROR
        self.error = str(exc) or exc.__class__.__name__
        if not logged:
            logger.error("Failed to sync with the remote mirror: %s", exc)
