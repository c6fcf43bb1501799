"""Single-use, time-bounded download handles for rendered payloads."""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

__all__ = ["DEFAULT_DOWNLOAD_TTL", "DownloadCache", "DownloadEntry"]

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_TTL = timedelta(minutes=5)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _is_expired(expires_at: datetime, now: datetime) -> bool:
    return now >= expires_at


@dataclass(frozen=True)
class DownloadEntry:
    """Payload waiting to be fetched once through its token."""

    token: str
    payload: bytes
    mime_type: str
    expires_at: datetime

    def __repr__(self) -> str:
        return (
            f"DownloadEntry(token={self.token[:6]}..., mime_type={self.mime_type!r}, "
            f"size={len(self.payload)}, expires_at={self.expires_at.isoformat()})"
        )


class DownloadCache:
    """In-memory token store whose only mutators are issue, consume and prune.

    Retrieval is destructive: :meth:`consume` removes the entry whether or not
    it has expired, so every token is delivered at most once.
    """

    def __init__(
        self,
        *,
        ttl: timedelta = DEFAULT_DOWNLOAD_TTL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ttl = ttl
        self._clock = clock or _utc_now
        self._entries: dict[str, DownloadEntry] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def issue(
        self, payload: bytes, mime_type: str, ttl: timedelta | None = None
    ) -> str:
        """Store ``payload`` under a fresh unguessable token and return it."""

        lifetime = self._ttl if ttl is None else ttl
        token = secrets.token_urlsafe(32)
        entry = DownloadEntry(
            token=token,
            payload=bytes(payload),
            mime_type=mime_type,
            expires_at=self._clock() + lifetime,
        )
        with self._lock:
            self._entries[token] = entry
        logger.debug("Issued download %r", entry)
        return token

    def consume(self, token: str) -> DownloadEntry | None:
        """Remove and return the entry for ``token`` unless it has expired."""

        with self._lock:
            entry = self._entries.pop(token, None)
        if entry is None:
            return None
        if _is_expired(entry.expires_at, self._clock()):
            logger.debug("Discarded expired download %r", entry)
            return None
        return entry

    def prune_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""

        now = self._clock()
        with self._lock:
            expired = [
                token
                for token, entry in self._entries.items()
                if _is_expired(entry.expires_at, now)
            ]
            for token in expired:
                del self._entries[token]
        if expired:
            logger.debug("Pruned %d expired download(s)", len(expired))
        return len(expired)
