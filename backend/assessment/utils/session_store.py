"""In-memory registry of live and recently submitted attempt sessions."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from ..session import AttemptSession
from .ticker import Ticker

logger = logging.getLogger("assessment.session_store")


class SessionStore:
    """Holds sessions by id, with their tickers and submitted results.

    Submitted entries are dropped `ttl_seconds` after submission. Entries
    still in progress are dropped `idle_ttl_seconds` after the later of
    their last lookup and the end of their countdown, so abandoned
    sessions do not pile up. When the store grows past `max_sessions` the
    oldest submitted entries go first, then the longest-idle live ones.
    The ticker of every dropped entry is stopped.
    """

    def __init__(self, max_sessions: int = 500, ttl_seconds: int = 24 * 3600, idle_ttl_seconds: Optional[int] = None):
        self._entries: dict[str, dict] = {}
        self._lock = threading.Lock()
        self._max_sessions = max_sessions
        self._ttl_seconds = ttl_seconds
        self._idle_ttl_seconds = ttl_seconds if idle_ttl_seconds is None else idle_ttl_seconds

    def add(self, session: AttemptSession, ticker: Optional[Ticker] = None) -> None:
        self._cleanup()
        now = time.time()
        with self._lock:
            self._entries[session.id] = {
                "session": session,
                "ticker": ticker,
                "result": None,
                "finished_at": None,
                "last_seen": now,
                "countdown_ends": now + (session.remaining_seconds or 0),
            }
            evicted = []
            overflow = len(self._entries) - self._max_sessions
            if overflow > 0:
                finished = sorted(
                    (e for e in self._entries.values() if e["finished_at"] is not None),
                    key=lambda e: e["finished_at"],
                )
                live = sorted(
                    (e for e in self._entries.values()
                     if e["finished_at"] is None and e["session"] is not session),
                    key=lambda e: e["last_seen"],
                )
                for old in (finished + live)[:overflow]:
                    evicted.append(self._entries.pop(old["session"].id))
        self._release(evicted, reason="capacity")

    def get(self, session_id: str) -> Optional[AttemptSession]:
        self._cleanup()
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            entry["last_seen"] = time.time()
            return entry["session"]

    def set_result(self, session_id: str, result) -> None:
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return
            entry["result"] = result
            entry["finished_at"] = time.time()
            ticker = entry["ticker"]
        if ticker is not None:
            ticker.stop()

    def get_result(self, session_id: str):
        with self._lock:
            entry = self._entries.get(session_id)
            return entry["result"] if entry else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _cleanup(self) -> None:
        now = time.time()
        finished_cutoff = now - self._ttl_seconds
        with self._lock:
            to_delete = []
            for sid, entry in self._entries.items():
                if entry["finished_at"] is not None:
                    if entry["finished_at"] < finished_cutoff:
                        to_delete.append(sid)
                elif max(entry["last_seen"], entry["countdown_ends"]) + self._idle_ttl_seconds < now:
                    to_delete.append(sid)
            evicted = [self._entries.pop(sid) for sid in to_delete]
        self._release(evicted, reason="idle")

    def _release(self, entries, reason: str) -> None:
        for entry in entries:
            if entry["ticker"] is not None:
                entry["ticker"].stop()
            if entry["finished_at"] is None:
                logger.info("session_evicted id=%s reason=%s", entry["session"].id, reason)
