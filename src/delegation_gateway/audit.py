"""Audit trail for sign-in and issuance events.

Each nonce issued, authentication attempt and delegation issued becomes one
JSON line. Lines go to an append-only file when a path is configured and to
an in-memory queue otherwise. Records never carry signatures or key
material.
"""
from __future__ import annotations

import collections
import datetime
import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class AuditEvent:
    """One audited occurrence.

    Parameters
    ----------
    event_type:
        ``nonce_issued``, ``auth_success``, ``auth_failure`` or
        ``delegation_issued``.
    subject:
        Identity or address the event is about; empty when unknown.
    details:
        Extra JSON-serializable fields.
    timestamp:
        When the event happened (UTC).
    """

    event_type: str
    subject: str = ""
    details: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime.datetime = field(default_factory=_utcnow)

    def to_json(self) -> str:
        record = {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type,
            "subject": self.subject,
            "details": dict(self.details),
        }
        return json.dumps(record, separators=(",", ":"), default=str)


class AuditLogger:
    """Thread-safe JSONL audit sink.

    Parameters
    ----------
    log_path:
        File to append to; its parent directory is created. Without a path,
        lines are queued in memory until :meth:`drain_buffer` is called.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._path = log_path
        self._pending: collections.deque[str] = collections.deque()
        self._guard = threading.Lock()
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event: AuditEvent) -> None:
        """Record *event*."""
        line = event.to_json()
        with self._guard:
            if self._path is None:
                self._pending.append(line)
                return
            with self._path.open("a", encoding="utf-8") as sink:
                sink.write(f"{line}\n")

    def log_event(self, event_type: str, subject: str = "", **details: Any) -> None:
        self.log(AuditEvent(event_type, subject, details))

    # -- gateway events -------------------------------------------------

    def log_nonce_issued(self, expires_at: datetime.datetime) -> None:
        self.log_event("nonce_issued", expires_at=expires_at.isoformat())

    def log_auth_attempt(self, subject: str, success: bool, **details: Any) -> None:
        self.log_event("auth_success" if success else "auth_failure", subject, **details)

    def log_delegation(
        self,
        subject: str,
        audience: str,
        cid: str,
        capabilities: list[str],
        expiration: int | None,
    ) -> None:
        self.log_event(
            "delegation_issued",
            subject,
            audience=audience,
            cid=cid,
            capabilities=capabilities,
            expiration=expiration,
        )

    # -- reading back ---------------------------------------------------

    def drain_buffer(self) -> list[str]:
        """Return the queued lines and empty the queue."""
        with self._guard:
            drained = list(self._pending)
            self._pending.clear()
        return drained

    def read_log(self, tail: int | None = None) -> list[dict[str, Any]]:
        """Return recorded events oldest first; only the last *tail* if given."""
        with self._guard:
            if self._path is not None and self._path.exists():
                lines = self._path.read_text(encoding="utf-8").splitlines()
            else:
                lines = list(self._pending)
        records = [json.loads(line) for line in lines if line.strip()]
        return records if tail is None else records[-tail:]


__all__ = ["AuditEvent", "AuditLogger"]
