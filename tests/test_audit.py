"""Tests for delegation_gateway.audit — JSONL audit trail."""
from __future__ import annotations

import datetime
import json
from pathlib import Path

from delegation_gateway.audit import AuditEvent, AuditLogger


class TestAuditLogger:
    def test_buffer_when_no_path(self) -> None:
        audit = AuditLogger()
        audit.log_event("auth_success", subject="did:pkh:eip155:1:0xabc", chain_id=1)
        lines = audit.drain_buffer()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["event_type"] == "auth_success"
        assert record["details"] == {"chain_id": 1}
        assert audit.drain_buffer() == []

    def test_writes_jsonl_file(self, tmp_path: Path) -> None:
        path = tmp_path / "logs" / "audit.jsonl"
        audit = AuditLogger(path)
        audit.log_nonce_issued(datetime.datetime(2026, 10, 19, tzinfo=datetime.timezone.utc))
        audit.log_auth_attempt("0xabc", success=False, reason="BadSignature")
        lines = path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["event_type"] for line in lines] == ["nonce_issued", "auth_failure"]

    def test_delegation_event(self) -> None:
        audit = AuditLogger()
        audit.log_delegation(
            subject="did:pkh:eip155:1:0xabc",
            audience="did:web:example.com",
            cid="bafyreiexample",
            capabilities=["store/add"],
            expiration=None,
        )
        (event,) = audit.read_log()
        assert event["details"]["cid"] == "bafyreiexample"
        assert event["details"]["expiration"] is None

    def test_read_log_tail(self, tmp_path: Path) -> None:
        audit = AuditLogger(tmp_path / "audit.jsonl")
        for index in range(5):
            audit.log(AuditEvent(event_type="nonce_issued", details={"index": index}))
        assert [e["details"]["index"] for e in audit.read_log(tail=2)] == [3, 4]
