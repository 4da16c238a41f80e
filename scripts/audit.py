"""Tamper-evident audit trail for lifecycle operations.

One JSON object per line in ``AUDIT_LOG_FILE``. Each event carries the
process ``run_id`` so all changes of one bulk run can be pulled out
together, and an HMAC-SHA256 ``signature`` over its canonical form when a
signing key is configured (``/run/secrets/audit_log_signing_key`` or
``AUDIT_LOG_SIGNING_KEY``).

Run as a script to verify the trail::

    python scripts/audit.py
"""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import os
import sys
import uuid
from pathlib import Path
from typing import Any, Iterator, Literal

AUDIT_LOG_DIR = Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "lifecycle-events.jsonl"
_secret_file = Path("/run/secrets/audit_log_signing_key")

RUN_ID = uuid.uuid4().hex[:12]

EventType = Literal["onboard", "update", "offboard_disable", "offboard_delete"]


def _signing_key() -> bytes:
    if _secret_file.exists():
        try:
            key = _secret_file.read_text(encoding="utf-8").strip()
        except OSError:
            key = ""
        if key:
            return key.encode("utf-8")
    return os.environ.get("AUDIT_LOG_SIGNING_KEY", "").strip().encode("utf-8")


def sign(event: dict[str, Any]) -> str:
    """HMAC-SHA256 over sorted, compact JSON; empty string when no key is set."""
    key = _signing_key()
    if not key:
        return ""
    payload = json.dumps(event, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hmac.new(key, payload, hashlib.sha256).hexdigest()


def build_event(
    event_type: EventType,
    principal_name: str,
    *,
    operator: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> dict[str, Any]:
    """Assemble and sign one audit record (not yet written)."""
    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "run_id": RUN_ID,
        "event_type": event_type,
        "principal_name": principal_name,
        "operator": operator,
        "success": success,
        "details": details or {},
    }
    signature = sign(event)
    if signature:
        event["signature"] = signature
    return event


def _append(event: dict[str, Any]) -> None:
    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)
    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")
    AUDIT_LOG_FILE.chmod(0o600)


def log_lifecycle_event(
    event_type: EventType,
    principal_name: str,
    *,
    operator: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Record one lifecycle change.

    Args:
        event_type: onboard, update, offboard_disable or offboard_delete
        principal_name: User the change applied to
        operator: Who ran it
        details: Steps applied / suppressed, warnings, error text
        success: Outcome of the operation

    Raises:
        OSError: If the trail cannot be written
    """
    _append(build_event(event_type, principal_name, operator=operator, details=details, success=success))


def safe_log_lifecycle_event(
    event_type: EventType,
    principal_name: str,
    *,
    operator: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> bool:
    """Like log_lifecycle_event(), but reports failures on stderr instead of raising.

    A directory change that already happened must not be reported as a
    failed row because the trail could not be written.
    """
    try:
        log_lifecycle_event(event_type, principal_name, operator=operator, details=details, success=success)
    except Exception as e:
        print(f"[audit] could not record {event_type} for {principal_name}: {e}", file=sys.stderr)
        return False
    return True


def iter_events() -> Iterator[tuple[int, dict[str, Any] | None]]:
    """Yield ``(line_number, event)``; ``event`` is None for unparsable lines."""
    if not AUDIT_LOG_FILE.exists():
        return
    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                yield number, json.loads(line)
            except json.JSONDecodeError:
                yield number, None


def invalid_lines() -> list[int]:
    """Line numbers whose signature is missing, wrong, or unparsable."""
    bad = []
    for number, event in iter_events():
        if event is None:
            bad.append(number)
            continue
        stored = event.pop("signature", "")
        if not stored or not hmac.compare_digest(stored, sign(event)):
            bad.append(number)
    return bad


def verify_audit_log() -> tuple[int, int]:
    """Return ``(total_events, valid_signatures)``."""
    total = sum(1 for _ in iter_events())
    return total, total - len(invalid_lines())


if __name__ == "__main__":
    total, valid = verify_audit_log()
    print(f"Audit log {AUDIT_LOG_FILE}: {valid}/{total} events with valid signatures")
    for number in invalid_lines():
        print(f"  line {number}: signature missing or invalid")
    sys.exit(0 if total == valid else 1)
