import math
import re
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from callrelay.models import CallDirection, CallRecord

_NON_PHONE_CHARS = re.compile(r"[^\d+]")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def normalize_phone(value: Any) -> str:
    if value is None:
        return ""
    cleaned = _NON_PHONE_CHARS.sub("", str(value))
    if cleaned.startswith("+"):
        return "+" + cleaned[1:].replace("+", "")
    return cleaned.replace("+", "")


def to_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    match = _LEADING_INT.match("" if value is None else str(value))
    if not match:
        return default
    return int(match.group(1))


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def guess_direction(payload: Mapping[str, Any]) -> CallDirection:
    """Heuristic tuned to observed Zadarma events; rules are first-match.

    Reads the raw payload rather than a normalized record because presence of
    ``internal``/``extension``, ``destination`` and ``called_did`` matters.
    """
    event = _text(payload.get("event")).upper()
    has_internal = bool(payload.get("internal") or payload.get("extension"))
    has_destination = bool(payload.get("destination"))
    has_called_did = bool(payload.get("called_did"))
    if "OUT" in event:
        return CallDirection.OUTBOUND
    if "INTERNAL" in event:
        return CallDirection.INBOUND
    if "START" in event and has_called_did and not has_internal:
        return CallDirection.INBOUND
    if "START" in event and has_internal and has_destination:
        return CallDirection.OUTBOUND
    return CallDirection.UNKNOWN


def is_finished_call(event: Optional[str]) -> bool:
    ev = (event or "").lower()
    return "end" in ev or ev == "call_end" or "finished" in ev


def extract_call(payload: Mapping[str, Any]) -> CallRecord:
    duration = to_int(_first(payload, "duration", "billsec", "billing_seconds"), 0)
    return CallRecord(
        event=_text(_first(payload, "event", "Event")),
        call_id=_text(_first(payload, "pbx_call_id", "call_id")),
        from_number=normalize_phone(_first(payload, "caller_id", "caller", "from", "number_from")),
        to_number=normalize_phone(_first(payload, "destination", "called_did", "to", "number_to")),
        internal=_text(_first(payload, "internal", "extension")),
        direction=guess_direction(payload),
        duration_seconds=max(duration, 0),
        disposition=_text(payload.get("disposition")),
        is_recorded=_text(_first(payload, "is_recorded", "recorded")) == "1",
    )


def utc_timestamp(now: Optional[datetime] = None) -> str:
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.replace(microsecond=0, tzinfo=None).isoformat() + "Z"


def build_log_line(call: CallRecord, now: Optional[datetime] = None) -> str:
    direction = call.direction.value.upper()
    disposition = f" {call.disposition}" if call.disposition else ""
    recorded = " rec=Y" if call.is_recorded else ""
    from_to = f"{call.from_number or '?'} → {call.to_number or '?'}"
    return (
        f"[{utc_timestamp(now)}] {direction} {call.duration_seconds}s{disposition}{recorded} "
        f"{from_to} (ext:{call.internal or '-'}) id={call.call_id}"
    )
