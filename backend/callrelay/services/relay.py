import enum
import logging
from typing import Any, Callable, Mapping

from callrelay.core.config import Settings
from callrelay.models import CallRecord
from callrelay.services.atz_client import AtzClient, candidate_id
from callrelay.services.normalizer import build_log_line, extract_call, is_finished_call
from callrelay.services.owners import resolve_owner

logger = logging.getLogger(__name__)


class RelayOutcome(enum.Enum):
    IGNORED = "ignored"
    SKIPPED = "skipped"
    RELAYED = "relayed"
    FAILED = "failed"


ClientFactory = Callable[[Settings], AtzClient]


class CallRelay:
    """Turns one provider event into a CRM candidate upsert plus a call log entry."""

    def __init__(self, settings: Settings, client_factory: ClientFactory = AtzClient.from_settings) -> None:
        self.settings = settings
        self.client_factory = client_factory

    async def handle_event(self, payload: Mapping[str, Any]) -> RelayOutcome:
        try:
            call = extract_call(payload)
        except Exception:
            logger.exception("Could not normalize Zadarma payload")
            return RelayOutcome.FAILED
        logger.info("Incoming Zadarma event: %s | raw keys: %s", call.model_dump(mode="json"), list(payload))

        if not is_finished_call(call.event):
            logger.debug("Ignoring non-final event %r", call.event)
            return RelayOutcome.IGNORED
        if not self.settings.atz_ready:
            logger.info("ATZ disabled or token missing; skipping ATZ actions")
            return RelayOutcome.SKIPPED

        phone = call.match_phone
        if not phone:
            logger.warning("No external phone to match; skipping ATZ upsert")
            return RelayOutcome.SKIPPED

        try:
            async with self.client_factory(self.settings) as client:
                return await self._upsert(client, call, phone)
        except Exception as exc:
            logger.exception("ATZ error for call %s: %s", call.call_id, getattr(exc, "body", None) or exc)
            return RelayOutcome.FAILED

    async def _upsert(self, client: AtzClient, call: CallRecord, phone: str) -> RelayOutcome:
        owner_id = resolve_owner(call.internal, self.settings.atz_owner_map, self.settings.atz_owner_id)
        candidate = await client.get_or_create_candidate_by_phone(phone, owner_id=owner_id, call_id=call.call_id)
        cand_id = candidate_id(candidate if isinstance(candidate, dict) else None)
        logger.info("Candidate upsert: cand_id=%s phone=%s owner_id=%s", cand_id, phone, owner_id)
        if not cand_id:
            logger.warning("Candidate response carried no id/slug/uuid; nothing to log against")
            return RelayOutcome.SKIPPED

        if self.settings.atz_log_mode == "activity":
            result = await client.create_activity(cand_id, call, self.settings.atz_activity_path or None)
        else:
            field_key = self.settings.atz_custom_field_key
            if not field_key:
                logger.info("No custom field key configured; candidate upserted without a call log")
                return RelayOutcome.SKIPPED
            result = await client.append_to_custom_field(cand_id, field_key, build_log_line(call), owner_id)
        return RelayOutcome.RELAYED if result is not None else RelayOutcome.FAILED
