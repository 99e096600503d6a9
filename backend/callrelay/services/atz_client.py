import logging
from typing import Any, Dict, List, Optional

import httpx

from callrelay.core.config import Settings
from callrelay.models import CallRecord
from callrelay.models.custom_field import append_line, encode_field, read_field
from callrelay.schemas import ActivityNote, CandidateCreate, CrmUser
from callrelay.services.attempts import (
    ActivityAttempt,
    UpdateAttempt,
    activity_attempts,
    first_success,
    update_attempts,
)
from callrelay.services.normalizer import build_log_line, normalize_phone

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
MAX_PAGES = 3
INVALID_OWNER_MARKER = "Invalid user for owner"


class AtzError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_invalid_owner(self) -> bool:
        return INVALID_OWNER_MARKER in str(self.body or "") or INVALID_OWNER_MARKER in str(self)


def _rows(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        return data["data"]
    return []


def candidate_id(candidate: Optional[Dict[str, Any]]) -> Optional[str]:
    if not candidate:
        return None
    for key in ("id", "slug", "uuid"):
        value = candidate.get(key)
        if value not in (None, ""):
            return str(value)
    return None


class AtzClient:
    """Async client for the ATZ CRM candidate API.

    The CRM's schema is only partly known, so writes walk an ordered list of
    verb/path/body variants until one is accepted.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None
    ) -> "AtzClient":
        return cls(
            settings.atz_base_url,
            token=settings.atz_api_token,
            timeout=settings.atz_timeout_seconds,
            http_client=http_client,
        )

    async def __aenter__(self) -> "AtzClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            raise AtzError(f"{method} {path}: {type(exc).__name__}: {exc}") from exc
        if response.is_error:
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            raise AtzError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                body=body,
            )
        try:
            return response.json()
        except ValueError:
            return response.text

    async def list_users(self) -> List[CrmUser]:
        users = []
        for row in _rows(await self._request("GET", "/users")):
            name = row.get("name") or row.get("full_name") or row.get("email") or "(no name)"
            users.append(CrmUser(id=str(row.get("id")), name=str(name)))
        return users

    async def list_candidates_page(self, page: int = 1, limit: int = PAGE_SIZE) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/candidate", params={"page": page, "limit": limit})
        return _rows(data)

    async def find_candidate_by_phone(self, phone: Optional[str]) -> Optional[Dict[str, Any]]:
        # Client-side scan of the first MAX_PAGES pages; fine only while candidate volume is small.
        target = normalize_phone(phone)
        if not target:
            return None
        for page in range(1, MAX_PAGES + 1):
            rows = await self.list_candidates_page(page, PAGE_SIZE)
            for row in rows:
                if isinstance(row, dict) and normalize_phone(row.get("phone")) == target:
                    return row
            if len(rows) < PAGE_SIZE:
                break
        return None

    async def create_candidate(
        self, phone: str, owner_id: Optional[int] = None, call_id: str = ""
    ) -> Any:
        digits = normalize_phone(phone).lstrip("+")
        payload = CandidateCreate(
            last_name=digits[-4:] if len(digits) >= 4 else "Lead",
            phone=phone,
            description=f"Auto-created from Zadarma call {call_id}",
        )
        if owner_id:
            owned = payload.model_copy(update={"owner_id": owner_id})
            try:
                return await self._request("POST", "/candidate", json=owned.model_dump(exclude_none=True))
            except AtzError as exc:
                if not exc.is_invalid_owner:
                    raise
                logger.warning("owner_id %s invalid; retrying without owner_id", owner_id)
        return await self._request("POST", "/candidate", json=payload.model_dump(exclude_none=True))

    async def get_or_create_candidate_by_phone(
        self, phone: str, owner_id: Optional[int] = None, call_id: str = ""
    ) -> Any:
        # No lock between find and create: concurrent deliveries may create duplicates.
        candidate = await self.find_candidate_by_phone(phone)
        if candidate:
            return candidate
        return await self.create_candidate(phone, owner_id=owner_id, call_id=call_id)

    async def get_candidate_detail(self, id_or_slug: Any) -> Optional[Dict[str, Any]]:
        try:
            data = await self._request("GET", f"/candidate/{id_or_slug}")
        except AtzError as exc:
            if exc.is_not_found:
                return None
            raise
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            return data["data"]
        return data if isinstance(data, dict) else None

    async def append_to_custom_field(
        self,
        id_or_slug: Any,
        field_key: str,
        line: str,
        owner_id_fallback: Optional[int] = None,
    ) -> Any:
        try:
            current = await self.get_candidate_detail(id_or_slug)
        except AtzError as exc:
            # Without the prior value a write would drop the existing log.
            logger.error("Could not read candidate %s before append: %s", id_or_slug, exc.body or exc)
            return None
        new_value = append_line(read_field(current, field_key), line)

        async def run(attempt: UpdateAttempt) -> Any:
            body = encode_field(attempt.shape, field_key, new_value, owner_id_fallback)
            return await self._request(attempt.method, attempt.path, json=body)

        attempt, result = await first_success(
            update_attempts(id_or_slug), run, is_skippable=lambda exc: isinstance(exc, AtzError)
        )
        if attempt is None:
            logger.error(
                "Could not update custom field %r on candidate %s; tried every payload and verb",
                field_key,
                id_or_slug,
            )
            return None
        logger.info("Custom field append via %s", attempt.label)
        return result

    async def create_activity(
        self, candidate: Any, call: CallRecord, preferred_path: Optional[str] = None
    ) -> Any:
        note = ActivityNote(
            candidate_id=str(candidate),
            subject=f"Zadarma call {call.call_id}".strip(),
            description=build_log_line(call),
            call_id=call.call_id,
            from_number=call.from_number,
            to_number=call.to_number,
            extension=call.internal,
            duration=call.duration_seconds,
            event=call.event,
            disposition=call.disposition,
            direction=call.direction.value,
        )
        body = note.model_dump(by_alias=True)

        async def run(attempt: ActivityAttempt) -> Any:
            return await self._request("POST", attempt.path, json=body)

        attempt, result = await first_success(
            activity_attempts(candidate, preferred_path),
            run,
            is_skippable=lambda exc: isinstance(exc, AtzError),
        )
        if attempt is None:
            logger.error("Could not create activity for candidate %s; every path failed", candidate)
            return None
        logger.info("Activity created via %s", attempt.label)
        return result
