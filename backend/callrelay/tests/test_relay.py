import json

import httpx
import pytest

from callrelay.services.relay import CallRelay, RelayOutcome

from conftest import make_settings

pytestmark = pytest.mark.asyncio

END_EVENT = {
    "event": "NOTIFY_END",
    "pbx_call_id": "c-1",
    "caller_id": "+1 (555) 123-4567",
    "destination": "2000",
    "internal": "101",
    "duration": "42",
}


def _body(request: httpx.Request) -> dict:
    return json.loads(request.content)


async def test_non_final_events_are_ignored(atz_mock):
    relay = CallRelay(make_settings())
    outcome = await relay.handle_event({"event": "NOTIFY_START", "caller_id": "100"})
    assert outcome is RelayOutcome.IGNORED
    assert not atz_mock.calls


async def test_skips_when_crm_disabled_or_tokenless(atz_mock):
    assert await CallRelay(make_settings(atz_enable=False)).handle_event(END_EVENT) is RelayOutcome.SKIPPED
    assert await CallRelay(make_settings(atz_api_token="")).handle_event(END_EVENT) is RelayOutcome.SKIPPED
    assert not atz_mock.calls


async def test_skips_without_external_number(atz_mock):
    outcome = await CallRelay(make_settings()).handle_event({"event": "NOTIFY_END", "internal": "101"})
    assert outcome is RelayOutcome.SKIPPED
    assert not atz_mock.calls


async def test_creates_candidate_and_appends_call_log(atz_mock):
    atz_mock.get("/candidate").mock(return_value=httpx.Response(200, json=[]))
    create = atz_mock.post("/candidate").mock(return_value=httpx.Response(201, json={"slug": "caller-4567"}))
    atz_mock.get("/candidate/caller-4567").mock(
        return_value=httpx.Response(200, json={"slug": "caller-4567", "Zadarma Call Log": "earlier call"})
    )
    update = atz_mock.put("/candidate/caller-4567").mock(return_value=httpx.Response(200, json={}))
    relay = CallRelay(make_settings(atz_owner_map={"101": "123"}, atz_owner_id=9))

    outcome = await relay.handle_event(END_EVENT)

    assert outcome is RelayOutcome.RELAYED
    created = _body(create.calls.last.request)
    assert created["last_name"] == "4567"
    assert created["phone"] == "+15551234567"
    assert created["owner_id"] == 123
    stored = _body(update.calls.last.request)["custom_fields"]["Zadarma Call Log"]
    prior, line = stored.split("\n")
    assert prior == "earlier call"
    assert line.endswith("UNKNOWN 42s +15551234567 → 2000 (ext:101) id=c-1")
    assert _body(update.calls.last.request)["owner_id"] == 123


async def test_activity_mode_posts_note_instead_of_field(atz_mock):
    atz_mock.get("/candidate").mock(return_value=httpx.Response(200, json=[{"id": 5, "phone": "+15551234567"}]))
    note = atz_mock.post("/calls/log").mock(return_value=httpx.Response(201, json={"id": "n1"}))
    update = atz_mock.put("/candidate/5")
    relay = CallRelay(make_settings(atz_log_mode="activity", atz_activity_path="calls/log"))

    assert await relay.handle_event(END_EVENT) is RelayOutcome.RELAYED
    assert _body(note.calls.last.request)["call_id"] == "c-1"
    assert not update.called


async def test_crm_failure_is_logged_not_raised(atz_mock, caplog):
    atz_mock.get("/candidate").mock(return_value=httpx.Response(503, text="maintenance"))
    outcome = await CallRelay(make_settings()).handle_event(END_EVENT)
    assert outcome is RelayOutcome.FAILED
    assert "ATZ error for call c-1" in caplog.text


async def test_append_exhaustion_reports_failure(atz_mock):
    atz_mock.get("/candidate").mock(return_value=httpx.Response(200, json=[{"id": 5, "phone": "+15551234567"}]))
    atz_mock.get("/candidate/5").mock(return_value=httpx.Response(200, json={"id": 5}))
    atz_mock.put("/candidate/5").mock(return_value=httpx.Response(400))
    atz_mock.patch("/candidate/5").mock(return_value=httpx.Response(400))
    assert await CallRelay(make_settings()).handle_event(END_EVENT) is RelayOutcome.FAILED


async def test_concurrent_deliveries_can_duplicate_candidates(atz_mock):
    # Known limitation: find-then-create is not locked, so two deliveries that
    # both miss the search each create a candidate.
    atz_mock.get("/candidate").mock(return_value=httpx.Response(200, json=[]))
    create = atz_mock.post("/candidate").mock(return_value=httpx.Response(201, json={"id": 1}))
    atz_mock.get("/candidate/1").mock(return_value=httpx.Response(200, json={"id": 1}))
    atz_mock.put("/candidate/1").mock(return_value=httpx.Response(200, json={}))
    relay = CallRelay(make_settings())

    await relay.handle_event(END_EVENT)
    await relay.handle_event(END_EVENT)

    assert create.call_count == 2


async def test_non_finite_duration_still_relays(atz_mock):
    atz_mock.get("/candidate").mock(return_value=httpx.Response(200, json=[{"id": 5, "phone": "5551234"}]))
    atz_mock.get("/candidate/5").mock(return_value=httpx.Response(200, json={"id": 5}))
    update = atz_mock.put("/candidate/5").mock(return_value=httpx.Response(200, json={}))

    payload = {"event": "NOTIFY_END", "caller_id": "5551234", "duration": float("nan")}
    assert await CallRelay(make_settings()).handle_event(payload) is RelayOutcome.RELAYED
    assert " 0s " in _body(update.calls.last.request)["custom_fields"]["Zadarma Call Log"]


async def test_unreadable_candidate_is_not_overwritten(atz_mock):
    atz_mock.get("/candidate").mock(return_value=httpx.Response(200, json=[{"id": 5, "phone": "+15551234567"}]))
    atz_mock.get("/candidate/5").mock(return_value=httpx.Response(500))
    update = atz_mock.put("/candidate/5")
    patch = atz_mock.patch("/candidate/5")

    assert await CallRelay(make_settings()).handle_event(END_EVENT) is RelayOutcome.FAILED
    assert not update.called
    assert not patch.called
