"""
Google Calendar client: event mapping and provider error handling.
"""
import json
import uuid
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import httpx
import pytest

from portal.db.models import Evenement
from portal.services.calendar_client import event_to_google, google_to_event_data, is_restricted
from portal.services.oauth_service import TokenSet

PARIS = ZoneInfo("Europe/Paris")


def _evenement(**fields) -> Evenement:
    values = {
        "id": uuid.uuid4(),
        "titre": "Audience",
        "type": "audience",
        "date_debut": datetime(2025, 3, 10, 9, 30, tzinfo=PARIS),
        "date_fin": datetime(2025, 3, 10, 11, 0, tzinfo=PARIS),
        "journee_entiere": False,
    }
    values.update(fields)
    return Evenement(**values)


class TestMapping:
    def test_all_day_end_is_exclusive(self):
        event = _evenement(
            journee_entiere=True,
            date_debut=datetime(2025, 3, 10, tzinfo=PARIS),
            date_fin=datetime(2025, 3, 11, tzinfo=PARIS),
        )
        body = event_to_google(event)
        assert body["start"] == {"date": "2025-03-10"}
        assert body["end"] == {"date": "2025-03-12"}

    def test_timed_event_carries_zone_and_back_reference(self):
        event = _evenement(lieu="Tribunal", salle="Salle 4")
        body = event_to_google(event)
        assert body["start"]["timeZone"] == "Europe/Paris"
        assert body["location"] == "Tribunal - Salle 4"
        assert body["extendedProperties"]["private"]["portalEventId"] == str(event.id)

    def test_all_day_import_takes_one_day_off(self):
        data = google_to_event_data(
            {"summary": "Conges", "start": {"date": "2025-03-10"}, "end": {"date": "2025-03-12"}}
        )
        assert data["journee_entiere"] is True
        assert data["date_debut"].astimezone(PARIS).date() == date(2025, 3, 10)
        assert data["date_fin"].astimezone(PARIS).date() == date(2025, 3, 11)

    def test_timed_event_without_end_lasts_one_hour(self):
        data = google_to_event_data({"start": {"dateTime": "2025-03-10T09:00:00Z"}})
        assert data["titre"] == "Sans titre"
        assert data["date_fin"] - data["date_debut"] == timedelta(hours=1)

    def test_unparseable_start(self):
        assert google_to_event_data({"start": {"dateTime": "not a date"}}) is None
        assert google_to_event_data({}) is None

    def test_restricted_types(self):
        assert is_restricted({"eventType": "outOfOffice"})
        assert not is_restricted({"eventType": "default"})
        assert not is_restricted(None)


# =============================================================================
# Client over the mocked Calendar API
# =============================================================================

@pytest.fixture
def connected(db, integrations):
    integrations.google.save_tokens(
        db, TokenSet(access_token="google-access", refresh_token="google-refresh", expires_in=3600, scope=None)
    )
    return integrations.calendar(db)


class TestCalendarClient:
    async def test_not_connected(self, db, integrations):
        calendar = integrations.calendar(db)
        assert calendar.selected_calendar_id() is None
        assert not await calendar.is_ready()
        result = await calendar.create_event(_evenement())
        assert not result.success

    async def test_create_event_returns_remote_stamp(self, connected, providers):
        providers.add("POST", "/calendars/primary/events", {"id": "g-1", "updated": "2025-03-01T10:00:00Z"})

        result = await connected.create_event(_evenement())

        assert result.success
        assert result.google_event_id == "g-1"
        assert result.remote_updated == datetime(2025, 3, 1, 10, tzinfo=timezone.utc)
        request = providers.calls("POST", "/calendars/primary/events")[0]
        assert request.headers["Authorization"] == "Bearer google-access"
        assert json.loads(request.content)["summary"] == "Audience"

    async def test_transport_failure_is_reported_as_network_error(self, connected, providers):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        providers.add("POST", "/events", refuse)

        result = await connected.create_event(_evenement())

        assert not result.success
        assert result.error.startswith("Network error")

    async def test_rejected_token_asks_for_reconnection(self, connected, providers):
        providers.add("POST", "/events", lambda r: httpx.Response(401, json={"error": "invalid_token"}))

        result = await connected.create_event(_evenement())

        assert result.error.startswith("Authentication expired")

    async def test_delete_of_missing_event_counts_as_success(self, connected, providers):
        providers.add("DELETE", "/events/gone", lambda r: httpx.Response(410, json={}))
        result = await connected.delete_event("gone")
        assert result.success

    async def test_update_restriction_error_is_skipped(self, connected, providers):
        providers.add("GET", "/events/g-1", {"id": "g-1", "eventType": "default"})
        providers.add(
            "PUT",
            "/events/g-1",
            lambda r: httpx.Response(400, json={"error": {"errors": [{"reason": "eventTypeRestriction"}]}}),
        )

        result = await connected.update_event(_evenement(google_event_id="g-1"))

        assert result.success
        assert result.skipped

    async def test_update_of_deleted_event_reports_not_found(self, connected, providers):
        result = await connected.update_event(_evenement(google_event_id="g-404"))
        assert not result.success
        assert result.not_found

    async def test_list_events_follows_pages(self, connected, providers):
        def page(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("pageToken") == "p2":
                return httpx.Response(200, json={"items": [{"id": "b"}]})
            return httpx.Response(200, json={"items": [{"id": "a"}], "nextPageToken": "p2"})

        providers.add("GET", "/calendars/primary/events", page)
        now = datetime.now(timezone.utc)

        items = await connected.list_events(now, now + timedelta(days=1))

        assert [i["id"] for i in items] == ["a", "b"]
