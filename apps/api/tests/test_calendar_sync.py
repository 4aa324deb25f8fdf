"""
Google Calendar reconciliation: push, pull, last-writer-wins and idempotent runs.
"""
from datetime import datetime, timedelta, timezone

import pytest

from portal.db.enums import SyncType
from portal.db.models import ActivityLog, Evenement, SyncLog
from portal.services import calendar_sync_service

from fakes import FakeCalendar


def _event(db, dossier=None, **fields) -> Evenement:
    start = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=3)
    values = {
        "titre": "Audience",
        "type": "audience",
        "date_debut": start,
        "date_fin": start + timedelta(hours=2),
        "dossier_id": dossier.id if dossier else None,
    }
    values.update(fields)
    event = Evenement(**values)
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


class TestPush:
    async def test_creates_then_unchanged(self, db, calendar, test_dossier):
        event = _event(db, test_dossier)

        first = await calendar_sync_service.sync_event_to_google(db, calendar, event)
        second = await calendar_sync_service.sync_event_to_google(db, calendar, event)

        assert first.action == "created"
        assert second.action == "unchanged"
        assert event.google_event_id in calendar.events
        assert event.google_calendar_id == "primary"
        assert calendar.writes == 1

    async def test_local_edit_is_pushed_as_update(self, db, calendar):
        event = _event(db)
        await calendar_sync_service.sync_event_to_google(db, calendar, event)

        event.titre = "Audience reportee"
        event.updated_at = datetime.now(timezone.utc) + timedelta(seconds=1)
        db.commit()
        outcome = await calendar_sync_service.sync_event_to_google(db, calendar, event)

        assert outcome.action == "updated"
        assert calendar.events[event.google_event_id]["summary"] == "Audience reportee"

    async def test_deleted_remote_copy_is_recreated(self, db, calendar):
        event = _event(db)
        await calendar_sync_service.sync_event_to_google(db, calendar, event)
        old_id = event.google_event_id
        calendar.events.clear()

        outcome = await calendar_sync_service.sync_event_to_google(db, calendar, event, force=True)

        assert outcome.action == "created"
        assert event.google_event_id != old_id

    async def test_sync_disabled(self, db, calendar):
        event = _event(db, sync_google=False)
        outcome = await calendar_sync_service.sync_event_to_google(db, calendar, event)
        assert outcome.action == "disabled"
        assert calendar.writes == 0

    async def test_restricted_remote_event_is_skipped(self, db, calendar):
        event = _event(db)
        await calendar_sync_service.sync_event_to_google(db, calendar, event)
        calendar.events[event.google_event_id]["eventType"] = "focusTime"

        outcome = await calendar_sync_service.sync_event_to_google(db, calendar, event, force=True)

        assert outcome.action == "skipped"


class TestPull:
    async def test_imports_remote_event_and_links_dossier(self, db, calendar, test_dossier):
        start = datetime.now(timezone.utc) + timedelta(days=5)
        calendar.add_remote(
            f"Expertise {test_dossier.reference}", start, start + timedelta(hours=1),
            updated=datetime.now(timezone.utc),
        )

        result = await calendar_sync_service.pull_from_google(db, calendar)

        assert result.created == 1
        imported = db.query(Evenement).one()
        assert imported.type == "autre"
        assert imported.dossier_id == test_dossier.id
        assert imported.sync_google is True

    async def test_second_pull_does_not_duplicate(self, db, calendar):
        start = datetime.now(timezone.utc) + timedelta(days=5)
        calendar.add_remote("Rendez-vous", start, start + timedelta(hours=1), updated=datetime.now(timezone.utc))

        await calendar_sync_service.pull_from_google(db, calendar)
        second = await calendar_sync_service.pull_from_google(db, calendar)

        assert second.created == 0
        assert second.updated == 0
        assert db.query(Evenement).count() == 1

    async def test_pushed_event_is_not_reimported(self, db, calendar):
        event = _event(db)
        await calendar_sync_service.sync_event_to_google(db, calendar, event)

        result = await calendar_sync_service.pull_from_google(db, calendar)

        assert result.created == 0
        assert db.query(Evenement).count() == 1

    async def test_matches_by_portal_back_reference(self, db, calendar):
        event = _event(db)
        start = event.date_debut
        google_id = calendar.add_remote(
            "Audience", start, start + timedelta(hours=2), updated=datetime.now(timezone.utc),
            extendedProperties={"private": {"portalEventId": str(event.id)}},
        )

        result = await calendar_sync_service.pull_from_google(db, calendar)

        assert result.created == 0
        db.refresh(event)
        assert event.google_event_id == google_id

    async def test_restricted_and_cancelled_events_are_ignored(self, db, calendar):
        start = datetime.now(timezone.utc) + timedelta(days=1)
        now = datetime.now(timezone.utc)
        calendar.add_remote("Focus", start, start + timedelta(hours=1), updated=now, eventType="focusTime")
        calendar.add_remote("Annule", start, start + timedelta(hours=1), updated=now, status="cancelled")

        result = await calendar_sync_service.pull_from_google(db, calendar)

        assert result.created == 0
        assert result.skipped == 1
        assert db.query(Evenement).count() == 0


class TestLastWriterWins:
    async def test_newer_remote_edit_is_applied(self, db, calendar):
        event = _event(db)
        await calendar_sync_service.sync_event_to_google(db, calendar, event)

        calendar.edit_remote(
            event.google_event_id,
            updated=datetime.now(timezone.utc) + timedelta(hours=1),
            summary="Audience deplacee",
        )
        result = await calendar_sync_service.pull_from_google(db, calendar)

        assert result.updated == 1
        db.refresh(event)
        assert event.titre == "Audience deplacee"

    async def test_newer_local_edit_is_kept(self, db, calendar):
        event = _event(db)
        await calendar_sync_service.sync_event_to_google(db, calendar, event)

        calendar.edit_remote(
            event.google_event_id,
            updated=datetime.now(timezone.utc) + timedelta(hours=1),
            summary="Titre distant",
        )
        event.titre = "Titre local"
        event.updated_at = datetime.now(timezone.utc) + timedelta(hours=2)
        db.commit()

        result = await calendar_sync_service.pull_from_google(db, calendar)

        assert result.updated == 0
        db.refresh(event)
        assert event.titre == "Titre local"

    async def test_unchanged_remote_stamp_is_ignored(self, db, calendar):
        event = _event(db)
        await calendar_sync_service.sync_event_to_google(db, calendar, event)
        calendar.events[event.google_event_id]["summary"] = "Sans nouveau tampon"

        result = await calendar_sync_service.pull_from_google(db, calendar)

        assert result.updated == 0
        assert result.unchanged == 1


class TestFullSync:
    async def test_second_run_is_a_no_op(self, db, calendar, test_admin):
        _event(db)
        start = datetime.now(timezone.utc) + timedelta(days=2)
        calendar.add_remote("Rendez-vous client", start, start + timedelta(hours=1), updated=datetime.now(timezone.utc))

        first = await calendar_sync_service.full_sync(db, calendar, triggered_by_id=test_admin.id)
        second = await calendar_sync_service.full_sync(db, calendar, triggered_by_id=test_admin.id)

        assert first.created == 2
        assert (second.created, second.updated, second.errors) == (0, 0, 0)
        assert db.query(Evenement).count() == 2
        assert db.query(SyncLog).filter_by(type=SyncType.GOOGLE_CALENDAR.value).count() == 2

    async def test_not_connected(self, db):
        result = await calendar_sync_service.full_sync(db, FakeCalendar(ready=False))
        assert not result.success
        assert result.sync_log is None

    def test_log_skipped_sync(self, db):
        log = calendar_sync_service.log_skipped_sync(db, "not_configured")
        assert log.type == SyncType.GOOGLE_CALENDAR.value
        assert "non configure" in log.message


class TestSyncActivity:
    async def test_each_push_is_logged_on_the_dossier_timeline(self, db, calendar, test_dossier, test_admin):
        event = _event(db, test_dossier)

        await calendar_sync_service.sync_event_to_google(db, calendar, event, triggered_by_id=test_admin.id)
        await calendar_sync_service.sync_event_to_google(db, calendar, event)

        entry = db.query(ActivityLog).filter_by(action="evenement.synced_google").one()
        assert entry.dossier_id == test_dossier.id
        assert entry.user_id == test_admin.id
        assert entry.details["google_event_id"] == event.google_event_id

    async def test_full_sync_logs_one_entry_per_dossier(self, db, calendar, test_dossier):
        _event(db, test_dossier)
        _event(db, test_dossier, titre="Expertise")
        _event(db)

        await calendar_sync_service.full_sync(db, calendar)

        entry = db.query(ActivityLog).filter_by(action="google_calendar.sync").one()
        assert entry.dossier_id == test_dossier.id
        assert entry.details["imported"] == 2
        assert entry.details["errors"] == 0
        assert entry.details["mode"] == "manual"
