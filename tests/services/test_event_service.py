import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone

from app.backend.services.event_service import EventService
from app.backend.services.notification_service import NotificationService
from app.backend.services.errors import AuthorizationError, NotFoundError, ValidationError
from app.backend.models.db_models import NewEvent, NewParticipation
from tests.fakes import FakeDbClient, build_campus


def new_event(title: str = "Cultural Fest", days_from_now: int = 10, pinned: bool = False) -> NewEvent:
    start = datetime(2024, 6, 1, tzinfo=timezone.utc) + timedelta(days=days_from_now)
    return NewEvent(
        title=title, description="Music and dance", category="Cultural",
        start_date=start, end_date=start + timedelta(hours=6), venue="Open Air Theatre", is_pinned=pinned,
    )


@pytest_asyncio.fixture
async def campus():
    db = FakeDbClient()
    people = await build_campus(db)
    return EventService(db_client=db, notifier=NotificationService(db_client=db)), db, people


@pytest.mark.asyncio
class TestEventService:

    async def test_proctor_posts_event_and_students_are_told(self, campus):
        service, db, people = campus

        event = await service.create_event(people["proctor"], new_event())

        assert event.posted_by == people["proctor"].id
        for student in ("alice", "bob"):
            [note] = db.notifications_for(people[student].id)
            assert note.type == "event"
            assert note.related_entity_id == event.id
        assert db.notifications_for(people["proctor"].id) == []

    async def test_students_cannot_post_events(self, campus):
        service, db, people = campus
        with pytest.raises(AuthorizationError):
            await service.create_event(people["alice"], new_event())
        assert len(db.events) == 1

    async def test_end_must_follow_start(self, campus):
        service, _, people = campus
        bad = new_event().model_copy(update={"end_date": datetime(2024, 1, 1, tzinfo=timezone.utc)})
        with pytest.raises(ValidationError):
            await service.create_event(people["admin"], bad)

    async def test_pinned_events_are_listed_first(self, campus):
        service, _, people = campus
        pinned = await service.create_event(people["admin"], new_event("Orientation", days_from_now=1, pinned=True))
        later = await service.create_event(people["admin"], new_event("Sports Day", days_from_now=30))

        titles = [e.title for e in await service.list_events()]

        assert titles[0] == pinned.title
        assert titles.index(later.title) < titles.index("Hackathon 2024")

    async def test_search_and_category_filters(self, campus):
        service, _, people = campus
        await service.create_event(people["admin"], new_event("Cultural Fest"))

        assert [e.title for e in await service.list_events(category="Technical")] == ["Hackathon 2024"]
        assert [e.title for e in await service.list_events(search="music")] == ["Cultural Fest"]

    async def test_partial_update_checks_dates_against_current_values(self, campus):
        service, _, people = campus
        event = people["event"]

        updated = await service.update_event(people["proctor"], event.id, {"venue": "Block C", "title": None})
        assert updated.venue == "Block C"
        assert updated.title == event.title

        with pytest.raises(ValidationError):
            await service.update_event(people["proctor"], event.id, {"end_date": event.start_date})

    async def test_update_dates_without_offset_are_taken_as_utc(self, campus):
        service, _, people = campus
        event = people["event"]

        updated = await service.update_event(people["proctor"], event.id, {"start_date": datetime(2024, 2, 28, 10)})

        assert updated.start_date == datetime(2024, 2, 28, 10, tzinfo=timezone.utc)
        with pytest.raises(ValidationError):
            await service.update_event(people["proctor"], event.id, {"end_date": datetime(2024, 2, 27)})

    async def test_new_event_dates_without_offset_are_taken_as_utc(self, campus):
        service, _, people = campus
        naive = NewEvent(
            title="Tech Talk", description="Cloud basics", category="Technical",
            start_date=datetime(2024, 7, 1, 10), end_date=datetime(2024, 7, 1, 12), venue="Room 101",
        )

        event = await service.create_event(people["admin"], naive)

        assert event.start_date.tzinfo is not None
        assert [e.title for e in await service.list_events(date_from=datetime(2024, 6, 30, tzinfo=timezone.utc))] == ["Tech Talk"]

    async def test_update_missing_event(self, campus):
        service, _, people = campus
        with pytest.raises(NotFoundError):
            await service.update_event(people["admin"], 404, {"venue": "Nowhere"})

    async def test_delete_keeps_participations_with_their_event_name(self, campus):
        service, db, people = campus
        event = people["event"]
        participation = await db.create_participation(NewParticipation(
            student_id=people["alice_profile"].id, event_id=event.id, event_name=event.title, role="Participant",
        ), [])

        await service.delete_event(people["admin"], event.id)

        kept = db.participations[participation.id]
        assert kept.event_id is None
        assert kept.event_name == "Hackathon 2024"
        with pytest.raises(NotFoundError):
            await service.get_event(event.id)

    async def test_delete_missing_event(self, campus):
        service, _, people = campus
        with pytest.raises(NotFoundError):
            await service.delete_event(people["admin"], 404)
