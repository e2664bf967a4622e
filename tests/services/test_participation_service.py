import asyncio
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from app.backend.services.participation_service import ParticipationService
from app.backend.services.notification_service import NotificationService
from app.backend.services.errors import (
    AuthorizationError, ConflictError, NotFoundError, ProfileIncompleteError, ValidationError,
)
from app.backend.models.db_models import NewProof, ParticipationCounts, ParticipationDraft, ParticipationStatus
from app.backend.models.redis_models import SessionUser
from tests.fakes import FakeDbClient, build_campus

# --- Fixtures ---

def proof(name: str = "certificate.pdf") -> NewProof:
    return NewProof(file_name=name, file_url=f"/uploads/{name}", file_type="application/pdf", file_size=1024)


@pytest_asyncio.fixture
async def campus():
    """A ParticipationService wired to an in-memory database with a few accounts."""
    db = FakeDbClient()
    people = await build_campus(db)
    service = ParticipationService(db_client=db, notifier=NotificationService(db_client=db))
    return service, db, people


@pytest_asyncio.fixture
async def service_instance():
    """A ParticipationService with fully mocked collaborators."""
    mock_db_client = AsyncMock()
    mock_notifier = AsyncMock()
    service = ParticipationService(db_client=mock_db_client, notifier=mock_notifier)
    return service, mock_db_client, mock_notifier


async def submit(service, actor, event_id=None, event_name=None, proofs=None, **extra):
    draft = ParticipationDraft(event_id=event_id, event_name=event_name, role=extra.pop("role", "Participant"), **extra)
    return await service.create_participation(actor, draft, [proof()] if proofs is None else proofs)


# --- Tests ---

@pytest.mark.asyncio
class TestCreateParticipation:

    async def test_submission_starts_pending_with_its_proofs(self, campus):
        service, db, people = campus

        created = await submit(service, people["alice"], event_id=people["event"].id,
                               proofs=[proof("a.pdf"), proof("b.png")])

        assert created.status == ParticipationStatus.PENDING
        assert created.student_id == people["alice_profile"].id
        assert created.event_name == "Hackathon 2024"
        assert created.reviewed_by is None and created.proctor_feedback is None
        proofs = await db.get_proofs([created.id])
        assert [p.file_name for p in proofs[created.id]] == ["a.pdf", "b.png"]

    async def test_free_text_event_name_is_accepted(self, campus):
        service, _, people = campus
        created = await submit(service, people["alice"], event_name="  Inter-college Debate ")
        assert created.event_id is None
        assert created.event_name == "Inter-college Debate"

    async def test_proctor_cannot_submit(self, campus):
        service, db, people = campus
        with pytest.raises(AuthorizationError):
            await submit(service, people["proctor"], event_id=people["event"].id)
        assert db.participations == {}

    async def test_student_without_profile_is_told_to_complete_it(self, campus):
        service, db, people = campus
        with pytest.raises(ProfileIncompleteError, match="Student profile incomplete"):
            await submit(service, people["newcomer"], event_id=people["event"].id)
        assert db.participations == {}

    async def test_at_least_one_proof_is_required(self, campus):
        service, db, people = campus
        with pytest.raises(ValidationError, match="At least one proof"):
            await submit(service, people["alice"], event_id=people["event"].id, proofs=[])
        assert db.participations == {} and db.proofs == {}

    async def test_event_reference_is_required(self, campus):
        service, _, people = campus
        with pytest.raises(ValidationError, match="event id or an event name"):
            await submit(service, people["alice"], event_name="   ")

    async def test_unknown_event_id_is_not_found(self, campus):
        service, _, people = campus
        with pytest.raises(NotFoundError):
            await submit(service, people["alice"], event_id=999)

    async def test_blank_role_is_rejected(self, campus):
        service, _, people = campus
        with pytest.raises(ValidationError):
            await submit(service, people["alice"], event_id=people["event"].id, role=" ")

    async def test_zero_duration_is_rejected(self, campus):
        service, _, people = campus
        with pytest.raises(ValidationError):
            await submit(service, people["alice"], event_id=people["event"].id, duration_days=0)

    async def test_assigned_proctor_is_notified(self, campus):
        service, db, people = campus
        created = await submit(service, people["alice"], event_id=people["event"].id)

        notes = db.notifications_for(people["proctor"].id)
        assert len(notes) == 1
        assert notes[0].title == "New Participation Submitted"
        assert notes[0].related_entity_id == created.id

    async def test_notification_failure_does_not_fail_submission(self, campus):
        service, db, people = campus
        db.fail_notifications = True
        created = await submit(service, people["alice"], event_id=people["event"].id)
        assert created.id in db.participations


@pytest.mark.asyncio
class TestReadParticipations:

    async def test_students_only_ever_see_their_own(self, campus):
        service, _, people = campus
        mine = await submit(service, people["alice"], event_name="Debate")
        await submit(service, people["bob"], event_name="Quiz")

        listed = await service.list_participations(people["alice"], student_id=people["bob_profile"].id)

        assert [p.id for p in listed] == [mine.id]

    async def test_reviewers_see_everything_newest_first(self, campus):
        service, _, people = campus
        first = await submit(service, people["alice"], event_name="Debate")
        second = await submit(service, people["bob"], event_name="Quiz")

        listed = await service.list_participations(people["proctor"])

        assert [p.id for p in listed] == [second.id, first.id]
        assert all(p.proofs for p in listed)

    async def test_reviewers_can_filter_by_student_and_status(self, campus):
        service, _, people = campus
        await submit(service, people["alice"], event_name="Debate")
        bobs = await submit(service, people["bob"], event_name="Quiz")
        await service.review_participation(people["proctor"], bobs.id, "approved")

        by_student = await service.list_participations(people["admin"], student_id=people["bob_profile"].id)
        by_status = await service.list_participations(people["admin"], status="pending")

        assert [p.id for p in by_student] == [bobs.id]
        assert all(p.status == ParticipationStatus.PENDING for p in by_status)
        assert len(by_status) == 1

    async def test_unknown_status_filter_is_rejected(self, campus):
        service, _, people = campus
        with pytest.raises(ValidationError):
            await service.list_participations(people["admin"], status="archived")

    async def test_student_without_profile_sees_nothing(self, campus):
        service, _, people = campus
        await submit(service, people["alice"], event_name="Debate")
        assert await service.list_participations(people["newcomer"]) == []

    async def test_list_includes_linked_event(self, campus):
        service, _, people = campus
        await submit(service, people["alice"], event_id=people["event"].id)
        [listed] = await service.list_participations(people["alice"])
        assert listed.event is not None
        assert listed.event.title == "Hackathon 2024"

    async def test_detail_includes_student_event_and_proofs(self, campus):
        service, _, people = campus
        created = await submit(service, people["alice"], event_id=people["event"].id)

        detail = await service.get_participation(people["proctor"], created.id)

        assert detail.student.usn == "1CR18CS001"
        assert detail.student.user.first_name == "Alice"
        assert detail.event.id == people["event"].id
        assert len(detail.proofs) == 1

    async def test_student_cannot_open_another_students_participation(self, campus):
        service, _, people = campus
        bobs = await submit(service, people["bob"], event_name="Quiz")
        with pytest.raises(NotFoundError):
            await service.get_participation(people["alice"], bobs.id)

    async def test_missing_participation_is_not_found(self, campus):
        service, _, people = campus
        with pytest.raises(NotFoundError):
            await service.get_participation(people["admin"], 404)


@pytest.mark.asyncio
class TestReviewParticipation:

    async def test_approval_is_recorded_and_student_notified(self, campus):
        service, db, people = campus
        created = await submit(service, people["alice"], event_id=people["event"].id)

        reviewed = await service.review_participation(people["proctor"], created.id, "approved", "Well done")

        assert reviewed.status == ParticipationStatus.APPROVED
        assert reviewed.reviewed_by == people["proctor"].id
        assert reviewed.proctor_feedback == "Well done"
        [note] = db.notifications_for(people["alice"].id)
        assert note.title == "Participation Approved"
        assert note.type == "submission"
        assert note.related_entity_id == created.id
        assert "Well done" in note.message

    async def test_rejection_requires_feedback(self, campus):
        service, db, people = campus
        created = await submit(service, people["alice"], event_name="Debate")

        with pytest.raises(ValidationError, match="Feedback is required"):
            await service.review_participation(people["proctor"], created.id, "rejected", "  ")
        assert db.participations[created.id].status == ParticipationStatus.PENDING

    async def test_rejection_with_feedback(self, campus):
        service, db, people = campus
        created = await submit(service, people["alice"], event_name="Debate")

        reviewed = await service.review_participation(people["admin"], created.id, "rejected", "Blurry certificate")

        assert reviewed.status == ParticipationStatus.REJECTED
        [note] = db.notifications_for(people["alice"].id)
        assert note.title == "Participation Rejected"

    async def test_students_cannot_review(self, campus):
        service, db, people = campus
        created = await submit(service, people["alice"], event_name="Debate")
        with pytest.raises(AuthorizationError):
            await service.review_participation(people["alice"], created.id, "approved")
        assert db.participations[created.id].status == ParticipationStatus.PENDING

    async def test_pending_is_not_a_review_decision(self, campus):
        service, _, people = campus
        created = await submit(service, people["alice"], event_name="Debate")
        with pytest.raises(ValidationError):
            await service.review_participation(people["proctor"], created.id, "pending")

    async def test_missing_participation_is_not_found(self, campus):
        service, _, people = campus
        with pytest.raises(NotFoundError):
            await service.review_participation(people["proctor"], 404, "approved")

    async def test_review_is_one_way(self, campus):
        service, db, people = campus
        created = await submit(service, people["alice"], event_name="Debate")
        await service.review_participation(people["proctor"], created.id, "approved")

        with pytest.raises(ConflictError, match="already been approved"):
            await service.review_participation(people["admin"], created.id, "rejected", "Changed my mind")

        stored = db.participations[created.id]
        assert stored.status == ParticipationStatus.APPROVED
        assert stored.reviewed_by == people["proctor"].id
        assert len(db.notifications_for(people["alice"].id)) == 1

    async def test_concurrent_reviews_have_exactly_one_winner(self, campus):
        service, db, people = campus
        created = await submit(service, people["alice"], event_name="Debate")

        results = await asyncio.gather(
            service.review_participation(people["proctor"], created.id, "approved"),
            service.review_participation(people["admin"], created.id, "rejected", "Not eligible"),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1 and isinstance(losers[0], ConflictError)
        assert db.participations[created.id].status == winners[0].status
        assert len(db.notifications_for(people["alice"].id)) == 1

    async def test_lost_race_reported_as_conflict(self, service_instance):
        """The row was pending when read but the conditional update matched nothing."""
        service, mock_db_client, mock_notifier = service_instance
        reviewer = SessionUser(id=1, username="p", role="proctor", first_name="P", last_name="Q", email="p@x.io")
        mock_db_client.get_participation.return_value = AsyncMock(status=ParticipationStatus.PENDING)
        mock_db_client.review_participation.return_value = None

        with pytest.raises(ConflictError, match="someone else"):
            await service.review_participation(reviewer, 7, "approved")

        mock_notifier.notify_review_outcome.assert_not_awaited()


@pytest.mark.asyncio
class TestComputeStats:

    async def test_counts_always_add_up(self, campus):
        service, _, people = campus
        a = await submit(service, people["alice"], event_name="Debate")
        b = await submit(service, people["bob"], event_name="Quiz")
        await submit(service, people["alice"], event_id=people["event"].id)
        await service.review_participation(people["proctor"], a.id, "approved")
        await service.review_participation(people["proctor"], b.id, "rejected", "Missing proof page")

        stats = await service.compute_stats()

        assert stats.total_events == 1
        assert stats.total_participations == 3
        assert stats.pending_reviews == 1
        assert stats.approved_participations == 1
        assert stats.rejected_participations == 1
        assert stats.pending_reviews + stats.approved_participations + stats.rejected_participations \
            == stats.total_participations

    async def test_empty_database(self, service_instance):
        service, mock_db_client, _ = service_instance
        mock_db_client.count_events.return_value = 0
        mock_db_client.count_participations.return_value = ParticipationCounts()

        stats = await service.compute_stats()

        assert stats.model_dump(by_alias=True) == {
            "totalEvents": 0,
            "totalParticipations": 0,
            "pendingReviews": 0,
            "approvedParticipations": 0,
            "rejectedParticipations": 0,
        }
