"""Integration tests for booking and the session state machine."""
import pytest

from peertutor.errors import ConstraintViolation, Forbidden, InvalidTransition, NotFound
from peertutor.models import Session, SessionStatus
from peertutor.services import store
from peertutor.services.state_machine import (
    SessionEvent,
    book_session,
    get_session,
    list_sessions,
    transition_session,
    update_session_details,
)
from tests.helpers import tomorrow, yesterday


async def _status(uow, session_id) -> SessionStatus:
    async with uow() as db:
        return (await store.get(db, Session, session_id)).status


async def _transition(uow, session_id, actor, event):
    async with uow() as db:
        return await transition_session(db, session_id, actor.id, event)


class TestBooking:
    async def test_booking_creates_pending_session_with_participants(self, book, accounts):
        session = await book(subject="  Linear algebra ", notes="chapter 3")
        assert session.status == SessionStatus.PENDING
        assert session.subject == "Linear algebra"
        assert session.tutor.full_name == "Tina Tutor"
        assert session.learner.full_name == "Leo Learner"
        assert session.meeting_link == ""

    async def test_scheduled_in_the_past_is_rejected(self, book):
        with pytest.raises(ConstraintViolation):
            await book(scheduled_at=yesterday())

    async def test_naive_timestamp_is_treated_as_utc(self, book):
        session = await book(scheduled_at=tomorrow().replace(tzinfo=None))
        assert session.status == SessionStatus.PENDING

    async def test_blank_subject_is_rejected(self, book):
        with pytest.raises(ConstraintViolation):
            await book(subject="   ")

    async def test_non_positive_duration_is_rejected(self, book):
        with pytest.raises(ConstraintViolation):
            await book(duration_minutes=0)

    async def test_unknown_session_type_is_rejected(self, book):
        with pytest.raises(ConstraintViolation):
            await book(session_type="workshop")

    async def test_tutor_cannot_book(self, book, accounts):
        with pytest.raises(Forbidden):
            await book(learner=accounts.other_tutor, tutor=accounts.tutor)

    async def test_booking_a_learner_as_tutor_is_rejected(self, book, accounts):
        with pytest.raises(ConstraintViolation):
            await book(tutor=accounts.other_learner)

    async def test_booking_missing_tutor(self, uow, accounts):
        with pytest.raises(NotFound):
            async with uow() as db:
                await book_session(db, accounts.learner.id, 9999, "Math", "1-on-1", tomorrow())

    async def test_group_session(self, book):
        session = await book(session_type="group")
        assert session.session_type.value == "group"


class TestTransitions:
    async def test_happy_path(self, uow, book, accounts):
        session = await book()
        confirmed = await _transition(uow, session.id, accounts.tutor, SessionEvent.ACCEPT)
        assert confirmed.status == SessionStatus.CONFIRMED
        completed = await _transition(uow, session.id, accounts.learner, "complete")
        assert completed.status == SessionStatus.COMPLETED

    async def test_tutor_declines(self, uow, book, accounts):
        session = await book()
        declined = await _transition(uow, session.id, accounts.tutor, SessionEvent.DECLINE)
        assert declined.status == SessionStatus.CANCELLED

    @pytest.mark.parametrize("event", [SessionEvent.ACCEPT, SessionEvent.DECLINE])
    async def test_learner_cannot_accept_or_decline(self, uow, book, accounts, event):
        session = await book()
        with pytest.raises(Forbidden):
            await _transition(uow, session.id, accounts.learner, event)
        assert await _status(uow, session.id) == SessionStatus.PENDING

    async def test_third_party_cannot_accept(self, uow, book, accounts):
        session = await book()
        with pytest.raises(Forbidden):
            await _transition(uow, session.id, accounts.other_tutor, SessionEvent.ACCEPT)
        assert await _status(uow, session.id) == SessionStatus.PENDING

    async def test_pending_cannot_jump_to_completed(self, uow, book, accounts):
        session = await book()
        for actor in (accounts.tutor, accounts.learner):
            with pytest.raises(InvalidTransition) as exc:
                await _transition(uow, session.id, actor, SessionEvent.COMPLETE)
            assert exc.value.current == "pending"
            assert exc.value.event == "complete"
        assert await _status(uow, session.id) == SessionStatus.PENDING

    @pytest.mark.parametrize("event", list(SessionEvent))
    async def test_terminal_states_admit_no_transition(self, uow, book, accounts, event):
        session = await book()
        await _transition(uow, session.id, accounts.tutor, SessionEvent.DECLINE)
        with pytest.raises(InvalidTransition):
            await _transition(uow, session.id, accounts.tutor, event)
        assert await _status(uow, session.id) == SessionStatus.CANCELLED

    async def test_completed_is_terminal(self, uow, completed_session, accounts):
        session = await completed_session()
        with pytest.raises(InvalidTransition):
            await _transition(uow, session.id, accounts.learner, SessionEvent.COMPLETE)

    async def test_unknown_event_is_invalid_transition(self, uow, book, accounts):
        session = await book()
        with pytest.raises(InvalidTransition) as exc:
            await _transition(uow, session.id, accounts.learner, "cancel")
        assert exc.value.event == "cancel"

    async def test_accept_twice_fails_second_time(self, uow, book, accounts):
        session = await book()
        await _transition(uow, session.id, accounts.tutor, SessionEvent.ACCEPT)
        with pytest.raises(InvalidTransition) as exc:
            await _transition(uow, session.id, accounts.tutor, SessionEvent.ACCEPT)
        assert exc.value.current == "confirmed"

    async def test_missing_session(self, uow, accounts):
        with pytest.raises(NotFound):
            await _transition(uow, 4242, accounts.tutor, SessionEvent.ACCEPT)


class TestReadingSessions:
    async def test_list_sessions_for_each_participant(self, uow, book, accounts):
        mine = await book()
        await book(learner=accounts.other_learner)

        async with uow() as db:
            learner_sessions = await list_sessions(db, accounts.learner.id).all()
            tutor_sessions = await list_sessions(db, accounts.tutor.id).all()
            outsider_sessions = await list_sessions(db, accounts.other_tutor.id).all()

        assert [s.id for s in learner_sessions] == [mine.id]
        assert len(tutor_sessions) == 2
        assert outsider_sessions == []
        assert learner_sessions[0].tutor.email == "tina@example.com"

    async def test_list_sessions_status_filter(self, uow, book, accounts):
        first = await book()
        second = await book()
        await _transition(uow, second.id, accounts.tutor, SessionEvent.ACCEPT)

        async with uow() as db:
            pending = await list_sessions(db, accounts.learner.id, "pending").all()
            confirmed = await list_sessions(db, accounts.learner.id, SessionStatus.CONFIRMED).all()

        assert [s.id for s in pending] == [first.id]
        assert [s.id for s in confirmed] == [second.id]

    async def test_list_sessions_unknown_status(self, uow, accounts):
        with pytest.raises(ConstraintViolation):
            async with uow() as db:
                list_sessions(db, accounts.learner.id, "archived")

    async def test_third_party_cannot_read_session(self, uow, book, accounts):
        session = await book()
        with pytest.raises(Forbidden):
            async with uow() as db:
                await get_session(db, session.id, accounts.other_learner.id)


class TestSessionDetails:
    async def test_participant_sets_meeting_link(self, uow, book, accounts):
        session = await book()
        async with uow() as db:
            updated = await update_session_details(
                db, session.id, accounts.tutor.id, meeting_link="https://meet.example.com/abc"
            )
        assert updated.meeting_link == "https://meet.example.com/abc"
        assert updated.status == SessionStatus.PENDING

    async def test_third_party_cannot_edit(self, uow, book, accounts):
        session = await book()
        with pytest.raises(Forbidden):
            async with uow() as db:
                await update_session_details(db, session.id, accounts.other_learner.id, notes="hi")

    async def test_terminal_session_details_are_frozen(self, uow, completed_session, accounts):
        session = await completed_session()
        with pytest.raises(ConstraintViolation):
            async with uow() as db:
                await update_session_details(db, session.id, accounts.learner.id, notes="late note")
