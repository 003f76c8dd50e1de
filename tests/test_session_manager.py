# ============================================================================
# Practice Session Tests
# ============================================================================
import asyncio
import pytest
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import OperationalError

from app.core.exceptions import InvalidInput, PersistenceFailure
from app.services.gamification.xp_system import RewardResult
from app.services.practice.adaptive_difficulty import DifficultyTier
from app.services.practice.answer_history import AnswerEvent
from app.services.practice.operation_selector import OperationSelector
from app.services.practice.session_manager import (
    PracticeSessionManager,
    Question,
    SessionMode,
    SessionPhase,
    SessionState,
    UNSCORABLE_MESSAGE,
    advance,
    answer_claim_key,
    apply_answer,
    build_summary,
    issue_question,
    letter_grade,
    start_session,
)

def make_event(correct: bool, answer=19, raw="19") -> AnswerEvent:
    return AnswerEvent(
        raw_input=raw,
        normalized_value=float(raw),
        is_correct=correct,
        time_ms=1200,
        question_text="What is 12 + 7?",
        correct_answer=answer,
        operation="addition",
    )


def reward(xp: int = 10, leveled_up: bool = False) -> RewardResult:
    return RewardResult(
        xp_earned=xp, new_total_xp=xp, new_level=1, leveled_up=leveled_up,
        daily_question_count=1, daily_goal=10,
    )


@pytest.fixture
def generator():
    generator = MagicMock()
    generator.generate = AsyncMock(return_value={"question": "What is 12 + 7?", "answer": None})
    return generator


@pytest.fixture
def history_service():
    service = MagicMock()
    service.get_history = AsyncMock(return_value=[])
    service.save_answer_event = AsyncMock(return_value="answer-1")
    return service


@pytest.fixture
def xp_store():
    store = MagicMock()
    store.award_xp = AsyncMock(return_value=reward())
    return store


@pytest.fixture
def selector():
    selector = MagicMock(spec=OperationSelector)
    selector.select.return_value = "addition"
    return selector


@pytest.fixture
def manager(generator, history_service, xp_store, selector):
    return PracticeSessionManager(
        generator,
        history_service,
        xp_store,
        selector=selector,
        test_question_count=3,
        clock=lambda: 1000.0,
    )


class TestTransitions:
    """Pure session-state transitions"""

    def test_start_is_loading(self):
        state = start_session("play", "4-5", ["Algebra"], now=5.0)
        assert state.phase == SessionPhase.LOADING
        assert state.selected_modules == ("Algebra",)
        assert state.started_at == 5.0

    def test_issue_question_only_while_loading(self):
        state = issue_question(start_session("play", "4-5"), Question("What is 1 + 1?", "addition", 2))
        assert state.phase == SessionPhase.AWAITING_ANSWER
        assert state.question_index == 1
        with pytest.raises(ValueError):
            issue_question(state, Question("What is 2 + 2?", "addition", 4))

    def test_question_without_answer_is_unscorable(self):
        state = issue_question(start_session("play", "4-5"), Question("Hmm?", "statistics", None))
        assert state.unscorable is True

    def test_apply_answer_counts_streak_and_misses(self):
        state = start_session("play", "4-5")
        state = apply_answer(state, make_event(True))
        state = apply_answer(state, make_event(True))
        assert state.current_streak == 2
        assert state.difficulty_tier == DifficultyTier.VERY_HARD

        state = apply_answer(state, make_event(False, raw="18"))
        assert state.current_streak == 0
        assert state.correct_count == 2
        assert state.total_count == 3
        assert len(state.missed_questions) == 1
        assert "The answer is 19" in state.feedback
        assert state.phase == SessionPhase.FEEDBACK

    def test_tier_change_is_announced_in_feedback(self):
        state = apply_answer(start_session("play", "4-5"), make_event(True))
        assert f"Moving up to {DifficultyTier.VERY_HARD.value}" in state.feedback

        state = apply_answer(state, make_event(True))
        assert "Moving up" not in state.feedback

    def test_test_mode_completes_at_limit(self):
        state = replace(start_session("test", "4-5"), phase=SessionPhase.FEEDBACK, total_count=10)
        assert advance(state, 10).phase == SessionPhase.COMPLETE
        assert advance(replace(state, total_count=9), 10).phase == SessionPhase.LOADING

    def test_play_mode_never_completes_on_its_own(self):
        state = replace(start_session("play", "4-5"), phase=SessionPhase.FEEDBACK, total_count=50)
        assert advance(state, 10).phase == SessionPhase.LOADING

    def test_summary(self):
        state = start_session("test", "4-5", now=100.0)
        for correct in (True, True, False):
            state = apply_answer(state, make_event(correct, raw="19" if correct else "5"))
        summary = build_summary(state, now=145.5)

        assert summary["score"] == 2
        assert summary["total"] == 3
        assert summary["percentage"] == 67
        assert summary["letter_grade"] == "C"
        assert summary["elapsed_seconds"] == 45
        assert summary["missed_questions"][0]["your_answer"] == "5"

    def test_play_summary_has_no_grade(self):
        summary = build_summary(start_session("play", "4-5"))
        assert summary["percentage"] == 0
        assert "letter_grade" not in summary

    @pytest.mark.parametrize("percentage,grade", [
        (95, "A+"), (90, "A+"), (85, "A"), (70, "B"), (60, "C"), (50, "D"), (49, "F"),
    ])
    def test_letter_grade(self, percentage, grade):
        assert letter_grade(percentage) == grade

    def test_state_round_trips_through_dict(self):
        state = start_session("test", "6-7", ["Geometry"], now=1.0, session_id="s1", user_id="u1")
        state = issue_question(state, Question("What is 1 + 1?", "addition", 2))
        state = apply_answer(state, make_event(False, raw="3"))
        assert SessionState.from_dict(state.to_dict()) == state


class TestPracticeSessionManager:
    """Session flow against mocked collaborators"""

    async def test_start_loads_an_extracted_question(self, manager):
        state = await manager.start("kid-1", SessionMode.PLAY, "4-5", session_id="s1")

        assert state.phase == SessionPhase.AWAITING_ANSWER
        assert state.current_question.text == "What is 12 + 7?"
        assert state.current_question.answer == 19
        assert state.unscorable is False

    async def test_correct_answer_awards_and_saves(self, manager, xp_store, history_service):
        state = await manager.start("kid-1", "play", "4-5")
        state = await manager.submit_answer(state, "kid-1", "19", time_ms=900)

        assert state.phase == SessionPhase.FEEDBACK
        assert state.correct_count == 1
        assert state.session_xp == 10
        xp_store.award_xp.assert_awaited_once_with(
            "kid-1", correct=True, streak=1, difficulty=DifficultyTier.VERY_HARD,
        )
        event = history_service.save_answer_event.await_args.args[1]
        assert event.is_correct is True
        assert event.time_ms == 900

    async def test_resubmit_in_feedback_is_a_no_op(self, manager, xp_store, history_service):
        state = await manager.start("kid-1", "play", "4-5")
        state = await manager.submit_answer(state, "kid-1", "19")

        again = await manager.submit_answer(state, "kid-1", "19")

        assert again == state
        assert xp_store.award_xp.await_count == 1
        assert history_service.save_answer_event.await_count == 1

    async def test_concurrent_submits_score_once(
        self, generator, history_service, xp_store, selector, mock_cache
    ):
        manager = PracticeSessionManager(
            generator, history_service, xp_store,
            selector=selector, clock=lambda: 1000.0, claims=mock_cache,
        )
        state = await manager.start("kid-1", "play", "4-5", session_id="s1")

        first, second = await asyncio.gather(
            manager.submit_answer(state, "kid-1", "19"),
            manager.submit_answer(state, "kid-1", "19"),
        )

        assert xp_store.award_xp.await_count == 1
        assert history_service.save_answer_event.await_count == 1
        assert sorted([first.total_count, second.total_count]) == [0, 1]
        assert answer_claim_key("s1", 1) in mock_cache.store

    async def test_invalid_input_does_not_claim_the_question(
        self, generator, history_service, xp_store, selector, mock_cache
    ):
        manager = PracticeSessionManager(
            generator, history_service, xp_store,
            selector=selector, clock=lambda: 1000.0, claims=mock_cache,
        )
        state = await manager.start("kid-1", "play", "4-5", session_id="s1")

        with pytest.raises(InvalidInput):
            await manager.submit_answer(state, "kid-1", "nineteen")
        state = await manager.submit_answer(state, "kid-1", "19")

        assert state.correct_count == 1
        xp_store.award_xp.assert_awaited_once()

    async def test_invalid_input_allows_resubmission(self, manager, xp_store):
        state = await manager.start("kid-1", "play", "4-5")

        with pytest.raises(InvalidInput):
            await manager.submit_answer(state, "kid-1", "nineteen")
        xp_store.award_xp.assert_not_awaited()

        state = await manager.submit_answer(state, "kid-1", "19")
        assert state.correct_count == 1

    async def test_unscorable_question_is_not_counted(self, manager, generator, xp_store):
        generator.generate.return_value = {"question": "What is the mode of 1, 2, 2?", "answer": None}
        manager.selector.select.return_value = "statistics"

        state = await manager.start("kid-1", "play", "4-5")
        assert state.unscorable is True

        state = await manager.submit_answer(state, "kid-1", "2")
        assert state.phase == SessionPhase.FEEDBACK
        assert state.feedback == UNSCORABLE_MESSAGE
        assert state.total_count == 0
        xp_store.award_xp.assert_not_awaited()

    async def test_generator_answer_is_used_when_present(self, manager, generator):
        generator.generate.return_value = {"question": "What is 12 + 7?", "answer": 20}
        state = await manager.start("kid-1", "play", "4-5")
        state = await manager.submit_answer(state, "kid-1", "20")
        assert state.correct_count == 1

    async def test_save_failure_keeps_the_session_going(self, manager, history_service):
        history_service.save_answer_event.side_effect = PersistenceFailure("answer")
        state = await manager.start("kid-1", "play", "4-5")

        state = await manager.submit_answer(state, "kid-1", "19")

        assert state.correct_count == 1
        assert state.phase == SessionPhase.FEEDBACK

    async def test_history_failure_selects_without_history(self, manager, history_service):
        history_service.get_history.side_effect = OperationalError("SELECT", {}, Exception("down"))
        state = await manager.start("kid-1", "play", "4-5")
        assert state.phase == SessionPhase.AWAITING_ANSWER

    async def test_test_mode_does_not_read_history(self, manager, history_service):
        await manager.start("kid-1", "test", "4-5")
        history_service.get_history.assert_not_awaited()

    async def test_test_session_completes_after_limit(self, manager):
        state = await manager.start("kid-1", "test", "4-5")
        for _ in range(3):
            state = await manager.submit_answer(state, "kid-1", "19")
            state = await manager.next_question(state, "kid-1")

        assert state.phase == SessionPhase.COMPLETE
        assert state.total_count == 3

        state, summary = manager.end_session(state)
        assert summary["percentage"] == 100
        assert summary["letter_grade"] == "A+"

    async def test_next_question_only_from_feedback(self, manager, generator):
        state = await manager.start("kid-1", "play", "4-5")
        assert await manager.next_question(state, "kid-1") is state
        assert generator.generate.await_count == 1

    async def test_hint_only_while_awaiting(self, manager):
        state = await manager.start("kid-1", "play", "4-5")
        assert manager.hint(state)
        state = await manager.submit_answer(state, "kid-1", "19")
        assert manager.hint(state) is None
