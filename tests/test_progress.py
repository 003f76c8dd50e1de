# ============================================================================
# Progress Analytics Tests
# ============================================================================
from datetime import datetime, timedelta, timezone

from app.models.practice import AnswerRecord
from app.services.analytics.student_progress import StudentProgressAnalytics, get_user_stats
from app.services.practice.answer_history import AnswerEvent, AnswerHistoryService

START = datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc)

SCENARIO = [
    ("addition", True),
    ("addition", True),
    ("division", False),
    ("subtraction", True),
]

async def seed_answers(db_session, user_id, answers):
    for i, (operation, correct) in enumerate(answers):
        db_session.add(AnswerRecord(
            user_id=user_id,
            question=f"Question {i}",
            operation=operation,
            user_answer="1",
            correct_answer="1" if correct else "2",
            correct=correct,
            time_ms=1000,
            mode="play",
            timestamp=START + timedelta(seconds=i),
        ))
    await db_session.commit()


class TestUserStats:
    """Stats over an answer history"""

    def test_empty_history(self):
        assert get_user_stats([]) == {
            "total_questions": 0, "accuracy": 0, "streak": 0, "weak_areas": [],
        }

    def test_three_right_one_wrong(self):
        history = [{"operation": op, "correct": correct} for op, correct in SCENARIO]

        stats = get_user_stats(history)

        assert stats["total_questions"] == 4
        assert stats["accuracy"] == 75
        assert stats["streak"] == 1
        assert stats["weak_areas"][0] == {"name": "division", "accuracy": 0, "total": 1}
        accuracies = [area["accuracy"] for area in stats["weak_areas"]]
        assert accuracies == sorted(accuracies)

    def test_streak_counts_trailing_correct_answers(self):
        history = [{"correct": False}] + [{"correct": True}] * 4
        stats = get_user_stats(history)
        assert stats["streak"] == 4
        assert stats["weak_areas"][0]["name"] == "general"

    def test_accuracy_rounds_half_up(self):
        history = [{"operation": "addition", "correct": True}] * 5 + [{"operation": "addition", "correct": False}] * 3
        assert get_user_stats(history)["accuracy"] == 63


class TestStudentProgressAnalytics:

    async def test_stats_from_stored_history(self, db_session, make_user):
        await make_user("kid-1")
        await seed_answers(db_session, "kid-1", SCENARIO)

        stats = await StudentProgressAnalytics(db_session).get_stats("kid-1", grade="4-5")

        assert stats["total_questions"] == 4
        assert stats["accuracy"] == 75
        assert stats["streak"] == 1
        assert stats["weak_areas"][0]["name"] == "division"
        assert stats["difficulty"] == {"difficulty": "Very Hard", "accuracy": 75, "threshold": 85}

    async def test_history_is_oldest_first(self, db_session, make_user):
        await make_user("kid-1")
        await seed_answers(db_session, "kid-1", SCENARIO)

        history = await AnswerHistoryService(db_session).get_history("kid-1")

        assert [h["operation"] for h in history] == [op for op, _ in SCENARIO]
        assert set(history[0]) == {"operation", "correct", "timestamp"}

    async def test_history_limit_keeps_most_recent(self, db_session, make_user):
        await make_user("kid-1")
        await seed_answers(db_session, "kid-1", SCENARIO)

        history = await AnswerHistoryService(db_session).get_history("kid-1", limit=2)

        assert [h["operation"] for h in history] == ["division", "subtraction"]

    async def test_saved_events_show_up_in_history(self, db_session, make_user):
        await make_user("kid-1")
        service = AnswerHistoryService(db_session)
        event = AnswerEvent(
            raw_input="I",
            normalized_value="I",
            is_correct=True,
            time_ms=2100,
            question_text="Find the pattern: A, C, E, G, ___?",
            correct_answer="I",
            operation="logic_patterns",
        )

        await service.save_answer_event("kid-1", event, mode="test")

        history = await service.get_history("kid-1")
        assert history[-1]["operation"] == "logic_patterns"
        assert history[-1]["correct"] is True

    async def test_xp_overview(self, db_session, make_user):
        await make_user("kid-1", total_xp=260, daily_question_count=4)

        overview = await StudentProgressAnalytics(db_session).get_xp_overview("kid-1")

        assert overview["level"] == 3
        assert overview["title"] == "Problem Solver"
        assert overview["xp_to_next_level"] == 240
        # No activity recorded today yet
        assert overview["daily_question_count"] == 0
        assert overview["daily_goal_met"] is False
