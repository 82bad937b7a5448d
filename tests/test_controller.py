"""
Classroom controller tests.

Covers the achievement claim state machine (idempotence, single in-flight
generation, prerequisite failures, dismissal), write-through persistence
and the exercise, evaluation, material and tutor commands.
"""

import asyncio

import pytest

from statlab.classroom import Classroom, ClassroomStorage
from statlab.errors import AchievementError
from statlab.schemas import (
    Evaluation,
    EvaluationResult,
    ExerciseDraft,
    GenerationOptions,
    MilestoneStatus,
    StructuredLesson,
    UserProfile,
)

from conftest import FIXED_NOW, IMAGE_BASE64, make_draft


def complete_all(classroom: Classroom, count: int):
    """Mark the first `count` exercises of the course complete."""
    done = 0
    for unit in classroom.state.course.units:
        for lesson in unit.lessons:
            for exercise in lesson.exercises:
                if done == count:
                    return
                classroom.mark_complete(lesson.id, exercise.id)
                done += 1


class TestStartup:
    """Test initial state loading."""

    def test_defaults_on_empty_storage(self, classroom):
        state = classroom.state
        assert state.logged_in is False
        assert state.profile == UserProfile()
        assert state.achievements == {}
        assert state.is_generating is False
        assert state.achievement_display is None
        assert state.total_exercises == 10
        assert state.completed_exercises == 0

    def test_restores_persisted_state(self, sample_course, storage, fake_gateway, narratives):
        first = Classroom(sample_course, storage, fake_gateway, narratives=narratives)
        first.login()
        first.mark_complete("lesson-a1", "lesson-a1-ex1")
        first.update_profile(UserProfile(name="Ana"))

        second = Classroom(sample_course, storage, fake_gateway, narratives=narratives)
        assert second.state.logged_in
        assert second.state.profile.name == "Ana"
        assert second.state.progress.is_completed("lesson-a1", "lesson-a1-ex1")


class TestSession:
    """Test login, navigation and subscriptions."""

    def test_login_logout(self, classroom, storage):
        classroom.login()
        assert classroom.state.logged_in
        assert storage.load_logged_in()

        classroom.select_lesson("lesson-a1")
        classroom.logout()
        assert not classroom.state.logged_in
        assert not storage.load_logged_in()
        assert classroom.state.page == "home"
        assert classroom.state.selected_lesson_id is None

    def test_select_lesson(self, classroom):
        classroom.select_lesson("lesson-b1")
        assert classroom.state.selected_lesson_id == "lesson-b1"
        assert classroom.state.page == "lesson"

    def test_select_unknown_lesson(self, classroom):
        with pytest.raises(KeyError):
            classroom.select_lesson("nope")

    def test_lesson_page_needs_selection(self, classroom):
        classroom.set_page("lesson")
        assert classroom.state.page == "home"

    def test_unknown_view_mode(self, classroom):
        with pytest.raises(ValueError):
            classroom.set_view_mode("admin")

    def test_toggle_test_mode(self, classroom):
        assert classroom.toggle_test_mode() is True
        assert classroom.toggle_test_mode() is False

    def test_subscribers_receive_snapshots(self, classroom):
        seen = []
        unsubscribe = classroom.subscribe(seen.append)
        classroom.toggle_test_mode()
        unsubscribe()
        classroom.toggle_test_mode()
        assert len(seen) == 1
        assert seen[0].test_mode is True

    def test_snapshots_are_not_mutated(self, classroom):
        before = classroom.state
        classroom.mark_complete("lesson-a1", "lesson-a1-ex1")
        assert before.completed_exercises == 0
        assert classroom.state.completed_exercises == 1


class TestMarkComplete:
    """Test progress commands and write-through."""

    def test_mark_complete_persists(self, classroom, storage):
        assert classroom.mark_complete("lesson-a1", "lesson-a1-ex2") is True
        assert storage.load_progress().is_completed("lesson-a1", "lesson-a1-ex2")

    def test_repeat_is_noop(self, classroom):
        classroom.mark_complete("lesson-a1", "lesson-a1-ex1")
        snapshot = classroom.state
        assert classroom.mark_complete("lesson-a1", "lesson-a1-ex1") is False
        assert classroom.state is snapshot
        assert classroom.overall_progress() == (1, 10)

    def test_unknown_exercise(self, classroom):
        with pytest.raises(KeyError):
            classroom.mark_complete("lesson-a1", "missing")

    def test_failed_write_keeps_memory(self, classroom, storage, monkeypatch):
        monkeypatch.setattr(storage, "save_progress", lambda progress: False)
        assert classroom.mark_complete("lesson-a1", "lesson-a1-ex1") is True
        assert classroom.state.progress.is_completed("lesson-a1", "lesson-a1-ex1")

    def test_lesson_stars(self, classroom):
        classroom.mark_complete("lesson-a1", "lesson-a1-ex1")
        classroom.mark_complete("lesson-a1", "lesson-a1-ex2")
        stars = classroom.lesson_stars("lesson-a1")
        assert (stars.completed_count, stars.total_count, stars.stars) == (2, 4, 2)


class TestMilestones:
    """Test milestone availability and status."""

    def test_only_reachable_milestones_offered(self, classroom):
        assert classroom.available_milestones() == [10]

    def test_status_follows_progress(self, classroom):
        assert classroom.milestone_status(10) is MilestoneStatus.LOCKED
        complete_all(classroom, 10)
        assert classroom.milestone_status(10) is MilestoneStatus.UNLOCKABLE

    def test_test_mode_unlocks(self, classroom):
        classroom.toggle_test_mode()
        assert classroom.milestone_statuses() == [(10, MilestoneStatus.UNLOCKABLE)]


class TestClaimAchievement:
    """Test the claim -> generate -> persist state machine."""

    def test_successful_claim(self, classroom, storage, fake_gateway):
        complete_all(classroom, 10)
        display = asyncio.run(classroom.claim_achievement(10))

        assert display.milestone == 10
        assert not display.is_loading
        assert display.error is None
        assert display.content_base64 == IMAGE_BASE64
        assert classroom.state.is_generating is False

        achievement = classroom.state.achievements[10]
        assert achievement.unlocked_at == FIXED_NOW
        assert achievement.title == "Title 10"
        assert storage.load_achievements()[10] == achievement
        assert classroom.milestone_status(10) is MilestoneStatus.CLAIMED
        assert len(fake_gateway.artifact_calls) == 1

    def test_first_claim_uses_profile_photo(self, classroom, fake_gateway):
        classroom.update_profile(UserProfile(photo_base64="cGhvdG8=", photo_mime_type="image/png"))
        classroom.toggle_test_mode()
        asyncio.run(classroom.claim_achievement(10))
        assert fake_gateway.artifact_calls[0].input_image_base64 == "cGhvdG8="

    def test_claimed_milestone_is_not_regenerated(self, classroom, fake_gateway):
        classroom.toggle_test_mode()
        asyncio.run(classroom.claim_achievement(10))
        stored = classroom.state.achievements[10]
        classroom.dismiss_achievement()

        display = asyncio.run(classroom.claim_achievement(10))
        assert len(fake_gateway.artifact_calls) == 1
        assert display.content_base64 == stored.content_base64
        assert display.title == stored.title
        assert classroom.state.achievements[10] is stored

    def test_missing_prerequisite(self, classroom, storage, fake_gateway):
        classroom.toggle_test_mode()
        display = asyncio.run(classroom.claim_achievement(20))

        assert display.error is not None
        assert "milestone 10" in display.error
        assert not display.is_loading
        assert 20 not in classroom.state.achievements
        assert storage.load_achievements() == {}
        assert fake_gateway.artifact_calls == []
        assert classroom.state.is_generating is False

    def test_chained_claims(self, classroom, fake_gateway):
        classroom.toggle_test_mode()
        asyncio.run(classroom.claim_achievement(10))
        asyncio.run(classroom.claim_achievement(20))

        assert set(classroom.state.achievements) == {10, 20}
        assert fake_gateway.artifact_calls[1].input_image_base64 == IMAGE_BASE64

    def test_locked_claim_is_noop(self, classroom, fake_gateway):
        snapshot = classroom.state
        assert asyncio.run(classroom.claim_achievement(10)) is None
        assert classroom.state is snapshot
        assert fake_gateway.artifact_calls == []

    def test_unknown_milestone(self, classroom):
        with pytest.raises(ValueError):
            asyncio.run(classroom.claim_achievement(15))

    def test_claim_during_generation_is_noop(self, classroom, fake_gateway):
        classroom.toggle_test_mode()

        async def scenario():
            fake_gateway.artifact_gate = asyncio.Event()
            first = asyncio.create_task(classroom.claim_achievement(10))
            await asyncio.sleep(0)

            assert classroom.state.is_generating
            assert classroom.state.achievement_display.is_loading
            second = await classroom.claim_achievement(20)
            third = await classroom.claim_achievement(10)

            fake_gateway.artifact_gate.set()
            return await first, second, third

        first, second, third = asyncio.run(scenario())
        assert second is None
        assert third is None
        assert len(fake_gateway.artifact_calls) == 1
        assert first.milestone == 10
        assert set(classroom.state.achievements) == {10}
        assert classroom.state.is_generating is False

    def test_reopening_claimed_reward_during_generation_keeps_pending_result(self, classroom, fake_gateway):
        classroom.toggle_test_mode()
        asyncio.run(classroom.claim_achievement(10))
        fake_gateway.artifact_result = "network down"

        async def scenario():
            fake_gateway.artifact_gate = asyncio.Event()
            pending = asyncio.create_task(classroom.claim_achievement(20))
            await asyncio.sleep(0)

            reopened = await classroom.claim_achievement(10)
            assert classroom.state.achievement_display.milestone == 20
            assert classroom.state.achievement_display.is_loading

            fake_gateway.artifact_gate.set()
            return reopened, await pending

        reopened, result = asyncio.run(scenario())
        assert reopened is None
        assert result.milestone == 20
        assert "network down" in result.error
        assert classroom.state.achievement_display.milestone == 20
        assert "network down" in classroom.state.achievement_display.error
        assert set(classroom.state.achievements) == {10}
        assert classroom.state.is_generating is False

    def test_gateway_error_string(self, classroom, fake_gateway, storage):
        classroom.toggle_test_mode()
        fake_gateway.artifact_result = "The model returned no image."
        display = asyncio.run(classroom.claim_achievement(10))

        assert "The model returned no image." in display.error
        assert classroom.state.achievements == {}
        assert storage.load_achievements() == {}
        assert classroom.state.is_generating is False

    def test_unexpected_exception_releases_flag(self, classroom, fake_gateway):
        classroom.toggle_test_mode()
        fake_gateway.artifact_result = RuntimeError("connection reset")
        display = asyncio.run(classroom.claim_achievement(10))

        assert "connection reset" in display.error
        assert classroom.state.is_generating is False

    def test_retry_after_failure(self, classroom, fake_gateway):
        classroom.toggle_test_mode()
        fake_gateway.artifact_result = AchievementError("busy")
        asyncio.run(classroom.claim_achievement(10))
        assert classroom.state.achievement_display.error

        fake_gateway.artifact_result = None
        display = asyncio.run(classroom.retry_achievement(10))
        assert display.error is None
        assert 10 in classroom.state.achievements
        assert len(fake_gateway.artifact_calls) == 2

    def test_dismiss_during_generation(self, classroom, fake_gateway, storage):
        classroom.toggle_test_mode()

        async def scenario():
            fake_gateway.artifact_gate = asyncio.Event()
            task = asyncio.create_task(classroom.claim_achievement(10))
            await asyncio.sleep(0)
            classroom.dismiss_achievement()
            fake_gateway.artifact_gate.set()
            return await task

        result = asyncio.run(scenario())
        assert result is None
        assert classroom.state.achievement_display is None
        assert 10 in classroom.state.achievements
        assert 10 in storage.load_achievements()

    def test_persistence_failure_keeps_record_in_memory(self, classroom, storage, monkeypatch):
        classroom.toggle_test_mode()
        monkeypatch.setattr(storage, "save_achievements", lambda achievements: False)
        display = asyncio.run(classroom.claim_achievement(10))
        assert display.error is None
        assert 10 in classroom.state.achievements


class TestExercises:
    """Test exercise authoring and answer checking."""

    def test_generate_exercise_records_transcript(self, classroom, fake_gateway):
        result = asyncio.run(classroom.generate_exercise("lesson-a1", "an easy one"))
        assert isinstance(result, ExerciseDraft)

        messages = classroom.state.exercise_chats["lesson-a1"]
        assert [m.role for m in messages] == ["user", "model"]
        assert messages[0].content == "an easy one"
        assert messages[1].content == result
        assert fake_gateway.exercise_calls[0][2] == 4

    def test_chat_session_reused_per_lesson(self, classroom, fake_gateway):
        asyncio.run(classroom.generate_exercise("lesson-a1", "one"))
        asyncio.run(classroom.generate_exercise("lesson-a1", "two"))
        asyncio.run(classroom.generate_exercise("lesson-b1", "three"))
        assert fake_gateway.chats_created == ["Lesson lesson-a1", "Lesson lesson-b1"]

    def test_reset_exercise_chat(self, classroom, fake_gateway):
        asyncio.run(classroom.generate_exercise("lesson-a1", "one"))
        classroom.reset_exercise_chat("lesson-a1")
        assert "lesson-a1" not in classroom.state.exercise_chats
        asyncio.run(classroom.generate_exercise("lesson-a1", "two"))
        assert len(fake_gateway.chats_created) == 2

    def test_save_exercises_appends(self, classroom):
        saved = classroom.save_exercises("lesson-b2", [make_draft("New one"), make_draft("Another")])
        lesson = classroom.state.course.units[1].lessons[1]
        assert [ex.id for ex in lesson.exercises] == [ex.id for ex in saved]
        assert len({ex.id for ex in saved}) == 2
        assert classroom.state.total_exercises == 12

    def test_submit_correct_answer_completes(self, classroom, fake_gateway):
        evaluation = asyncio.run(classroom.submit_answer("lesson-a1", "lesson-a1-ex1", "mean is 2"))
        assert evaluation.result is EvaluationResult.CORRECT
        assert classroom.state.progress.is_completed("lesson-a1", "lesson-a1-ex1")
        assert fake_gateway.evaluate_calls[0][0] == "mean is 2"

    def test_submit_incorrect_answer(self, classroom, fake_gateway):
        fake_gateway.evaluation = Evaluation(result=EvaluationResult.INCORRECT, feedback="No.")
        asyncio.run(classroom.submit_answer("lesson-a1", "lesson-a1-ex1", "mean is 3"))
        assert classroom.state.completed_exercises == 0

    def test_submit_empty_answer_skips_gateway(self, classroom, fake_gateway):
        evaluation = asyncio.run(classroom.submit_answer("lesson-a1", "lesson-a1-ex1", "   "))
        assert evaluation.result is EvaluationResult.EVALUATION_ERROR
        assert fake_gateway.evaluate_calls == []


class TestMaterialAndTutor:
    """Test generated material, lesson Q&A and the tutor chat."""

    def test_generate_and_clear_material(self, classroom, fake_gateway):
        options = GenerationOptions(focus="medicine", length="short")
        result = asyncio.run(classroom.generate_material("lesson-a1", options))
        assert isinstance(result, StructuredLesson)
        assert classroom.state.materials["lesson-a1"] == result
        assert fake_gateway.material_calls == [("Lesson lesson-a1", options)]

        classroom.clear_material("lesson-a1")
        assert "lesson-a1" not in classroom.state.materials

    def test_material_error_not_stored(self, classroom, fake_gateway):
        fake_gateway.material_result = "The AI returned invalid lesson data. Please try again."
        result = asyncio.run(classroom.generate_material("lesson-a1", GenerationOptions()))
        assert isinstance(result, str)
        assert classroom.state.materials == {}

    def test_ask_about_material(self, classroom, fake_gateway):
        asyncio.run(classroom.generate_material("lesson-a1", GenerationOptions()))
        answer = asyncio.run(classroom.ask_about_material("lesson-a1", "What is a mean?"))
        assert answer == "Answer to What is a mean?"
        material_text, _ = fake_gateway.lesson_questions[0]
        assert "<p>Theory</p>" in material_text
        assert material_text == classroom.state.materials["lesson-a1"].as_text()

    def test_ask_without_material(self, classroom):
        with pytest.raises(KeyError):
            asyncio.run(classroom.ask_about_material("lesson-a1", "Why?"))

    def test_open_tutor_sends_greeting_once(self, classroom, fake_gateway):
        asyncio.run(classroom.open_tutor())
        asyncio.run(classroom.open_tutor())
        assert fake_gateway.tutor_messages == ["Hello, what is your question?"]
        assert len(classroom.state.tutor_messages) == 1
        assert classroom.state.tutor_messages[0].role == "model"

    def test_ask_tutor_appends_both_turns(self, classroom):
        reply = asyncio.run(classroom.ask_tutor("What is variance?"))
        assert reply == "Oracle says: What is variance?"
        roles = [m.role for m in classroom.state.tutor_messages]
        assert roles == ["user", "model"]

    def test_logout_clears_chats(self, classroom):
        asyncio.run(classroom.ask_tutor("hi"))
        asyncio.run(classroom.generate_exercise("lesson-a1", "one"))
        classroom.logout()
        assert classroom.state.tutor_messages == ()
        assert classroom.state.exercise_chats == {}


class TestStorageIsolation:
    """Controller works against any ClassroomStorage."""

    def test_fresh_storage_per_test(self, storage):
        assert isinstance(storage, ClassroomStorage)
        assert storage.load_achievements() == {}
