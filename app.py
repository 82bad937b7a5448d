"""
StatLab - Statistics Course Portal

Streamlit application pairing a teacher mode (AI-assisted exercise
authoring, PDF export) with a student mode (answer checking, generated
lesson material, a tutor chat and milestone rewards).

Usage:
    streamlit run app.py
"""

import asyncio
import base64
import logging

import streamlit as st

from statlab.ai import GeminiGateway
from statlab.classroom import (
    Classroom,
    ClassroomStorage,
    KeyValueStore,
    Navigator,
    completion_percent,
    find_lesson,
    find_unit_for_lesson,
    load_course,
    load_lesson_content,
)
from statlab.config import load_settings
from statlab.errors import ExportError
from statlab.export import (
    ExportScope,
    SolutionDetail,
    build_exercise_pdf,
    export_filename,
    select_exercises,
)
from statlab.schemas import (
    EvaluationResult,
    ExerciseDraft,
    GenerationOptions,
    MilestoneStatus,
    StructuredLesson,
    UserProfile,
)
from statlab.viewer import (
    decode_artifact,
    get_achievement_css,
    get_exercise_css,
    get_material_css,
    get_progress_css,
    milestone_label,
    next_tier_label,
    render_achievement_panel,
    render_exercise_header,
    render_feedback,
    render_lesson_stars,
    render_progress_bar,
    render_stars_text,
    render_structured_lesson,
    solution_tiers,
)


logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

st.set_page_config(
    page_title="StatLab",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="expanded",
)


# -----------------------------------------------------------------------------
# Session State Initialization
# -----------------------------------------------------------------------------

def init_session_state():
    """Initialize session state variables."""
    if "settings" not in st.session_state:
        st.session_state.settings = load_settings()

    # One event loop per session; gateway chats are bound to it
    if "loop" not in st.session_state:
        st.session_state.loop = asyncio.new_event_loop()

    if "classroom" not in st.session_state:
        settings = st.session_state.settings
        st.session_state.startup_error = None
        try:
            gateway = GeminiGateway(settings=settings)
            course = load_course(settings.catalog_path)
        except (ValueError, FileNotFoundError) as e:
            logger.error(f"Could not start StatLab: {e}")
            st.session_state.startup_error = str(e)
            st.session_state.classroom = None
        else:
            storage = ClassroomStorage(KeyValueStore(settings.db_path))
            st.session_state.classroom = Classroom(course, storage, gateway)

    # View-local state: revealed solution tiers and last evaluation per exercise
    if "revealed_tiers" not in st.session_state:
        st.session_state.revealed_tiers = {}
    if "evaluations" not in st.session_state:
        st.session_state.evaluations = {}
    if "saved_drafts" not in st.session_state:
        st.session_state.saved_drafts = set()
    if "pdf_export" not in st.session_state:
        st.session_state.pdf_export = None


def run_async(coro):
    """Run a classroom coroutine on the session's event loop."""
    return st.session_state.loop.run_until_complete(coro)


def get_classroom() -> Classroom:
    return st.session_state.classroom


# -----------------------------------------------------------------------------
# Login
# -----------------------------------------------------------------------------

def render_login():
    """Render the login screen."""
    _, col, _ = st.columns([1, 2, 1])
    with col:
        st.title("📊 StatLab")
        st.markdown("#### Statistics Course Portal")
        st.markdown("Sign in to access the student portal.")
        if st.button("Sign in", type="primary", use_container_width=True):
            get_classroom().login()
            st.rerun()


# -----------------------------------------------------------------------------
# Sidebar
# -----------------------------------------------------------------------------

def render_sidebar():
    """Render the sidebar with profile, progress, rewards and curriculum."""
    classroom = get_classroom()
    state = classroom.state

    st.sidebar.title("📊 StatLab")
    st.sidebar.caption("Statistics Course Portal")

    render_profile()

    # Progress summary
    completed, total = classroom.overall_progress()
    st.sidebar.markdown(get_progress_css(), unsafe_allow_html=True)
    st.sidebar.markdown(render_progress_bar(completed, total), unsafe_allow_html=True)

    render_milestones()

    st.sidebar.divider()
    col1, col2 = st.sidebar.columns(2)
    with col1:
        if st.button("🏠 Home", use_container_width=True):
            classroom.set_page("home")
            st.rerun()
    with col2:
        if st.button("ℹ️ About", use_container_width=True):
            classroom.set_page("about")
            st.rerun()

    render_curriculum_tree()

    st.sidebar.divider()
    test_mode = st.sidebar.toggle(
        "Test mode (unlock all rewards)",
        value=state.test_mode,
    )
    if test_mode != state.test_mode:
        classroom.toggle_test_mode()
        st.rerun()

    if st.sidebar.button("Sign out", use_container_width=True):
        classroom.logout()
        st.session_state.revealed_tiers = {}
        st.session_state.evaluations = {}
        st.rerun()


def render_profile():
    """Profile card with an optional photo used for the first reward."""
    classroom = get_classroom()
    profile = classroom.state.profile

    if profile.has_photo:
        st.sidebar.image(base64.b64decode(profile.photo_base64), width=96)
    st.sidebar.markdown(f"**{profile.name}**  \n{profile.email}")

    with st.sidebar.expander("Edit profile"):
        name = st.text_input("Name", value=profile.name)
        email = st.text_input("Email", value=profile.email)
        photo = st.file_uploader("Photo", type=["png", "jpg", "jpeg", "webp"])
        if st.button("Save profile"):
            update = {"name": name, "email": email}
            if photo is not None:
                update["photo_base64"] = base64.b64encode(photo.getvalue()).decode("ascii")
                update["photo_mime_type"] = photo.type
            classroom.update_profile(profile.model_copy(update=update))
            st.rerun()
        if profile.has_photo and st.button("Remove photo"):
            classroom.update_profile(UserProfile(name=profile.name, email=profile.email))
            st.rerun()


def render_milestones():
    """Milestone reward buttons."""
    classroom = get_classroom()
    statuses = classroom.milestone_statuses()
    if not statuses:
        return

    st.sidebar.subheader("🏆 My Rewards")
    for milestone, status in statuses:
        if st.sidebar.button(
            milestone_label(milestone, status),
            key=f"milestone_{milestone}",
            disabled=status is MilestoneStatus.LOCKED or classroom.state.is_generating,
            use_container_width=True,
        ):
            claim_reward(milestone)


def claim_reward(milestone: int):
    with st.spinner("Generating your reward..."):
        run_async(get_classroom().claim_achievement(milestone))
    st.rerun()


def render_curriculum_tree():
    """Render the curriculum tree with lesson navigation."""
    classroom = get_classroom()
    state = classroom.state
    nav = Navigator(state.course, state.progress)

    st.sidebar.divider()
    st.sidebar.subheader("Course Content")

    current_unit = find_unit_for_lesson(state.course, state.selected_lesson_id or "")
    for nav_unit in nav.get_navigation_tree(state.selected_lesson_id):
        unit = nav_unit.unit
        unit_progress = f"({nav_unit.completed_count}/{nav_unit.total_count})"
        expanded = current_unit is not None and current_unit.id == unit.id
        with st.sidebar.expander(f"**{unit.title}** {unit_progress}", expanded=expanded):
            for nav_lesson in nav_unit.lessons:
                lesson = nav_lesson.lesson
                indicator = nav.get_status_indicator(lesson.id, state.selected_lesson_id)
                stars = render_stars_text(nav_lesson.stars.stars)
                label = lesson.title[:28] + "..." if len(lesson.title) > 28 else lesson.title
                if st.button(
                    f"{indicator} {label} {stars}",
                    key=f"lesson_{lesson.id}",
                    type="primary" if nav_lesson.is_current else "secondary",
                    use_container_width=True,
                ):
                    select_lesson(lesson.id)


def select_lesson(lesson_id: str):
    """Select a lesson and update state."""
    get_classroom().select_lesson(lesson_id)
    st.session_state.pdf_export = None
    st.rerun()


# -----------------------------------------------------------------------------
# Achievement Panel
# -----------------------------------------------------------------------------

def render_achievement_panel_section():
    """Show the reward panel while a display is open."""
    classroom = get_classroom()
    display = classroom.state.achievement_display
    if display is None:
        return

    st.markdown(get_achievement_css(), unsafe_allow_html=True)
    with st.container(border=True):
        st.markdown(render_achievement_panel(display), unsafe_allow_html=True)

        artifact = decode_artifact(display)
        if artifact is not None:
            st.image(artifact, use_container_width=True)

        col1, col2 = st.columns(2)
        with col1:
            if display.error and st.button("Try again", key="achievement_retry"):
                with st.spinner("Generating your reward..."):
                    run_async(classroom.retry_achievement(display.milestone))
                st.rerun()
        with col2:
            if st.button("Close", key="achievement_close"):
                classroom.dismiss_achievement()
                st.rerun()


# -----------------------------------------------------------------------------
# Home & About
# -----------------------------------------------------------------------------

def render_home():
    classroom = get_classroom()
    state = classroom.state
    completed, total = classroom.overall_progress()

    st.title(f"Welcome, {state.profile.name}!")
    st.subheader("Your Progress 🚀")
    col1, col2 = st.columns(2)
    col1.metric("Exercises completed", f"{completed} / {total}")
    col2.metric("Course completion", f"{completion_percent(completed, total):g}%")
    st.progress(completion_percent(completed, total) / 100)

    st.subheader("Quick Access")
    nav = Navigator(state.course, state.progress)
    recommended = nav.get_recommended_lesson_id()
    if recommended:
        lesson = find_lesson(state.course, recommended)
        if st.button(f"Continue: {lesson.title}", type="primary"):
            select_lesson(recommended)

    st.markdown(get_progress_css(), unsafe_allow_html=True)
    for nav_unit in nav.get_navigation_tree():
        st.markdown(f"**{nav_unit.unit.title}**")
        for nav_lesson in nav_unit.lessons:
            st.markdown(
                f"{nav_lesson.lesson.title} {render_lesson_stars(nav_lesson.stars)}",
                unsafe_allow_html=True,
            )


def render_about():
    st.title("About StatLab")
    st.markdown("""
StatLab is a practice portal for an introductory statistics course.

**Teacher mode**
- Generate new exercises for a lesson by chatting with the AI assistant.
- Save the proposals you like; they are appended to the lesson.
- Export exercise sheets to PDF for a lesson, a unit or the whole course,
  with as much of each solution as you want.

**Student mode**
- Answer exercises and get instant feedback.
- Reveal a hint, a starting guide and the full solution, one step at a time.
- Generate personalised lesson material and ask questions about it.
- Ask the Statistical Oracle, a grumpy but brilliant tutor, anything about the course.
- Every 10 completed exercises unlock a generated reward.
    """)


# -----------------------------------------------------------------------------
# Main Content: Lesson View
# -----------------------------------------------------------------------------

def render_lesson_view():
    """Render the selected lesson in the chosen mode."""
    classroom = get_classroom()
    state = classroom.state
    lesson = find_lesson(state.course, state.selected_lesson_id)
    if lesson is None:
        st.info("Select a lesson from the sidebar to begin.")
        return

    unit = find_unit_for_lesson(state.course, lesson.id)
    st.caption(unit.title if unit else "")
    st.title(lesson.title)

    render_navigation_bar(lesson.id)

    mode = st.radio(
        "View",
        ["Student", "Teacher"],
        index=0 if state.view_mode == "student" else 1,
        horizontal=True,
        label_visibility="collapsed",
    )
    if mode.lower() != state.view_mode:
        classroom.set_view_mode(mode.lower())
        st.rerun()

    if state.view_mode == "teacher":
        render_teacher_view(lesson)
    else:
        render_student_view(lesson)


def render_navigation_bar(lesson_id: str):
    """Render navigation bar with prev/next buttons."""
    state = get_classroom().state
    nav = Navigator(state.course, state.progress)
    pos, total = nav.get_lesson_position(lesson_id)

    prev_id = nav.get_previous_lesson_id(lesson_id)
    next_id = nav.get_next_lesson_id(lesson_id)

    col1, col2, col3 = st.columns([1, 2, 1])

    with col1:
        if prev_id and st.button("← Previous", use_container_width=True):
            select_lesson(prev_id)

    with col2:
        st.markdown(f"<center>Lesson {pos} of {total}</center>", unsafe_allow_html=True)

    with col3:
        if next_id and st.button("Next →", use_container_width=True):
            select_lesson(next_id)


# -----------------------------------------------------------------------------
# Teacher Mode
# -----------------------------------------------------------------------------

def render_teacher_view(lesson):
    content_tab, exercises_tab, generate_tab, export_tab = st.tabs(
        ["📖 Lesson", "📝 Exercises", "✨ Generate", "📄 Export PDF"]
    )

    with content_tab:
        content = load_lesson_content(lesson, st.session_state.settings.catalog_path)
        if content:
            st.markdown(content)
        else:
            st.warning("The content for this lesson could not be loaded.")

    with exercises_tab:
        st.markdown(get_exercise_css(), unsafe_allow_html=True)
        if not lesson.exercises:
            st.info("No exercises yet. Use the Generate tab to create some.")
        for number, exercise in enumerate(lesson.exercises, 1):
            st.markdown(render_exercise_header(exercise, number), unsafe_allow_html=True)
            st.markdown(exercise.problem_statement)
            with st.expander("Solution"):
                for label, body in solution_tiers(exercise, 3):
                    st.markdown(f"**{label}**")
                    st.markdown(body)

    with generate_tab:
        render_exercise_chat(lesson)

    with export_tab:
        render_export(lesson)


def render_exercise_chat(lesson):
    """AI dialogue that proposes exercises for the lesson."""
    classroom = get_classroom()
    messages = classroom.state.exercise_chats.get(lesson.id, ())

    st.markdown(get_exercise_css(), unsafe_allow_html=True)
    for index, message in enumerate(messages):
        with st.chat_message("user" if message.role == "user" else "assistant"):
            if isinstance(message.content, ExerciseDraft):
                render_draft(lesson.id, message.content, f"{lesson.id}-{index}")
            else:
                st.markdown(message.content)

    if messages and st.button("Start a new conversation", key=f"reset_chat_{lesson.id}"):
        classroom.reset_exercise_chat(lesson.id)
        st.rerun()

    instruction = st.chat_input(
        "Describe the exercise you want (e.g. 'a hard calculation about variance')",
        key=f"exercise_input_{lesson.id}",
    )
    if instruction:
        with st.spinner("Generating exercise..."):
            run_async(classroom.generate_exercise(lesson.id, instruction))
        st.rerun()


def render_draft(lesson_id: str, draft: ExerciseDraft, draft_key: str):
    st.markdown(render_exercise_header(draft, 1, title="Proposal"), unsafe_allow_html=True)
    st.markdown(draft.problem_statement)
    with st.expander("Solution"):
        for label, body in solution_tiers(draft, 3):
            st.markdown(f"**{label}**")
            st.markdown(body)

    saved = draft_key in st.session_state.saved_drafts
    if st.button("✓ Saved" if saved else "Save exercise", key=f"save_{draft_key}", disabled=saved):
        get_classroom().save_exercise(lesson_id, draft)
        st.session_state.saved_drafts.add(draft_key)
        st.rerun()


def render_export(lesson):
    """PDF export of the lesson, its unit or the whole course."""
    state = get_classroom().state

    col1, col2 = st.columns(2)
    with col1:
        scope = st.selectbox(
            "Scope",
            list(ExportScope),
            format_func=lambda s: {"lesson": "This lesson", "unit": "This unit", "course": "Whole course"}[s.value],
        )
    with col2:
        detail = st.selectbox(
            "Solutions",
            list(SolutionDetail),
            index=3,
            format_func=lambda d: {
                "none": "No solutions",
                "hint": "Hints only",
                "guide": "Hints and starting guides",
                "full": "Full solutions",
            }[d.value],
        )

    if st.button("Build PDF", type="primary"):
        try:
            selection = select_exercises(state.course, scope, lesson.id)
        except ExportError as e:
            st.warning(str(e))
        else:
            with st.spinner("Building PDF..."):
                st.session_state.pdf_export = (
                    export_filename(selection),
                    build_exercise_pdf(selection, detail),
                )

    if st.session_state.pdf_export:
        filename, data = st.session_state.pdf_export
        st.download_button("⬇️ Download PDF", data=data, file_name=filename, mime="application/pdf")


# -----------------------------------------------------------------------------
# Student Mode
# -----------------------------------------------------------------------------

def render_student_view(lesson):
    exercises_tab, content_tab, material_tab, tutor_tab = st.tabs(
        ["📝 Exercises", "📖 Lesson", "✨ Interactive material", "🦉 Tutor"]
    )

    with exercises_tab:
        render_student_exercises(lesson)

    with content_tab:
        content = load_lesson_content(lesson, st.session_state.settings.catalog_path)
        if content:
            st.markdown(content)
        else:
            st.warning("The content for this lesson could not be loaded.")

    with material_tab:
        render_material(lesson)

    with tutor_tab:
        render_tutor()


def render_student_exercises(lesson):
    classroom = get_classroom()
    progress = classroom.state.progress

    stars = classroom.lesson_stars(lesson.id)
    st.markdown(get_progress_css(), unsafe_allow_html=True)
    st.markdown(
        f"{render_lesson_stars(stars)} {stars.completed_count}/{stars.total_count} completed",
        unsafe_allow_html=True,
    )

    if not lesson.exercises:
        st.info("No exercises yet. Ask your teacher to generate some for this lesson.")
        return

    st.markdown(get_exercise_css(), unsafe_allow_html=True)
    for number, exercise in enumerate(lesson.exercises, 1):
        completed = progress.is_completed(lesson.id, exercise.id)
        with st.container(border=True):
            st.markdown(render_exercise_header(exercise, number, completed), unsafe_allow_html=True)
            st.markdown(exercise.problem_statement)
            render_answer_box(lesson.id, exercise, completed)
            render_solution_tiers(exercise)


def render_answer_box(lesson_id: str, exercise, completed: bool):
    classroom = get_classroom()
    answer = st.text_area(
        "Your answer",
        key=f"answer_{exercise.id}",
        placeholder="Type your answer here...",
        disabled=completed,
    )

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Check answer", key=f"check_{exercise.id}", disabled=completed, type="primary"):
            with st.spinner("Checking your answer..."):
                evaluation = run_async(classroom.submit_answer(lesson_id, exercise.id, answer))
            st.session_state.evaluations[exercise.id] = evaluation
            if evaluation.result is EvaluationResult.CORRECT:
                st.balloons()
            st.rerun()
    with col2:
        if not completed and st.button(
            "Mark as complete",
            key=f"complete_{exercise.id}",
            help="Mark this exercise as completed without checking the answer.",
        ):
            classroom.mark_complete(lesson_id, exercise.id)
            st.rerun()

    evaluation = st.session_state.evaluations.get(exercise.id)
    if evaluation is not None:
        st.markdown(render_feedback(evaluation), unsafe_allow_html=True)


def render_solution_tiers(exercise):
    revealed = st.session_state.revealed_tiers.get(exercise.id, 0)
    for label, body in solution_tiers(exercise, revealed):
        st.markdown(f"**{label}**")
        st.markdown(body)

    label = next_tier_label(revealed)
    if label and st.button(label, key=f"tier_{exercise.id}"):
        st.session_state.revealed_tiers[exercise.id] = revealed + 1
        st.rerun()


def render_material(lesson):
    """Personalised lesson material and Q&A over it."""
    classroom = get_classroom()
    material = classroom.state.materials.get(lesson.id)

    if material is None:
        st.subheader("Lesson Material Generator")
        with st.form(key=f"material_form_{lesson.id}"):
            focus = st.text_input(
                "Focus area (optional)",
                help="Ask for examples applied to a field you're interested in.",
            )
            col1, col2 = st.columns(2)
            with col1:
                length = st.select_slider("Length", ["short", "medium", "long"], value="medium")
            with col2:
                level = st.select_slider(
                    "Language level", ["beginner", "intermediate", "advanced"], value="intermediate"
                )
            use_emojis = st.checkbox("Use emojis", value=True)
            submitted = st.form_submit_button("Generate material", type="primary")

        if submitted:
            options = GenerationOptions(focus=focus, length=length, level=level, use_emojis=use_emojis)
            with st.spinner("Writing your lesson material..."):
                result = run_async(classroom.generate_material(lesson.id, options))
            if isinstance(result, StructuredLesson):
                st.rerun()
            st.error(result)
        return

    st.subheader("Your Personalised Lesson Material")
    st.markdown(get_material_css(), unsafe_allow_html=True)
    st.markdown(render_structured_lesson(material), unsafe_allow_html=True)
    if st.button("Generate new material", key=f"clear_material_{lesson.id}"):
        classroom.clear_material(lesson.id)
        st.rerun()

    st.divider()
    st.markdown("**Questions about this material? Ask the tutor.**")
    question = st.text_input("Your question", key=f"material_question_{lesson.id}")
    if st.button("Ask", key=f"material_ask_{lesson.id}") and question.strip():
        with st.spinner("Thinking..."):
            answer = run_async(classroom.ask_about_material(lesson.id, question))
        st.markdown(answer)


def render_tutor():
    """Free chat with the statistics tutor."""
    classroom = get_classroom()
    st.subheader("🦉 The Statistical Oracle")
    st.caption("An ancient statistics expert. Short-tempered, but never wrong.")

    if not classroom.state.tutor_messages:
        if st.button("Start chatting"):
            with st.spinner("Summoning the Oracle..."):
                run_async(classroom.open_tutor())
            st.rerun()
        return

    for message in classroom.state.tutor_messages:
        with st.chat_message("user" if message.role == "user" else "assistant"):
            st.markdown(message.content)

    prompt = st.chat_input("Ask a statistics question", key="tutor_input")
    if prompt:
        with st.spinner("Thinking..."):
            run_async(classroom.ask_tutor(prompt))
        st.rerun()


# -----------------------------------------------------------------------------
# Main App
# -----------------------------------------------------------------------------

def main():
    """Main application entry point."""
    init_session_state()

    if st.session_state.classroom is None:
        st.error(f"StatLab could not start: {st.session_state.startup_error}")
        st.code("# .env\nGEMINI_API_KEY=your-key-here")
        return

    classroom = get_classroom()
    if not classroom.state.logged_in:
        render_login()
        return

    render_sidebar()
    render_achievement_panel_section()

    # Main content based on page
    page = classroom.state.page
    if page == "lesson":
        render_lesson_view()
    elif page == "about":
        render_about()
    else:
        render_home()


if __name__ == "__main__":
    main()
