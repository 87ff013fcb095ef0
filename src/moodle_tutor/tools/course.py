"""Course content tools: students, assignments, quizzes, submissions and feedback."""

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from ..moodle import MoodleAPI
from .common import SEPARATOR, ToolContext, format_date, tool_errors


def students_report(api: MoodleAPI, course_id: int) -> str:
    students = api.get_students(course_id)
    if not students:
        return f"No students enrolled in course {course_id}."

    lines = [f"Students in course {course_id} ({len(students)})", SEPARATOR]
    for student in students:
        lines.append(f"{student.full_name} (ID: {student.id})")
        lines.append(f"   Username: {student.username}")
        lines.append(f"   Email: {student.email}")
    return "\n".join(lines)


def assignments_report(api: MoodleAPI, course_id: int) -> str:
    assignments = api.get_assignments(course_id)
    if not assignments:
        return f"No assignments found in course {course_id}."

    lines = [f"Assignments in course {course_id} ({len(assignments)})", SEPARATOR]
    for assignment in assignments:
        lines.append(f"{assignment.name} (ID: {assignment.id})")
        lines.append(f"   Due: {format_date(assignment.due_date, 'No due date')}")
        lines.append(f"   Opens: {format_date(assignment.allow_submissions_from, 'Always open')}")
        if assignment.cutoff_date:
            lines.append(f"   Cut-off: {format_date(assignment.cutoff_date)}")
        lines.append(f"   Max grade: {assignment.max_grade:g}")
    return "\n".join(lines)


def quizzes_report(api: MoodleAPI, course_id: int) -> str:
    quizzes = api.get_quizzes(course_id)
    if not quizzes:
        return f"No quizzes found in course {course_id}."

    lines = [f"Quizzes in course {course_id} ({len(quizzes)})", SEPARATOR]
    for quiz in quizzes:
        lines.append(f"{quiz.name} (ID: {quiz.id})")
        lines.append(f"   Opens: {format_date(quiz.time_open, 'Always open')}")
        lines.append(f"   Closes: {format_date(quiz.time_close, 'No close date')}")
        lines.append(f"   Max grade: {quiz.grade:g}")
    return "\n".join(lines)


def student_submissions_report(
    api: MoodleAPI, course_id: int, student_id: int, assignment_id: int | None = None
) -> str:
    """Submission status and grade of one student, per assignment."""
    assignments = api.get_assignments(course_id)
    if assignment_id is not None:
        assignments = [a for a in assignments if a.id == assignment_id]

    if not assignments:
        return "No assignments found for the given criteria."

    lines = [f"Submissions of student {student_id} in course {course_id}", SEPARATOR]
    for assignment in assignments:
        lines.append(f"{assignment.name} (ID: {assignment.id})")

        submission = next(
            (s for s in api.get_submissions(assignment.id) if s.user_id == student_id),
            None,
        )
        if submission is None:
            lines.append("   Not submitted")
            continue

        grade = next(
            (g.grade for g in api.get_assignment_grades(assignment.id) if g.user_id == student_id),
            None,
        )
        lines.append(f"   Status: {submission.status}")
        lines.append(f"   Last modified: {format_date(submission.submitted_at)}")
        lines.append(
            f"   Grade: {grade:g}/{assignment.max_grade:g}" if grade is not None else "   Grade: Not graded"
        )

    return "\n".join(lines)


def provide_feedback_action(
    api: MoodleAPI, student_id: int, assignment_id: int, feedback: str, grade: float | None = None
) -> str:
    if not feedback.strip():
        raise ToolError("Feedback text is required")

    api.save_grade(
        assignment_id=assignment_id,
        user_id=student_id,
        grade=grade if grade is not None else 0.0,
        feedback_html=feedback,
        workflow_state="released",
    )
    return f"Feedback saved for student {student_id} on assignment {assignment_id}."


def register_course_tools(mcp: FastMCP, ctx: ToolContext) -> None:
    """Register course content MCP tools."""

    @mcp.tool()
    @tool_errors("getting students")
    def get_students(course_id: int | None = None) -> str:
        """List the students enrolled in a course.

        Args:
            course_id: Moodle course ID (defaults to the configured course)
        """
        return students_report(ctx.api, ctx.course(course_id))

    @mcp.tool()
    @tool_errors("getting assignments")
    def get_assignments(course_id: int | None = None) -> str:
        """List the assignments of a course with due dates and max grades.

        Args:
            course_id: Moodle course ID (defaults to the configured course)
        """
        return assignments_report(ctx.api, ctx.course(course_id))

    @mcp.tool()
    @tool_errors("getting quizzes")
    def get_quizzes(course_id: int | None = None) -> str:
        """List the quizzes of a course.

        Args:
            course_id: Moodle course ID (defaults to the configured course)
        """
        return quizzes_report(ctx.api, ctx.course(course_id))

    @mcp.tool()
    @tool_errors("getting student submissions")
    def get_student_submissions(
        student_id: int, assignment_id: int | None = None, course_id: int | None = None
    ) -> str:
        """Show a student's submissions and grades.

        Args:
            student_id: Moodle user ID of the student
            assignment_id: Only this assignment (all assignments when omitted)
            course_id: Moodle course ID (defaults to the configured course)
        """
        return student_submissions_report(ctx.api, ctx.course(course_id), student_id, assignment_id)

    @mcp.tool()
    @tool_errors("providing feedback")
    def provide_feedback(
        student_id: int, assignment_id: int, feedback: str, grade: float | None = None
    ) -> str:
        """Save a grade and feedback comment on a student's assignment submission.

        Args:
            student_id: Moodle user ID of the student
            assignment_id: Assignment instance ID
            feedback: Feedback text (HTML allowed)
            grade: Numeric grade, 0 when omitted
        """
        return provide_feedback_action(ctx.api, student_id, assignment_id, feedback, grade)
