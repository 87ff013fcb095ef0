"""Quiz result tools: attempts, grades, leaderboards, completion and chart series."""

import json
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from ..moodle import MoodleAPI, Quiz, QuizResult
from .common import SEPARATOR, ToolContext, format_date, format_percent, tool_errors

SORT_KEYS = ("score", "name", "attempts")


def grade_band(percentage: float) -> str:
    """Describe a percentage as a performance band."""
    if percentage >= 90:
        return "Excellent"
    if percentage >= 70:
        return "Good"
    if percentage >= 50:
        return "Pass"
    return "Needs improvement"


def _attempt_percentage(sum_grades: float, max_score: float) -> float:
    return sum_grades / max_score * 100 if max_score > 0 else 0.0


def _by_percentage(result: QuizResult) -> float:
    return result.percentage if result.percentage is not None else -1.0


def collect_quiz_results(api: MoodleAPI, quiz: Quiz, user_ids: list[int]) -> list[QuizResult]:
    return [api.get_quiz_result(quiz, user_id) for user_id in user_ids]


# -----------------------------------------------------------------------------
# Reports
# -----------------------------------------------------------------------------


def student_quiz_attempts_report(api: MoodleAPI, student_id: int, quiz_id: int) -> str:
    """Every attempt of a student at a quiz, best attempt and first-to-last progress."""
    attempts = api.get_user_attempts(quiz_id, student_id, status="all")
    if not attempts:
        return (
            f"Student {student_id} has not attempted quiz {quiz_id} yet.\n\n"
            "Possible reasons:\n"
            "- The student has not started the quiz\n"
            "- The quiz is not available to the student\n"
            "- Wrong student ID or quiz ID"
        )

    result = QuizResult(quiz=Quiz(id=quiz_id, name=f"Quiz {quiz_id}"), user_id=student_id, attempts=attempts)
    best = result.best_attempt
    max_score = result.max_score

    def score_line(attempt) -> str:
        attempt_max = attempt.max_grade or max_score
        pct = _attempt_percentage(attempt.sum_grades, attempt_max)
        return f"{attempt.sum_grades:.2f}/{attempt_max:g} ({pct:.1f}%)"

    lines = [
        f"Quiz attempts of student {student_id} at quiz {quiz_id}",
        SEPARATOR,
        f"Total attempts: {len(attempts)}",
        f"Best score: {score_line(best)}",
        f"Status: {best.state}",
        "",
        "All attempts:",
    ]
    for attempt in attempts:
        marker = " (best)" if attempt is best else ""
        lines.append(f"Attempt #{attempt.attempt}{marker}")
        lines.append(f"   Score: {score_line(attempt)}")
        lines.append(f"   State: {attempt.state}")
        if attempt.time_start:
            lines.append(f"   Started: {format_date(attempt.time_start)}")
        if attempt.time_finish:
            lines.append(f"   Finished: {format_date(attempt.time_finish)}")
        if attempt.duration_minutes is not None:
            lines.append(f"   Duration: {attempt.duration_minutes} minutes")

    if len(attempts) > 1:
        first, last = attempts[0], attempts[-1]
        first_pct = _attempt_percentage(first.sum_grades, first.max_grade or max_score)
        last_pct = _attempt_percentage(last.sum_grades, last.max_grade or max_score)
        change = last_pct - first_pct
        if change > 0:
            trend = "improving"
        elif change < 0:
            trend = "declining"
        else:
            trend = "same level"
        lines += [
            "",
            "Progress:",
            f"   First attempt: {first_pct:.1f}%",
            f"   Last attempt: {last_pct:.1f}%",
            f"   Change: {change:+.1f}% ({trend})",
        ]

    return "\n".join(lines)


def student_all_quiz_results_report(api: MoodleAPI, course_id: int, student_id: int) -> str:
    quizzes = api.get_quizzes(course_id)
    if not quizzes:
        return f"No quizzes found in course {course_id}."

    results = [api.get_quiz_result(quiz, student_id) for quiz in quizzes]
    attempted = sorted((r for r in results if r.attempted), key=_by_percentage, reverse=True)
    not_attempted = [r for r in results if not r.attempted]

    lines = [f"Quiz results of student {student_id} in course {course_id}", SEPARATOR]
    lines.append(f"Quizzes: {len(quizzes)}, attempted: {len(attempted)}, not attempted: {len(not_attempted)}")

    if attempted:
        average = sum(r.percentage for r in attempted) / len(attempted)
        lines.append(f"Average score: {average:.1f}%")
        lines.append("")
        for result in attempted:
            lines.append(f"{result.quiz.name} (ID: {result.quiz.id})")
            lines.append(
                f"   Best: {result.best_score:.2f}/{result.max_score:g} ({format_percent(result.percentage)})"
                f" - {grade_band(result.percentage)}"
            )
            lines.append(f"   Attempts: {len(result.attempts)}")

    if not_attempted:
        lines.append("")
        lines.append("Not attempted:")
        lines.extend(f"   {r.quiz.name} (ID: {r.quiz.id})" for r in not_attempted)

    return "\n".join(lines)


def student_quiz_grade_report(api: MoodleAPI, course_id: int, student_id: int, quiz_id: int) -> str:
    quiz = api.get_quiz(course_id, quiz_id)
    grade = api.get_user_best_grade(quiz_id, student_id)
    if grade is None:
        return (
            f"Student {student_id} has not completed quiz {quiz_id} yet.\n"
            "Use get_student_quiz_attempts to see unfinished attempts."
        )

    # Moodle reports the best grade on the quiz's own grade scale
    max_grade = quiz.grade or 100.0
    percentage = grade / max_grade * 100
    return "\n".join(
        [
            f"Grade of student {student_id} at {quiz.name}",
            SEPARATOR,
            f"Best grade: {grade:.2f}/{max_grade:g}",
            f"Percentage: {format_percent(percentage)}",
            f"Status: {grade_band(percentage)}",
        ]
    )


def compare_students_report(api: MoodleAPI, student_ids: list[int], quiz_id: int) -> str:
    if not student_ids:
        raise ToolError("student_ids must contain at least one student")

    quiz = Quiz(id=quiz_id, name=f"Quiz {quiz_id}")
    results = sorted(collect_quiz_results(api, quiz, student_ids), key=_by_percentage, reverse=True)
    attempted = [r for r in results if r.attempted]

    lines = [f"Quiz performance comparison - quiz {quiz_id}", SEPARATOR]
    lines.append(f"Students compared: {len(student_ids)}")
    lines.append(f"Completed: {len(attempted)}")
    if attempted:
        percentages = [r.percentage for r in attempted]
        lines.append(f"Average: {sum(percentages) / len(percentages):.1f}%")
        lines.append(f"Best: {max(percentages):.1f}%")
        lines.append(f"Worst: {min(percentages):.1f}%")
    lines.append("")

    for rank, result in enumerate(results, start=1):
        if result.attempted:
            lines.append(f"#{rank} Student {result.user_id}")
            lines.append(
                f"   Score: {result.best_score:.2f}/{result.max_score:g} ({format_percent(result.percentage)})"
            )
            lines.append(f"   Attempts: {len(result.attempts)}")
        else:
            lines.append(f"   Student {result.user_id} - not attempted")

    return "\n".join(lines)


def _leaderboard(api: MoodleAPI, course_id: int, quiz_id: int) -> tuple[Quiz, list[tuple[str, QuizResult]]]:
    quiz = api.get_quiz(course_id, quiz_id)
    students = api.get_students(course_id)
    rows = [(s.full_name, api.get_quiz_result(quiz, s.id)) for s in students]
    return quiz, rows


def quiz_leaderboard_report(api: MoodleAPI, course_id: int, quiz_id: int, sort_by: str = "score") -> str:
    """Ranked results of every student at a quiz.

    Raises:
        ToolError: If sort_by is not one of score, name or attempts
    """
    if sort_by not in SORT_KEYS:
        raise ToolError(f"sort_by must be one of: {', '.join(SORT_KEYS)}")

    quiz, rows = _leaderboard(api, course_id, quiz_id)
    if not rows:
        return f"No students enrolled in course {course_id}."

    if sort_by == "score":
        rows.sort(key=lambda row: _by_percentage(row[1]), reverse=True)
    elif sort_by == "name":
        rows.sort(key=lambda row: row[0].lower())
    else:
        rows.sort(key=lambda row: len(row[1].attempts), reverse=True)

    completed = [r for _, r in rows if r.attempted]
    lines = [f"Leaderboard - {quiz.name}", SEPARATOR]
    lines.append(f"Students: {len(rows)}, completed: {len(completed)}")
    if completed:
        average = sum(r.percentage for r in completed) / len(completed)
        passed = sum(1 for r in completed if r.percentage >= 50)
        lines.append(f"Average: {average:.1f}%")
        lines.append(f"Pass rate (>=50%): {passed}/{len(completed)}")
    lines.append("")

    rank = 0
    for name, result in rows:
        if result.attempted:
            rank += 1
            lines.append(
                f"#{rank} {name} (ID: {result.user_id}): {format_percent(result.percentage)}"
                f", {len(result.attempts)} attempt(s)"
            )
        else:
            lines.append(f"   {name} (ID: {result.user_id}): not attempted")

    return "\n".join(lines)


def course_quiz_completion_report(api: MoodleAPI, course_id: int) -> str:
    quizzes = api.get_quizzes(course_id)
    students = api.get_students(course_id)
    if not quizzes:
        return f"No quizzes found in course {course_id}."
    if not students:
        return f"No students enrolled in course {course_id}."

    matrix = {s.id: {q.id: api.get_quiz_result(q, s.id) for q in quizzes} for s in students}

    lines = [f"Quiz completion in course {course_id}", SEPARATOR, "By quiz:"]
    for quiz in quizzes:
        done = [matrix[s.id][quiz.id] for s in students if matrix[s.id][quiz.id].attempted]
        rate = len(done) / len(students) * 100
        lines.append(f"{quiz.name} (ID: {quiz.id})")
        lines.append(f"   Completion: {len(done)}/{len(students)} ({rate:.1f}%)")
        if done:
            lines.append(f"   Average: {sum(r.percentage for r in done) / len(done):.1f}%")

    lines += ["", "By student:"]
    for student in students:
        row = matrix[student.id]
        done = sum(1 for r in row.values() if r.attempted)
        lines.append(f"{student.full_name} (ID: {student.id}): {done}/{len(quizzes)} quizzes")
        missing = [q.name for q in quizzes if not row[q.id].attempted]
        if missing:
            lines.append(f"   Missing: {', '.join(missing)}")

    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Chart series
# -----------------------------------------------------------------------------


def student_quiz_chart_data(api: MoodleAPI, course_id: int, student_id: int) -> dict[str, Any]:
    """Per-quiz best percentage and attempt count of a student, ready for a bar chart."""
    quizzes = api.get_quizzes(course_id)
    results = [api.get_quiz_result(quiz, student_id) for quiz in quizzes]
    attempted = [r for r in results if r.attempted]

    return {
        "student_id": student_id,
        "course_id": course_id,
        "labels": [r.quiz.name for r in results],
        "datasets": [
            {"label": "Best score (%)", "data": [round(r.percentage or 0.0, 1) for r in results]},
            {"label": "Attempts", "data": [len(r.attempts) for r in results]},
        ],
        "summary": {
            "quizzes": len(results),
            "attempted": len(attempted),
            "average": (
                round(sum(r.percentage for r in attempted) / len(attempted), 1) if attempted else None
            ),
        },
    }


def quiz_leaderboard_chart_data(
    api: MoodleAPI, course_id: int, quiz_id: int, top_n: int = 10
) -> dict[str, Any]:
    if top_n < 1:
        raise ToolError("top_n must be at least 1")

    quiz, rows = _leaderboard(api, course_id, quiz_id)
    ranked = sorted(
        ((name, r) for name, r in rows if r.attempted),
        key=lambda row: row[1].percentage,
        reverse=True,
    )[:top_n]

    return {
        "quiz_id": quiz.id,
        "quiz_name": quiz.name,
        "labels": [name for name, _ in ranked],
        "datasets": [
            {"label": "Best score (%)", "data": [round(r.percentage, 1) for _, r in ranked]},
        ],
        "completed": sum(1 for _, r in rows if r.attempted),
        "students": len(rows),
    }


# -----------------------------------------------------------------------------
# Registration
# -----------------------------------------------------------------------------


def register_quiz_result_tools(mcp: FastMCP, ctx: ToolContext) -> None:
    """Register quiz result MCP tools."""

    @mcp.tool()
    @tool_errors("getting quiz attempts")
    def get_student_quiz_attempts(student_id: int, quiz_id: int) -> str:
        """Show every attempt of a student at a quiz, the best attempt and progress.

        Args:
            student_id: Moodle user ID of the student
            quiz_id: Quiz instance ID
        """
        return student_quiz_attempts_report(ctx.api, student_id, quiz_id)

    @mcp.tool()
    @tool_errors("getting all quiz results")
    def get_student_all_quiz_results(student_id: int, course_id: int | None = None) -> str:
        """Show a student's best result at every quiz of a course.

        Args:
            student_id: Moodle user ID of the student
            course_id: Moodle course ID (defaults to the configured course)
        """
        return student_all_quiz_results_report(ctx.api, ctx.course(course_id), student_id)

    @mcp.tool()
    @tool_errors("getting quiz grade")
    def get_student_quiz_grade(student_id: int, quiz_id: int, course_id: int | None = None) -> str:
        """Show a student's best grade at a quiz with a performance band.

        Args:
            student_id: Moodle user ID of the student
            quiz_id: Quiz instance ID
            course_id: Moodle course ID (defaults to the configured course)
        """
        return student_quiz_grade_report(ctx.api, ctx.course(course_id), student_id, quiz_id)

    @mcp.tool()
    @tool_errors("comparing quiz performance")
    def compare_students_quiz_performance(student_ids: list[int], quiz_id: int) -> str:
        """Rank several students by their best result at a quiz.

        Args:
            student_ids: Moodle user IDs to compare
            quiz_id: Quiz instance ID
        """
        return compare_students_report(ctx.api, student_ids, quiz_id)

    @mcp.tool()
    @tool_errors("getting quiz leaderboard")
    def get_quiz_leaderboard(quiz_id: int, course_id: int | None = None, sort_by: str = "score") -> str:
        """Show the leaderboard of a quiz for every enrolled student.

        Args:
            quiz_id: Quiz instance ID
            course_id: Moodle course ID (defaults to the configured course)
            sort_by: "score", "name" or "attempts"
        """
        return quiz_leaderboard_report(ctx.api, ctx.course(course_id), quiz_id, sort_by)

    @mcp.tool()
    @tool_errors("getting quiz completion")
    def get_course_quiz_completion(course_id: int | None = None) -> str:
        """Show which quizzes each student has completed.

        Args:
            course_id: Moodle course ID (defaults to the configured course)
        """
        return course_quiz_completion_report(ctx.api, ctx.course(course_id))

    @mcp.tool()
    @tool_errors("getting student chart data")
    def get_student_quiz_chart_data(student_id: int, course_id: int | None = None) -> str:
        """Chart series (JSON) of a student's best score per quiz.

        Args:
            student_id: Moodle user ID of the student
            course_id: Moodle course ID (defaults to the configured course)
        """
        data = student_quiz_chart_data(ctx.api, ctx.course(course_id), student_id)
        return json.dumps(data, indent=2)

    @mcp.tool()
    @tool_errors("getting leaderboard chart data")
    def get_quiz_leaderboard_chart_data(quiz_id: int, course_id: int | None = None, top_n: int = 10) -> str:
        """Chart series (JSON) of the top students at a quiz.

        Args:
            quiz_id: Quiz instance ID
            course_id: Moodle course ID (defaults to the configured course)
            top_n: Number of students to include
        """
        data = quiz_leaderboard_chart_data(ctx.api, ctx.course(course_id), quiz_id, top_n)
        return json.dumps(data, indent=2)
