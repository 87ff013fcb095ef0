"""
Cohort assessment tools.

Fetch the best score of every student on a quiz or assignment, run the
cohort analytics over them and report the result in plain text (or JSON
for chart data).
"""

import json
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from ..analytics import (
    DEFAULT_THRESHOLDS,
    CohortThresholds,
    OutlierType,
    SkillLevel,
    StudentScore,
    analyze_cohort_performance,
    classify_students_by_score,
    get_cohort_visualization_data,
    identify_outliers,
    recommend_cohort_strategy,
)
from ..moodle import MoodleAPI
from ..utils.logging import get_logger
from .common import SEPARATOR, ToolContext, tool_errors

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Score collection
# -----------------------------------------------------------------------------


def collect_quiz_scores(api: MoodleAPI, course_id: int, quiz_id: int) -> tuple[str, list[StudentScore]]:
    """
    Best percentage of every enrolled student who finished the quiz.

    Returns:
        Tuple of (quiz name, scores). Students without a finished attempt
        are left out.
    """
    quiz = api.get_quiz(course_id, quiz_id)
    scores = []
    for student in api.get_students(course_id):
        result = api.get_quiz_result(quiz, student.id)
        if result.percentage is not None:
            scores.append(StudentScore(student_id=student.id, score=result.percentage))

    logger.info(f"Collected {len(scores)} scores for quiz {quiz_id}")
    return quiz.name, scores


def collect_assignment_scores(
    api: MoodleAPI, course_id: int, assignment_id: int
) -> tuple[str, list[StudentScore]]:
    """Graded students of an assignment, as a percentage of the maximum grade."""
    assignment = api.get_assignment(course_id, assignment_id)
    student_ids = {s.id for s in api.get_students(course_id)}

    scores = []
    for grade in api.get_assignment_grades(assignment_id):
        if grade.grade is None or grade.user_id not in student_ids:
            continue
        percentage = grade.grade / assignment.max_grade * 100 if assignment.max_grade > 0 else 0.0
        scores.append(StudentScore(student_id=grade.user_id, score=percentage))

    logger.info(f"Collected {len(scores)} scores for assignment {assignment_id}")
    return assignment.name, scores


def parse_scores(scores: Sequence[dict[str, Any]]) -> list[StudentScore]:
    try:
        return [StudentScore.from_dict(s) for s in scores]
    except (TypeError, ValueError) as e:
        raise ToolError(f"Invalid score records: {e}") from e


# -----------------------------------------------------------------------------
# Reports
# -----------------------------------------------------------------------------


def cohort_report(
    title: str,
    records: Sequence[StudentScore],
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> str:
    """Full cohort report: statistics, shape, tiers, strategy, outliers and advice."""
    if not records:
        return f"{title}\n{SEPARATOR}\nNo scores to analyze."

    assessment = analyze_cohort_performance(records, thresholds)
    strategy = recommend_cohort_strategy(records, thresholds)
    outliers = identify_outliers(records, thresholds)
    stats = assessment.statistics
    distribution = assessment.distribution
    total = len(records)

    lines = [title, SEPARATOR, "Statistics:"]
    lines.append(f"   Students: {stats.count}")
    lines.append(f"   Mean: {stats.mean:.1f}  Median: {stats.median:.1f}  Std dev: {stats.std_dev:.1f}")
    lines.append(f"   Min: {stats.min:.1f}  Q1: {stats.q1:.1f}  Q3: {stats.q3:.1f}  Max: {stats.max:.1f}")

    peaks = ", ".join(f"{p:.1f}" for p in distribution.peaks) or "none"
    lines += [
        "",
        f"Distribution: {distribution.type.value} "
        f"(confidence {distribution.confidence * 100:.0f}%, peaks: {peaks})",
        "",
        "Skill levels:",
    ]
    for level in SkillLevel:
        count = assessment.level_counts[level]
        lines.append(f"   {level.value.capitalize()}: {count} ({count / total * 100:.0f}%)")

    lines += ["", f"Strategy: {strategy.type.value}", f"   {strategy.reasoning}"]
    for group in strategy.suggested_groups:
        lines.append(f"   - {group.name}: {group.student_count} students, {group.recommended_pace}")

    lines += ["", "Outliers:"]
    if outliers:
        for outlier in outliers:
            lines.append(
                f"   Student {outlier.student_id}: {outlier.score:.1f} "
                f"({outlier.type.value}, {outlier.deviation_from_median:.1f} from median)"
            )
    else:
        lines.append("   None")

    if assessment.recommendations:
        lines += ["", "Recommendations:"]
        lines.extend(f"   - {r}" for r in assessment.recommendations)

    return "\n".join(lines)


def classification_report(
    title: str,
    records: Sequence[StudentScore],
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> str:
    if not records:
        return f"{title}\n{SEPARATOR}\nNo scores to classify."

    classifications = sorted(
        classify_students_by_score(records, thresholds), key=lambda c: c.score, reverse=True
    )
    lines = [title, SEPARATOR]
    for level in SkillLevel:
        members = [c for c in classifications if c.level == level]
        lines.append(f"{level.value.capitalize()} ({len(members)}):")
        lines.extend(
            f"   Student {c.student_id}: {c.score:.1f} (percentile {c.percentile})" for c in members
        )
    return "\n".join(lines)


def outliers_report(
    title: str,
    records: Sequence[StudentScore],
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> str:
    outliers = identify_outliers(records, thresholds)
    if not outliers:
        return f"{title}\n{SEPARATOR}\nNo outliers detected."

    lines = [title, SEPARATOR]
    for outlier in outliers:
        if outlier.type == OutlierType.LOW:
            side, action = "below", "needs intervention"
        else:
            side, action = "above", "candidate for enrichment"
        lines.append(
            f"Student {outlier.student_id}: {outlier.score:.1f} "
            f"({outlier.deviation_from_median:.1f} {side} median) - {action}"
        )
    return "\n".join(lines)


def strategy_report(
    title: str,
    records: Sequence[StudentScore],
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> str:
    strategy = recommend_cohort_strategy(records, thresholds)
    lines = [title, SEPARATOR, f"Strategy: {strategy.type.value}", strategy.reasoning, ""]
    for group in strategy.suggested_groups:
        lines.append(f"{group.name}")
        lines.append(f"   Students: {group.student_count}")
        lines.append(f"   Levels: {', '.join(group.target_levels)}")
        lines.append(f"   Pace: {group.recommended_pace}")
    return "\n".join(lines)


def visualization_json(
    records: Sequence[StudentScore],
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> str:
    data = get_cohort_visualization_data([r.score for r in records], thresholds)
    return json.dumps(data.to_dict(), indent=2)


# -----------------------------------------------------------------------------
# Registration
# -----------------------------------------------------------------------------


def register_cohort_tools(mcp: FastMCP, ctx: ToolContext) -> None:
    """Register cohort assessment MCP tools."""

    def quiz_scores(quiz_id: int, course_id: int | None) -> tuple[str, list[StudentScore]]:
        return collect_quiz_scores(ctx.api, ctx.course(course_id), quiz_id)

    @mcp.tool()
    @tool_errors("analyzing quiz cohort")
    def analyze_cohort_quiz(quiz_id: int, course_id: int | None = None) -> str:
        """Analyze the cohort's best scores on a quiz: statistics, distribution shape,
        skill levels, teaching strategy, outliers and recommendations.

        Args:
            quiz_id: Quiz instance ID
            course_id: Moodle course ID (defaults to the configured course)
        """
        name, records = quiz_scores(quiz_id, course_id)
        return cohort_report(f"Cohort analysis - {name}", records, ctx.thresholds)

    @mcp.tool()
    @tool_errors("analyzing assignment cohort")
    def analyze_cohort_assignment(assignment_id: int, course_id: int | None = None) -> str:
        """Analyze the cohort's grades on an assignment (as percentages of the max grade).

        Args:
            assignment_id: Assignment instance ID
            course_id: Moodle course ID (defaults to the configured course)
        """
        name, records = collect_assignment_scores(ctx.api, ctx.course(course_id), assignment_id)
        return cohort_report(f"Cohort analysis - {name}", records, ctx.thresholds)

    @mcp.tool()
    @tool_errors("analyzing cohort scores")
    def analyze_cohort_scores(scores: list[dict[str, Any]]) -> str:
        """Analyze a list of scores supplied directly.

        Args:
            scores: Records like [{"student_id": 1, "score": 72.5}], scores on a 0-100 scale
        """
        return cohort_report("Cohort analysis", parse_scores(scores), ctx.thresholds)

    @mcp.tool()
    @tool_errors("classifying cohort")
    def get_cohort_classification(quiz_id: int, course_id: int | None = None) -> str:
        """Group students into beginner, intermediate, advanced and expert by quiz score.

        Args:
            quiz_id: Quiz instance ID
            course_id: Moodle course ID (defaults to the configured course)
        """
        name, records = quiz_scores(quiz_id, course_id)
        return classification_report(f"Skill levels - {name}", records, ctx.thresholds)

    @mcp.tool()
    @tool_errors("finding cohort outliers")
    def get_cohort_outliers(quiz_id: int, course_id: int | None = None) -> str:
        """List students whose quiz score falls outside the interquartile fences.

        Args:
            quiz_id: Quiz instance ID
            course_id: Moodle course ID (defaults to the configured course)
        """
        name, records = quiz_scores(quiz_id, course_id)
        return outliers_report(f"Outliers - {name}", records, ctx.thresholds)

    @mcp.tool()
    @tool_errors("recommending cohort strategy")
    def recommend_cohort_strategy_for_quiz(quiz_id: int, course_id: int | None = None) -> str:
        """Recommend one, two or three teaching tracks from a quiz's score distribution.

        Args:
            quiz_id: Quiz instance ID
            course_id: Moodle course ID (defaults to the configured course)
        """
        name, records = quiz_scores(quiz_id, course_id)
        return strategy_report(f"Teaching strategy - {name}", records, ctx.thresholds)

    @mcp.tool()
    @tool_errors("getting cohort visualization data")
    def get_cohort_visualization_data(quiz_id: int, course_id: int | None = None) -> str:
        """Histogram, box plot and Gaussian curve (JSON) for a quiz's scores.

        Args:
            quiz_id: Quiz instance ID
            course_id: Moodle course ID (defaults to the configured course)
        """
        _, records = quiz_scores(quiz_id, course_id)
        return visualization_json(records, ctx.thresholds)
