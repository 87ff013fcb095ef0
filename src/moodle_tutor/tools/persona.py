"""Tutor assistant persona: who it is and what it can do."""

from dataclasses import dataclass, field

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from ..analytics import DEFAULT_THRESHOLDS, CohortThresholds
from .common import ToolContext

HELP_ROLES = ("tutor", "trainer", "mentor", "teacher")


@dataclass
class Capability:
    category: str
    description: str
    features: list[str] = field(default_factory=list)
    example: str = ""


def capabilities(thresholds: CohortThresholds = DEFAULT_THRESHOLDS) -> list[Capability]:
    """Capability list, with level bands taken from the active thresholds."""
    t = thresholds
    return [
        Capability(
            category="Cohort assessment",
            description="Fast statistical analysis of a whole group of students",
            features=[
                "Mean, median, standard deviation, quartiles and percentiles",
                "Gaussian curve, histogram and box plot data for the score distribution",
                "Detects whether the group is homogeneous or has two humps (bimodal)",
                f"Classifies students: Beginner (0-{t.beginner_max:g}%), "
                f"Intermediate (up to {t.intermediate_max:g}%), "
                f"Advanced (up to {t.advanced_max:g}%), Expert (above {t.advanced_max:g}%)",
                "Recommends a single track, two tracks or three tracks",
            ],
            example='"Analyze the Linux quiz for the whole cohort" gives statistics, '
            "distribution shape and a strategy",
        ),
        Capability(
            category="Quiz results",
            description="Attempt-level tracking of every student",
            features=[
                "All attempts of a student with the best attempt and progress",
                "Leaderboards sorted by score, name or attempts",
                "Course completion matrix: who has not taken which quiz",
                "Chart series for student progress and leaderboards",
            ],
        ),
        Capability(
            category="Quiz authoring",
            description="Draft quizzes for import, since Moodle web services cannot create them",
            features=[
                "Quiz blueprint from themes with inclusive settings (unlimited attempts, highest grade)",
                "Moodle XML question file with step-by-step import instructions",
                "Themes suggested from training material by keyword frequency",
                "Remediation quiz for a student below a target score",
            ],
        ),
        Capability(
            category="Intervention priorities",
            description="Tells you who needs a human tutor",
            features=[
                "Low outliers below the interquartile fence",
                "High outliers who could mentor their peers",
                "Grades and feedback on assignment submissions",
            ],
        ),
        Capability(
            category="Course administration",
            description="Courses, participants and enrolments",
            features=[
                "Course search by name or instructor",
                "Mentors, students and other participants of a course",
                "Active versus suspended enrolments",
            ],
        ),
    ]


LIMITATIONS = [
    "Recommendations are based on statistics; the final decision is yours",
    "Cohort analysis needs at least 10 scores to judge the distribution shape reliably",
    "Grades are only written when you ask for feedback to be saved",
]

QUICK_START = """Quick start:
1. "Show me all students in the course" - the full list
2. "Analyze quiz <name>" - statistics, distribution and strategy
3. "Classify the students by level" - Beginner/Intermediate/Advanced/Expert
4. "Who needs help urgently?" - low outliers and students without attempts
5. "Show the quiz leaderboard" - ranked results"""


def persona_info(thresholds: CohortThresholds = DEFAULT_THRESHOLDS) -> str:
    lines = [
        "I am the Tutor Assistant, a Moodle helper for inclusive training and cohort assessment.",
        "",
    ]
    for cap in capabilities(thresholds):
        lines.append(f"## {cap.category}")
        lines.append(cap.description)
        lines.extend(f"- {feature}" for feature in cap.features)
        if cap.example:
            lines.append(f"Example: {cap.example}")
        lines.append("")

    lines.append("## Limitations")
    lines.extend(f"- {limitation}" for limitation in LIMITATIONS)
    lines += ["", QUICK_START, "", "How can I help you today?"]
    return "\n".join(lines)


def help_for_role(role: str) -> str:
    """
    Walkthrough of the assistant's workflow for one kind of educator.

    Raises:
        ToolError: If the role is not one of tutor, trainer, mentor or teacher
    """
    role = role.strip().lower()
    if role not in HELP_ROLES:
        raise ToolError(f"role must be one of: {', '.join(HELP_ROLES)}")

    return f"""As a {role}, this is how I can help you:

## Cohort assessment (start here)
1. Students take a standardized quiz
2. I compute mean, median, standard deviation and quartiles
3. I check whether the scores form one group or two distinct groups
4. I classify every student into a skill level
5. I recommend one track, or a split into two or three tracks

## Attempt tracking
- Best attempt and progress from first to last attempt for each student
- Leaderboards and completion per quiz
- The students who have not attempted a quiz yet

## Who needs you
- Low outliers get flagged for immediate intervention
- High outliers are candidates for peer mentoring

## Try
- "Analyze quiz <id>"
- "Show the outliers for quiz <id>"
- "Recommend a teaching strategy for quiz <id>"

Where would you like to start?"""


def register_persona_tools(mcp: FastMCP, ctx: ToolContext) -> None:
    """Register persona MCP tools."""

    @mcp.tool()
    def get_tutor_persona_info() -> str:
        """Introduce the tutor assistant and its capabilities. Use when asked "who are you?"."""
        return persona_info(ctx.thresholds)

    @mcp.tool()
    def get_tutor_help_for_role(role: str) -> str:
        """Explain how the assistant helps a given kind of educator.

        Args:
            role: "tutor", "trainer", "mentor" or "teacher"
        """
        return help_for_role(role)
