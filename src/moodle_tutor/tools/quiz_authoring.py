"""
Quiz authoring tools.

Moodle's web services cannot create quizzes or question-bank entries, so
these tools build a quiz blueprint instead: inclusive quiz settings, draft
questions per theme and a Moodle XML question file that is imported through
the quiz's question bank.
"""

import json
import re
import xml.etree.ElementTree as ET
from collections import Counter
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from mcp.server.fastmcp import FastMCP

from ..analytics import InvalidArgumentError
from ..moodle import MoodleAPI, Quiz
from ..utils.logging import get_logger
from .common import SEPARATOR, ToolContext, tool_errors

logger = get_logger(__name__)

DIFFICULTIES = ("beginner", "intermediate", "advanced")
MINUTES_PER_QUESTION = 2
REMEDIATION_QUESTIONS = 5

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "is", "are", "was", "were", "been", "that", "this", "with", "from", "have",
        "they", "their", "there", "which", "into", "will", "also", "when", "what",
        "your", "about", "more", "than", "then", "them", "these", "those", "each",
    }
)


# -----------------------------------------------------------------------------
# Data Models
# -----------------------------------------------------------------------------


@dataclass
class Theme:
    """A topic to write questions about."""

    title: str
    description: str = ""
    keywords: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Theme":
        """Accept keywords as a list or a comma-separated string."""
        if not isinstance(data, dict):
            raise InvalidArgumentError(f"Theme must be an object with a title: {data!r}")
        title = str(data.get("title") or "").strip()
        if not title:
            raise InvalidArgumentError(f"Theme needs a title: {data!r}")

        keywords = data.get("keywords") or []
        if isinstance(keywords, str):
            keywords = [k.strip() for k in keywords.split(",") if k.strip()]
        return cls(
            title=title,
            description=str(data.get("description") or ""),
            keywords=[str(k) for k in keywords],
        )


@dataclass
class Answer:
    text: str
    fraction: float
    feedback: str = ""


@dataclass
class Question:
    """A multiple-choice question with a single correct answer."""

    name: str
    text: str
    answers: list[Answer]
    default_mark: float = 1.0
    general_feedback: str = ""


@dataclass
class QuizSettings:
    """Settings to apply when the quiz activity is created in Moodle."""

    name: str
    course_id: int | None = None
    intro: str = ""
    attempts: int = 0  # 0 = unlimited
    grade_method: int = 1  # 1 = highest grade
    questions_per_page: int = 1
    shuffle_answers: bool = True
    review_right_answer: bool = True
    visible: bool = True

    @property
    def attempts_label(self) -> str:
        return "Unlimited" if self.attempts == 0 else str(self.attempts)


@dataclass
class QuizBlueprint:
    name: str
    description: str
    settings: QuizSettings
    questions: list[Question]
    moodle_xml: str
    import_instructions: str
    estimated_minutes: int

    @property
    def estimated_time(self) -> str:
        return f"{self.estimated_minutes} minutes"

    @property
    def xml_filename(self) -> str:
        return re.sub(r"\s+", "_", self.name.strip()) + ".xml"


# -----------------------------------------------------------------------------
# Blueprint Construction
# -----------------------------------------------------------------------------


def generate_questions(theme: Theme, count: int, difficulty: str) -> list[Question]:
    """Draft questions for a theme, meant to be rewritten before publishing."""
    key_concept = theme.keywords[0] if theme.keywords else theme.title
    review = theme.description or theme.title
    return [
        Question(
            name=f"{theme.title} - Question {i}",
            text=f"[DRAFT] Question about {theme.title} ({difficulty} level)",
            answers=[
                Answer("[DRAFT] Correct answer", 1.0, "Correct!"),
                Answer("[DRAFT] Wrong answer 1", 0.0, f"Not quite. Review: {review}"),
                Answer("[DRAFT] Wrong answer 2", 0.0, f"Incorrect. Key concept: {key_concept}"),
                Answer("[DRAFT] Wrong answer 3", 0.0, "Try again!"),
            ],
            general_feedback=f"This question tests your understanding of {theme.title}.",
        )
        for i in range(1, count + 1)
    ]


def _text_element(parent: ET.Element, tag: str, text: str, html: bool = False) -> ET.Element:
    element = ET.SubElement(parent, tag, {"format": "html"} if html else {})
    ET.SubElement(element, "text").text = text
    return element


def build_moodle_xml(settings: QuizSettings, questions: Sequence[Question]) -> str:
    """
    Render questions in Moodle XML question format.

    The file opens with a category question so the import lands in a
    ``$course$/<quiz name>`` category of the course question bank.
    """
    quiz = ET.Element("quiz")
    category = ET.SubElement(quiz, "question", type="category")
    _text_element(category, "category", f"$course$/{settings.name}")

    for question in questions:
        node = ET.SubElement(quiz, "question", type="multichoice")
        _text_element(node, "name", question.name)
        _text_element(node, "questiontext", question.text, html=True)
        ET.SubElement(node, "defaultgrade").text = f"{question.default_mark:g}"
        ET.SubElement(node, "single").text = "true"
        ET.SubElement(node, "shuffleanswers").text = "true" if settings.shuffle_answers else "false"
        ET.SubElement(node, "answernumbering").text = "abc"
        for answer in question.answers:
            answer_node = ET.SubElement(
                node, "answer", fraction=f"{answer.fraction * 100:g}", format="html"
            )
            ET.SubElement(answer_node, "text").text = answer.text
            _text_element(answer_node, "feedback", answer.feedback, html=True)
        _text_element(node, "generalfeedback", question.general_feedback, html=True)

    ET.indent(quiz)
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(quiz, encoding="unicode") + "\n"


def import_instructions(settings: QuizSettings, question_count: int) -> str:
    show_answers = "Yes" if settings.review_right_answer else "No"
    return "\n".join(
        [
            "To import this quiz into Moodle:",
            "1. Open the course and turn editing on",
            "2. Add an activity: Quiz",
            "3. Configure the quiz settings:",
            f"   - Name: {settings.name}",
            f"   - Attempts allowed: {settings.attempts_label}",
            "   - Grade method: Highest grade",
            f"   - Show right answer after the attempt: {show_answers}",
            "4. Save and display, then open Questions",
            "5. Open the question bank menu and choose Import",
            "6. Choose the Moodle XML format and upload the XML file",
            "7. Add the imported questions to the quiz",
            "",
            f"The quiz will have {question_count} questions.",
        ]
    )


def build_quiz_blueprint(
    name: str,
    themes: Sequence[Theme],
    questions_per_theme: int,
    difficulty: str = "intermediate",
    course_id: int | None = None,
    allow_unlimited_attempts: bool = True,
) -> QuizBlueprint:
    """
    Build a quiz blueprint from themes.

    Args:
        name: Quiz name
        themes: Topics, each producing ``questions_per_theme`` questions
        questions_per_theme: Number of questions per theme (at least 1)
        difficulty: beginner, intermediate or advanced
        course_id: Course the quiz is meant for, informational only
        allow_unlimited_attempts: Unlimited attempts with right answers shown,
            otherwise a single attempt with answers hidden

    Raises:
        InvalidArgumentError: If the name, themes, count or difficulty is invalid
    """
    name = name.strip()
    difficulty = difficulty.strip().lower()
    if not name:
        raise InvalidArgumentError("Quiz name must not be empty")
    if not themes:
        raise InvalidArgumentError("At least one theme is required")
    if questions_per_theme < 1:
        raise InvalidArgumentError(f"questions_per_theme must be at least 1, got {questions_per_theme}")
    if difficulty not in DIFFICULTIES:
        raise InvalidArgumentError(f"Difficulty must be one of {', '.join(DIFFICULTIES)}, got {difficulty!r}")

    settings = QuizSettings(
        name=name,
        course_id=course_id,
        intro=f"Assessment covering: {', '.join(t.title for t in themes)}",
        attempts=0 if allow_unlimited_attempts else 1,
        review_right_answer=allow_unlimited_attempts,
    )

    questions: list[Question] = []
    for theme in themes:
        questions.extend(generate_questions(theme, questions_per_theme, difficulty))

    logger.info(f"Built blueprint '{name}' with {len(questions)} questions")
    return QuizBlueprint(
        name=name,
        description=f"Quiz with {len(questions)} questions across {len(themes)} themes ({difficulty} level)",
        settings=settings,
        questions=questions,
        moodle_xml=build_moodle_xml(settings, questions),
        import_instructions=import_instructions(settings, len(questions)),
        estimated_minutes=len(questions) * MINUTES_PER_QUESTION,
    )


def extract_themes(content: str, max_themes: int = 5) -> list[Theme]:
    """Group the most frequent words of a text into themes of three keywords.

    Words of three letters or fewer and common stop words are ignored. Ties
    keep the order in which the words first appear.
    """
    if max_themes < 1:
        raise InvalidArgumentError(f"max_themes must be at least 1, got {max_themes}")

    words = [w for w in re.split(r"\W+", content.lower()) if len(w) > 3 and w not in STOP_WORDS]
    keywords = [word for word, _ in Counter(words).most_common(max_themes * 3)]

    themes = []
    for number, start in enumerate(range(0, len(keywords), 3), start=1):
        group = keywords[start : start + 3]
        themes.append(
            Theme(
                title=f"Theme {number}: {group[0]}",
                description=f"Covers concepts related to: {', '.join(group)}",
                keywords=group,
            )
        )
    return themes


# -----------------------------------------------------------------------------
# Reports
# -----------------------------------------------------------------------------


def _xml_block(blueprint: QuizBlueprint) -> list[str]:
    return [
        f"Moodle XML (save as {blueprint.xml_filename}):",
        "```xml",
        blueprint.moodle_xml.rstrip(),
        "```",
    ]


def blueprint_report(blueprint: QuizBlueprint, themes: Sequence[Theme], questions_per_theme: int) -> str:
    settings = blueprint.settings
    lines = [f'Quiz blueprint: "{blueprint.name}"', SEPARATOR, blueprint.description, ""]
    lines.append("Settings:")
    if settings.course_id is not None:
        lines.append(f"   Course: {settings.course_id}")
    lines.append(f"   Attempts: {settings.attempts_label}")
    lines.append(f"   Questions: {len(blueprint.questions)}")
    lines.append(f"   Show answers: {'Yes' if settings.review_right_answer else 'No'}")
    lines.append(f"   Estimated time: {blueprint.estimated_time}")

    lines += ["", "Themes:"]
    for number, theme in enumerate(themes, start=1):
        lines.append(f"   {number}. {theme.title} ({questions_per_theme} questions)")

    lines += ["", "Questions:"]
    lines.extend(f"   - {q.name}" for q in blueprint.questions)

    lines += ["", blueprint.import_instructions, ""]
    lines += _xml_block(blueprint)
    lines += ["", "The questions are drafts. Rewrite them in Moodle before students see the quiz."]
    return "\n".join(lines)


def themes_report(themes: Sequence[Theme]) -> str:
    if not themes:
        return "No themes found: the text has no words longer than three letters."

    lines = ["Themes extracted from content", SEPARATOR]
    for number, theme in enumerate(themes, start=1):
        lines.append(f"{number}. {theme.title}")
        lines.append(f"   Keywords: {', '.join(theme.keywords)}")
        lines.append(f"   {theme.description}")

    example = {
        "name": "Quiz on extracted themes",
        "themes": [asdict(t) for t in themes],
        "questions_per_theme": 3,
        "difficulty": "intermediate",
    }
    lines += ["", "Pass them to create_quiz_blueprint:", "```json", json.dumps(example, indent=2), "```"]
    return "\n".join(lines)


def remediation_quiz_report(
    api: MoodleAPI,
    student_id: int,
    quiz_id: int,
    new_quiz_name: str,
    target_accuracy: float = 70.0,
    course_id: int | None = None,
) -> str:
    """Blueprint for a remediation quiz when a student's best result is below target."""
    if not 0 <= target_accuracy <= 100:
        raise InvalidArgumentError(f"target_accuracy must be between 0 and 100, got {target_accuracy}")

    result = api.get_quiz_result(Quiz(id=quiz_id, name=f"Quiz {quiz_id}"), student_id)
    if not result.attempted:
        return (
            f"No finished attempts by student {student_id} at quiz {quiz_id}. "
            "The student must complete the quiz before a remediation quiz can be built."
        )

    percentage = result.percentage
    if percentage >= target_accuracy:
        return (
            f"Student {student_id} scored {percentage:.1f}%, at or above the target of "
            f"{target_accuracy:g}%. No remediation quiz needed; consider moving on to the next level."
        )

    theme = Theme(
        title="Topics requiring reinforcement",
        description=f"Areas where the student scored below {target_accuracy:g}%",
        keywords=["review", "practice", "reinforce"],
    )
    blueprint = build_quiz_blueprint(
        new_quiz_name, [theme], REMEDIATION_QUESTIONS, "intermediate", course_id=course_id
    )

    lines = [
        f"Remediation quiz for student {student_id}",
        SEPARATOR,
        "Original performance:",
        f"   Quiz: {quiz_id}",
        f"   Best score: {percentage:.1f}%",
        f"   Attempts: {len(result.attempts)}",
        "",
        f'Remediation quiz: "{blueprint.name}"',
        f"   Questions: {len(blueprint.questions)}",
        f"   Attempts: {blueprint.settings.attempts_label}",
        f"   Estimated time: {blueprint.estimated_time}",
        "",
        blueprint.import_instructions,
        "",
    ]
    lines += _xml_block(blueprint)
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Registration
# -----------------------------------------------------------------------------


def register_quiz_authoring_tools(mcp: FastMCP, ctx: ToolContext) -> None:
    """Register quiz authoring MCP tools."""

    @mcp.tool()
    @tool_errors("creating quiz blueprint")
    def create_quiz_blueprint(
        name: str,
        themes: list[dict[str, Any]],
        questions_per_theme: int = 3,
        difficulty: str = "intermediate",
        course_id: int | None = None,
        allow_unlimited_attempts: bool = True,
    ) -> str:
        """Draft a quiz from themes: settings, questions, Moodle XML and estimated time.

        Args:
            name: Quiz name
            themes: Topics like [{"title": "...", "description": "...", "keywords": ["..."]}]
            questions_per_theme: Questions to draft per theme
            difficulty: beginner, intermediate or advanced
            course_id: Moodle course ID (defaults to the configured course)
            allow_unlimited_attempts: Unlimited attempts with answers shown (default)
        """
        parsed = [Theme.from_dict(t) for t in themes]
        blueprint = build_quiz_blueprint(
            name,
            parsed,
            questions_per_theme,
            difficulty,
            course_id=course_id if course_id is not None else ctx.default_course_id,
            allow_unlimited_attempts=allow_unlimited_attempts,
        )
        return blueprint_report(blueprint, parsed, questions_per_theme)

    @mcp.tool()
    @tool_errors("extracting themes")
    def extract_themes_from_content(content: str, max_themes: int = 5) -> str:
        """Suggest quiz themes from training material by keyword frequency.

        Args:
            content: Text of the training material
            max_themes: Maximum number of themes (default 5)
        """
        return themes_report(extract_themes(content, max_themes))

    @mcp.tool()
    @tool_errors("creating remediation quiz")
    def create_adaptive_quiz(
        student_id: int,
        source_quiz_id: int,
        new_quiz_name: str,
        target_accuracy: float = 70.0,
        course_id: int | None = None,
    ) -> str:
        """Draft a remediation quiz for a student whose best result is below a target.

        Args:
            student_id: Moodle user ID of the student
            source_quiz_id: Quiz the student already took
            new_quiz_name: Name of the remediation quiz
            target_accuracy: Target percentage (default 70)
            course_id: Moodle course ID (defaults to the configured course)
        """
        return remediation_quiz_report(
            ctx.api,
            student_id,
            source_quiz_id,
            new_quiz_name,
            target_accuracy,
            course_id=course_id if course_id is not None else ctx.default_course_id,
        )
