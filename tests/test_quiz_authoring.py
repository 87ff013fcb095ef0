"""Tests for quiz blueprints, Moodle XML export and theme extraction."""

import json
import xml.etree.ElementTree as ET

import pytest

from moodle_tutor.analytics import InvalidArgumentError
from moodle_tutor.tools.quiz_authoring import (
    Theme,
    blueprint_report,
    build_quiz_blueprint,
    extract_themes,
    remediation_quiz_report,
    themes_report,
)

THEMES = [
    Theme("File permissions", "Read, write and execute bits", ["chmod", "chown"]),
    Theme("Pipes & <redirects>", "Connecting commands", ["stdout"]),
]


def parse_xml(xml: str) -> ET.Element:
    return ET.fromstring(xml.encode("utf-8"))


def fenced(text: str, language: str) -> str:
    return text.split(f"```{language}\n", 1)[1].split("\n```", 1)[0]


@pytest.fixture
def blueprint():
    return build_quiz_blueprint("Module 1 Assessment", THEMES, 3, "beginner", course_id=42)


class TestBlueprint:
    def test_settings_and_questions(self, blueprint):
        assert len(blueprint.questions) == 6
        assert blueprint.estimated_time == "12 minutes"
        assert blueprint.settings.attempts == 0
        assert blueprint.settings.review_right_answer
        assert blueprint.settings.intro == "Assessment covering: File permissions, Pipes & <redirects>"
        assert blueprint.description == "Quiz with 6 questions across 2 themes (beginner level)"
        assert blueprint.xml_filename == "Module_1_Assessment.xml"

    def test_single_attempt_hides_answers(self):
        blueprint = build_quiz_blueprint("Final", THEMES[:1], 1, allow_unlimited_attempts=False)
        assert blueprint.settings.attempts == 1
        assert not blueprint.settings.review_right_answer
        assert "Attempts allowed: 1" in blueprint.import_instructions

    def test_difficulty_is_case_insensitive(self):
        blueprint = build_quiz_blueprint("Quiz", THEMES[:1], 1, "Advanced")
        assert "(advanced level)" in blueprint.questions[0].text

    @pytest.mark.parametrize(
        "name,themes,count,difficulty",
        [
            ("  ", THEMES, 1, "beginner"),
            ("Quiz", [], 1, "beginner"),
            ("Quiz", THEMES, 0, "beginner"),
            ("Quiz", THEMES, 1, "expert"),
        ],
    )
    def test_invalid_arguments(self, name, themes, count, difficulty):
        with pytest.raises(InvalidArgumentError):
            build_quiz_blueprint(name, themes, count, difficulty)

    def test_report(self, blueprint):
        report = blueprint_report(blueprint, THEMES, 3)

        assert "Course: 42" in report
        assert "Attempts: Unlimited" in report
        assert "Estimated time: 12 minutes" in report
        assert "1. File permissions (3 questions)" in report
        assert "Moodle XML (save as Module_1_Assessment.xml):" in report
        assert parse_xml(fenced(report, "xml")).tag == "quiz"


class TestMoodleXML:
    def test_structure(self, blueprint):
        root = parse_xml(blueprint.moodle_xml)
        category, *questions = root.findall("question")

        assert category.get("type") == "category"
        assert category.findtext("category/text") == "$course$/Module 1 Assessment"
        assert len(questions) == 6
        assert all(q.get("type") == "multichoice" for q in questions)

    def test_question_content(self, blueprint):
        first = parse_xml(blueprint.moodle_xml).findall("question")[1]

        assert first.findtext("name/text") == "File permissions - Question 1"
        assert first.find("questiontext").get("format") == "html"
        assert first.findtext("defaultgrade") == "1"
        assert first.findtext("single") == "true"
        assert first.findtext("shuffleanswers") == "true"

        answers = first.findall("answer")
        assert [a.get("fraction") for a in answers] == ["100", "0", "0", "0"]
        assert answers[2].findtext("feedback/text") == "Incorrect. Key concept: chmod"
        assert first.findtext("generalfeedback/text") == (
            "This question tests your understanding of File permissions."
        )

    def test_special_characters_escaped(self, blueprint):
        assert "Pipes &amp; &lt;redirects&gt;" in blueprint.moodle_xml

        names = [q.findtext("name/text") for q in parse_xml(blueprint.moodle_xml).findall("question")[1:]]
        assert "Pipes & <redirects> - Question 1" in names

    def test_declaration(self, blueprint):
        assert blueprint.moodle_xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<quiz>')


class TestThemes:
    def test_from_dict(self):
        theme = Theme.from_dict({"title": " Networking ", "keywords": "tcp, udp ,"})
        assert theme == Theme("Networking", "", ["tcp", "udp"])

    @pytest.mark.parametrize("data", [{"description": "no title"}, {"title": ""}, "Networking"])
    def test_from_dict_requires_title(self, data):
        with pytest.raises(InvalidArgumentError):
            Theme.from_dict(data)

    def test_extract_by_frequency(self):
        content = (
            "Linux shell commands. The shell runs commands; pipes connect commands. "
            "Files and permissions protect files."
        )
        themes = extract_themes(content, max_themes=2)

        assert [t.keywords for t in themes] == [["commands", "shell", "files"], ["linux", "runs", "pipes"]]
        assert themes[0].title == "Theme 1: commands"
        assert themes[0].description == "Covers concepts related to: commands, shell, files"

    def test_last_theme_may_be_short(self):
        themes = extract_themes("kernel kernel module", max_themes=3)
        assert [t.keywords for t in themes] == [["kernel", "module"]]

    def test_nothing_to_extract(self):
        assert extract_themes("the cat and the dog were at the bar") == []
        assert themes_report([]).startswith("No themes found")

    def test_invalid_max_themes(self):
        with pytest.raises(InvalidArgumentError):
            extract_themes("kernel", max_themes=0)

    def test_report_suggests_blueprint_arguments(self):
        report = themes_report(extract_themes("kernel kernel module scheduler"))
        example = json.loads(fenced(report, "json"))

        assert example["themes"][0]["keywords"] == ["kernel", "module", "scheduler"]
        assert [Theme.from_dict(t).title for t in example["themes"]] == ["Theme 1: kernel"]


class TestRemediationQuiz:
    def test_below_target(self, fake_api):
        report = remediation_quiz_report(fake_api, 2, 7, "Shell review")

        assert "Best score: 50.0%" in report
        assert 'Remediation quiz: "Shell review"' in report
        questions = parse_xml(fenced(report, "xml")).findall("question[@type='multichoice']")
        assert len(questions) == 5

    def test_above_target(self, fake_api):
        report = remediation_quiz_report(fake_api, 1, 7, "Shell review")
        assert "scored 90.0%" in report
        assert "No remediation quiz needed" in report

    def test_custom_target(self, fake_api):
        report = remediation_quiz_report(fake_api, 1, 7, "Shell review", target_accuracy=95)
        assert "Best score: 90.0%" in report

    def test_no_attempts(self, fake_api):
        assert "No finished attempts by student 3" in remediation_quiz_report(fake_api, 3, 7, "Review")

    def test_invalid_target(self, fake_api):
        with pytest.raises(InvalidArgumentError):
            remediation_quiz_report(fake_api, 2, 7, "Review", target_accuracy=150)
