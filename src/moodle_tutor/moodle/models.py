"""Moodle data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

TEACHING_ROLES = frozenset({"editingteacher", "teacher", "manager"})


def _timestamp(value: Any) -> datetime | None:
    """Convert a Moodle Unix timestamp, treating 0 and missing as unset."""
    if not value:
        return None
    return datetime.fromtimestamp(value)


def _number(value: Any) -> float | None:
    """Moodle returns grades as numbers, numeric strings or null."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Role:
    """A role a user holds in a course."""

    id: int
    name: str
    shortname: str

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Role":
        return cls(
            id=data.get("roleid", 0),
            name=data.get("name", "") or data.get("shortname", ""),
            shortname=data.get("shortname", ""),
        )


@dataclass
class User:
    """Represents a user enrolled in a Moodle course."""

    id: int
    username: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    fullname: str = ""
    roles: list[Role] = field(default_factory=list)
    first_access: datetime | None = None
    last_access: datetime | None = None
    last_course_access: datetime | None = None
    suspended: bool = False

    @property
    def full_name(self) -> str:
        """Get the user's display name."""
        return (
            self.fullname
            or f"{self.first_name} {self.last_name}".strip()
            or self.username
        )

    @property
    def role_shortnames(self) -> set[str]:
        return {role.shortname for role in self.roles}

    @property
    def is_student(self) -> bool:
        return "student" in self.role_shortnames

    @property
    def is_teacher(self) -> bool:
        """Check if the user holds any teaching role (teacher, editing teacher, manager)."""
        return bool(self.role_shortnames & TEACHING_ROLES)

    @classmethod
    def from_api_response(cls, data: dict[str, Any], course_id: int | None = None) -> "User":
        """Create a User from Moodle API response data.

        Args:
            data: One entry of core_enrol_get_enrolled_users or core_user_get_users
            course_id: Course the entry was fetched for, used to read the
                per-course suspension flag
        """
        suspended = bool(data.get("suspended", False))
        if course_id is not None:
            suspended = suspended or any(
                c.get("id") == course_id and c.get("status") == 1
                for c in data.get("enrolledcourses", [])
            )

        return cls(
            id=data["id"],
            username=data.get("username", ""),
            email=data.get("email", ""),
            first_name=data.get("firstname", ""),
            last_name=data.get("lastname", ""),
            fullname=data.get("fullname", ""),
            roles=[Role.from_api_response(r) for r in data.get("roles", [])],
            first_access=_timestamp(data.get("firstaccess")),
            last_access=_timestamp(data.get("lastaccess")),
            last_course_access=_timestamp(data.get("lastcourseaccess")),
            suspended=suspended,
        )


@dataclass
class Course:
    """Represents a Moodle course."""

    id: int
    fullname: str
    shortname: str = ""
    category_name: str = ""
    visible: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None
    summary: str = ""
    suspended: bool = False
    instructors: list[User] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Course":
        """Create a Course from core_course_search_courses or core_enrol_get_users_courses data."""
        return cls(
            id=data["id"],
            fullname=data.get("fullname", data.get("displayname", "")),
            shortname=data.get("shortname", ""),
            category_name=data.get("categoryname", ""),
            visible=data.get("visible", 1) != 0,
            start_date=_timestamp(data.get("startdate")),
            end_date=_timestamp(data.get("enddate")),
            summary=data.get("summary", ""),
            suspended=bool(data.get("suspended", False)) or data.get("status") == 1,
        )


@dataclass
class Assignment:
    """Represents a Moodle assignment."""

    id: int
    name: str
    course_id: int
    description: str = ""
    due_date: datetime | None = None
    allow_submissions_from: datetime | None = None
    cutoff_date: datetime | None = None
    max_grade: float = 100.0
    submission_types: list[str] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict[str, Any], course_id: int = 0) -> "Assignment":
        """Create an Assignment from mod_assign_get_assignments data."""
        submission_types = [
            config.get("plugin", "")
            for config in data.get("configs", [])
            if config.get("plugin") in ("file", "onlinetext")
            and config.get("name") == "enabled"
            and config.get("value") == "1"
        ]

        return cls(
            id=data["id"],
            name=data.get("name", ""),
            course_id=data.get("course", course_id),
            description=data.get("intro", ""),
            due_date=_timestamp(data.get("duedate")),
            allow_submissions_from=_timestamp(data.get("allowsubmissionsfromdate")),
            cutoff_date=_timestamp(data.get("cutoffdate")),
            max_grade=float(data.get("grade", 100.0) or 0.0),
            submission_types=submission_types,
        )


@dataclass
class Submission:
    """Represents a student's submission to an assignment."""

    id: int
    assignment_id: int
    user_id: int
    status: str = "new"
    grading_status: str = ""
    submitted_at: datetime | None = None

    @property
    def is_submitted(self) -> bool:
        return self.status == "submitted"

    @classmethod
    def from_api_response(cls, data: dict[str, Any], assignment_id: int = 0) -> "Submission":
        """Create a Submission from mod_assign_get_submissions data."""
        return cls(
            id=data.get("id", 0),
            assignment_id=data.get("assignment", assignment_id),
            user_id=data.get("userid", 0),
            status=data.get("status", "new"),
            grading_status=data.get("gradingstatus", ""),
            submitted_at=_timestamp(data.get("timemodified")),
        )


@dataclass
class AssignmentGrade:
    """A grade recorded for a student on an assignment."""

    user_id: int
    grade: float | None
    graded_at: datetime | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "AssignmentGrade":
        # Moodle reports "-1.00000" for "no grade"
        grade = _number(data.get("grade"))
        if grade is not None and grade < 0:
            grade = None
        return cls(
            user_id=data.get("userid", 0),
            grade=grade,
            graded_at=_timestamp(data.get("timemodified")),
        )


@dataclass
class Quiz:
    """Represents a Moodle quiz."""

    id: int
    name: str
    course_id: int = 0
    time_open: datetime | None = None
    time_close: datetime | None = None
    grade: float = 0.0
    sum_grades: float = 0.0

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Quiz":
        """Create a Quiz from mod_quiz_get_quizzes_by_courses data."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            course_id=data.get("course", 0),
            time_open=_timestamp(data.get("timeopen")),
            time_close=_timestamp(data.get("timeclose")),
            grade=_number(data.get("grade")) or 0.0,
            sum_grades=_number(data.get("sumgrades")) or 0.0,
        )


@dataclass
class QuizAttempt:
    """One attempt by a user at a quiz."""

    id: int
    quiz_id: int
    user_id: int
    attempt: int = 1
    sum_grades: float = 0.0
    max_grade: float | None = None
    state: str = ""
    time_start: datetime | None = None
    time_finish: datetime | None = None

    @property
    def duration_minutes(self) -> int | None:
        if self.time_start is None or self.time_finish is None:
            return None
        return int((self.time_finish - self.time_start).total_seconds() // 60)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "QuizAttempt":
        """Create a QuizAttempt from mod_quiz_get_user_attempts data."""
        return cls(
            id=data["id"],
            quiz_id=data.get("quiz", 0),
            user_id=data.get("userid", 0),
            attempt=data.get("attempt", 1),
            sum_grades=_number(data.get("sumgrades")) or 0.0,
            max_grade=_number(data.get("maxgrade")),
            state=data.get("state", ""),
            time_start=_timestamp(data.get("timestart")),
            time_finish=_timestamp(data.get("timefinish")),
        )


@dataclass
class QuizResult:
    """Best finished attempt of one student at one quiz."""

    quiz: Quiz
    user_id: int
    attempts: list[QuizAttempt] = field(default_factory=list)

    @property
    def attempted(self) -> bool:
        return bool(self.attempts)

    @property
    def best_attempt(self) -> QuizAttempt | None:
        """Attempt with the highest raw score; earliest wins ties."""
        best = None
        for attempt in self.attempts:
            if best is None or attempt.sum_grades > best.sum_grades:
                best = attempt
        return best

    @property
    def max_score(self) -> float:
        """Maximum score from the attempt, the quiz grade, the quiz sum of marks, or 100."""
        best = self.best_attempt
        return (
            (best.max_grade if best is not None else None)
            or self.quiz.grade
            or self.quiz.sum_grades
            or 100.0
        )

    @property
    def best_score(self) -> float | None:
        best = self.best_attempt
        return best.sum_grades if best is not None else None

    @property
    def percentage(self) -> float | None:
        """Best score as a percentage of the maximum, None when not attempted."""
        if self.best_score is None:
            return None
        if self.max_score <= 0:
            return 0.0
        return self.best_score / self.max_score * 100
