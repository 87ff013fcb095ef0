"""
Moodle integration module.

Handles communication with Moodle LMS via its web services API,
including fetching enrolments, assignments, quizzes and attempts,
and saving grades.
"""

from .api import (
    MoodleAPI,
    MoodleAPIError,
    MoodleAuthError,
    MoodleNotFoundError,
    MoodleValidationError,
)
from .models import (
    Assignment,
    AssignmentGrade,
    Course,
    Quiz,
    QuizAttempt,
    QuizResult,
    Role,
    Submission,
    User,
)

__all__ = [
    # API client
    "MoodleAPI",
    # Exceptions
    "MoodleAPIError",
    "MoodleAuthError",
    "MoodleNotFoundError",
    "MoodleValidationError",
    # Models
    "Assignment",
    "AssignmentGrade",
    "Course",
    "Quiz",
    "QuizAttempt",
    "QuizResult",
    "Role",
    "Submission",
    "User",
]
