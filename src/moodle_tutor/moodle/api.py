"""
Client for the Moodle web-service REST endpoint.

Each ``MoodleAPI`` method maps onto one ``core_*``, ``mod_assign_*`` or
``mod_quiz_*`` web-service function and returns the dataclasses from
``moodle_tutor.moodle.models``. Moodle error payloads arrive with HTTP 200,
so every response is checked for ``errorcode`` before it is parsed.

Function reference: https://docs.moodle.org/dev/Web_service_API_functions
"""

from typing import Any

import httpx

from ..utils.logging import get_logger
from .models import (
    Assignment,
    AssignmentGrade,
    Course,
    Quiz,
    QuizAttempt,
    QuizResult,
    Submission,
    User,
)

logger = get_logger(__name__)

REST_PATH = "/webservice/rest/server.php"


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class MoodleAPIError(Exception):
    """Error returned by Moodle or raised while reaching it."""

    def __init__(self, message: str, error_code: str | None = None, debug_info: str | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.debug_info = debug_info


class MoodleAuthError(MoodleAPIError):
    """Invalid token or missing capability."""

    pass


class MoodleNotFoundError(MoodleAPIError):
    """Course, user or activity does not exist."""

    pass


class MoodleValidationError(MoodleAPIError):
    """Moodle rejected the parameters of a call."""

    pass


# -----------------------------------------------------------------------------
# API Client
# -----------------------------------------------------------------------------


class MoodleAPI:
    """
    Token-authenticated Moodle web-service client.

    The underlying httpx client is created on first use and closed by
    ``close()`` or when used as a context manager.

    Usage:
        api = MoodleAPI(
            base_url="https://moodle.example.edu",
            token="your_webservice_token"
        )
        students = api.get_students(course_id=42)
    """

    # Request timeout in seconds
    DEFAULT_TIMEOUT = 30.0

    # Moodle web service response format
    RESPONSE_FORMAT = "json"

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize the Moodle API client.

        Args:
            base_url: Base URL of the Moodle instance (e.g., https://moodle.example.edu),
                or the full REST endpoint ending in server.php
            token: Web services API token (generated in Moodle admin)
            timeout: Request timeout in seconds
            verify_ssl: Whether to verify SSL certificates
            transport: Optional httpx transport (used by tests)
        """
        base_url = base_url.rstrip("/")
        if base_url.endswith(REST_PATH):
            base_url = base_url[: -len(REST_PATH)]
        self.base_url = base_url
        self.token = token
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{REST_PATH}"

    @property
    def client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                verify=self.verify_ssl,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "MoodleAPI":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Core API Methods
    # -------------------------------------------------------------------------

    def _call(self, wsfunction: str, **params: Any) -> Any:
        """
        Make a call to the Moodle Web Services API.

        Args:
            wsfunction: The Moodle web service function name
            **params: Function parameters

        Returns:
            Parsed JSON response data

        Raises:
            MoodleAPIError: If the API returns an error or the request fails
            MoodleAuthError: If authentication fails
        """
        request_params = {
            "wstoken": self.token,
            "wsfunction": wsfunction,
            "moodlewsrestformat": self.RESPONSE_FORMAT,
            **self._flatten_params(params),
        }

        logger.debug(f"Calling Moodle API: {wsfunction}")

        try:
            response = self.client.post(self.endpoint, data=request_params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error calling {wsfunction}: {e}")
            raise MoodleAPIError(f"HTTP {e.response.status_code}: {e.response.text}") from e
        except httpx.RequestError as e:
            logger.error(f"Request error calling {wsfunction}: {e}")
            raise MoodleAPIError(f"Request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise MoodleAPIError(f"Invalid JSON response from {wsfunction}") from e

        # Check for Moodle-level errors
        self._check_error(data, wsfunction)

        return data

    def _flatten_params(self, params: dict[str, Any], prefix: str = "") -> dict[str, Any]:
        """
        Flatten nested parameters for Moodle's expected format.

        Moodle expects array parameters in the format:
        param[0][key] = value

        Args:
            params: Parameters to flatten
            prefix: Current parameter prefix

        Returns:
            Flattened parameter dictionary
        """
        result = {}

        for key, value in params.items():
            full_key = f"{prefix}[{key}]" if prefix else key

            if value is None:
                continue
            elif isinstance(value, dict):
                result.update(self._flatten_params(value, full_key))
            elif isinstance(value, (list, tuple)):
                for i, item in enumerate(value):
                    if isinstance(item, dict):
                        result.update(self._flatten_params(item, f"{full_key}[{i}]"))
                    else:
                        result[f"{full_key}[{i}]"] = item
            elif isinstance(value, bool):
                result[full_key] = int(value)
            else:
                result[full_key] = value

        return result

    def _check_error(self, data: Any, wsfunction: str) -> None:
        """
        Check API response for errors.

        Args:
            data: Parsed response data
            wsfunction: The function that was called

        Raises:
            MoodleAuthError: If authentication/authorization failed
            MoodleNotFoundError: If resource was not found
            MoodleValidationError: If validation failed
            MoodleAPIError: For other errors
        """
        if not isinstance(data, dict):
            return

        if "exception" in data or "errorcode" in data:
            error_code = data.get("errorcode", "unknown")
            message = data.get("message", data.get("exception", "Unknown error"))
            debug_info = data.get("debuginfo")

            logger.error(f"Moodle API error in {wsfunction}: [{error_code}] {message}")

            if error_code in ("invalidtoken", "accessexception", "requireloginerror"):
                raise MoodleAuthError(message, error_code, debug_info)
            elif error_code in ("invalidrecord", "cannotfindrecord"):
                raise MoodleNotFoundError(message, error_code, debug_info)
            elif error_code in ("invalidparameter", "invalidargument"):
                raise MoodleValidationError(message, error_code, debug_info)
            else:
                raise MoodleAPIError(message, error_code, debug_info)

    # -------------------------------------------------------------------------
    # Site, Users & Enrolment API
    # -------------------------------------------------------------------------

    def get_site_info(self) -> dict[str, Any]:
        """
        Get information about the site and the token's user.

        Uses: core_webservice_get_site_info
        """
        return self._call("core_webservice_get_site_info")

    def get_enrolled_users(self, course_id: int) -> list[User]:
        """
        Get every user enrolled in a course, whatever their role.

        Uses: core_enrol_get_enrolled_users

        Args:
            course_id: The course ID

        Returns:
            List of User objects with their roles
        """
        logger.info(f"Fetching enrolled users for course {course_id}")
        response = self._call("core_enrol_get_enrolled_users", courseid=course_id)
        users = [User.from_api_response(u, course_id) for u in response or []]
        logger.info(f"Found {len(users)} enrolled users in course {course_id}")
        return users

    def get_students(self, course_id: int) -> list[User]:
        """Get enrolled users holding the student role."""
        return [u for u in self.get_enrolled_users(course_id) if u.is_student]

    def get_user_courses(self, user_id: int) -> list[Course]:
        """
        Get the courses a user is enrolled in.

        Uses: core_enrol_get_users_courses
        """
        response = self._call("core_enrol_get_users_courses", userid=user_id)
        return [Course.from_api_response(c) for c in response or []]

    def get_enrolment_methods(self, course_id: int) -> list[dict[str, Any]]:
        """
        Get the enrolment methods configured for a course.

        Uses: core_enrol_get_course_enrolment_methods
        """
        return self._call("core_enrol_get_course_enrolment_methods", courseid=course_id) or []

    def search_users(self, query: str) -> list[User]:
        """
        Find users by email, or by first or last name (partial match).

        Uses: core_user_get_users

        Args:
            query: An email address or a (partial) name

        Returns:
            Matching users, each listed once
        """
        if "@" in query:
            criteria_sets = [[{"key": "email", "value": query}]]
        else:
            pattern = f"%{query}%"
            criteria_sets = [
                [{"key": "firstname", "value": pattern}],
                [{"key": "lastname", "value": pattern}],
            ]

        found: dict[int, User] = {}
        for criteria in criteria_sets:
            response = self._call("core_user_get_users", criteria=criteria)
            for user_data in response.get("users", []):
                found.setdefault(user_data["id"], User.from_api_response(user_data))

        logger.info(f"Found {len(found)} users matching '{query}'")
        return list(found.values())

    # -------------------------------------------------------------------------
    # Course API
    # -------------------------------------------------------------------------

    def search_courses(self, search_term: str, page: int = 0, per_page: int = 50) -> list[Course]:
        """
        Search courses by text.

        Uses: core_course_search_courses
        """
        logger.info(f"Searching courses for '{search_term}'")
        response = self._call(
            "core_course_search_courses",
            criterianame="search",
            criteriavalue=search_term,
            page=page,
            perpage=per_page,
        )
        return [Course.from_api_response(c) for c in response.get("courses", [])]

    # -------------------------------------------------------------------------
    # Assignment API
    # -------------------------------------------------------------------------

    def get_assignments(self, course_id: int) -> list[Assignment]:
        """
        Get all assignments for a course.

        Uses: mod_assign_get_assignments
        """
        logger.info(f"Fetching assignments for course {course_id}")
        response = self._call("mod_assign_get_assignments", courseids=[course_id])

        assignments = []
        for course_data in response.get("courses", []):
            for assign_data in course_data.get("assignments", []):
                assignments.append(
                    Assignment.from_api_response(assign_data, course_data.get("id", course_id))
                )
        return assignments

    def get_assignment(self, course_id: int, assignment_id: int) -> Assignment:
        """
        Get one assignment of a course.

        Raises:
            MoodleNotFoundError: If the course has no such assignment
        """
        for assignment in self.get_assignments(course_id):
            if assignment.id == assignment_id:
                return assignment

        raise MoodleNotFoundError(
            f"Assignment {assignment_id} not found in course {course_id}",
            "cannotfindrecord",
        )

    def get_submissions(self, assignment_id: int, status: str = "") -> list[Submission]:
        """
        Get submissions for an assignment.

        Uses: mod_assign_get_submissions

        Args:
            assignment_id: The assignment ID
            status: Filter by status ('new', 'submitted', 'draft', '')

        Returns:
            List of Submission objects
        """
        logger.info(f"Fetching submissions for assignment {assignment_id}")

        params: dict[str, Any] = {"assignmentids": [assignment_id]}
        if status:
            params["status"] = status

        response = self._call("mod_assign_get_submissions", **params)

        submissions = []
        for assignment_data in response.get("assignments", []):
            if assignment_data.get("assignmentid") != assignment_id:
                continue
            for submission_data in assignment_data.get("submissions", []):
                submissions.append(Submission.from_api_response(submission_data, assignment_id))

        logger.info(f"Found {len(submissions)} submissions for assignment {assignment_id}")
        return submissions

    def get_assignment_grades(self, assignment_id: int) -> list[AssignmentGrade]:
        """
        Get the grades recorded for an assignment.

        Uses: mod_assign_get_grades
        """
        response = self._call("mod_assign_get_grades", assignmentids=[assignment_id])

        grades = []
        for assignment_data in response.get("assignments", []):
            if assignment_data.get("assignmentid") != assignment_id:
                continue
            grades.extend(AssignmentGrade.from_api_response(g) for g in assignment_data.get("grades", []))
        return grades

    def save_grade(
        self,
        assignment_id: int,
        user_id: int,
        grade: float,
        feedback_html: str = "",
        attempt_number: int = -1,
        workflow_state: str = "",
        feedback_format: int = 1,  # 1 = HTML format
    ) -> None:
        """
        Save a grade and feedback comment for a student's submission.

        Uses: mod_assign_save_grade

        Args:
            assignment_id: The assignment instance ID
            user_id: The student's user ID
            grade: The numeric grade (must be within assignment's grade range)
            feedback_html: HTML-formatted feedback text
            attempt_number: Attempt number (-1 for latest attempt)
            workflow_state: Marking workflow state ('' keeps the default)
            feedback_format: Format of feedback (1=HTML, 0=plain text)

        Raises:
            MoodleValidationError: If grade is invalid
            MoodleNotFoundError: If assignment or user not found
            MoodleAPIError: For other API errors
        """
        logger.info(f"Saving grade {grade} for user {user_id} on assignment {assignment_id}")

        self._call(
            "mod_assign_save_grade",
            assignmentid=assignment_id,
            userid=user_id,
            grade=grade,
            attemptnumber=attempt_number,
            addattempt=0,
            workflowstate=workflow_state,
            applytoall=0,
            plugindata={
                "assignfeedbackcomments_editor": {
                    "text": feedback_html,
                    "format": feedback_format,
                }
            },
        )

        logger.info(f"Successfully saved grade for user {user_id}")

    # -------------------------------------------------------------------------
    # Quiz API
    # -------------------------------------------------------------------------

    def get_quizzes(self, course_id: int) -> list[Quiz]:
        """
        Get all quizzes in a course.

        Uses: mod_quiz_get_quizzes_by_courses
        """
        logger.info(f"Fetching quizzes for course {course_id}")
        response = self._call("mod_quiz_get_quizzes_by_courses", courseids=[course_id])
        return [Quiz.from_api_response(q) for q in response.get("quizzes", [])]

    def get_quiz(self, course_id: int, quiz_id: int) -> Quiz:
        """
        Get one quiz of a course.

        Raises:
            MoodleNotFoundError: If the course has no such quiz
        """
        for quiz in self.get_quizzes(course_id):
            if quiz.id == quiz_id:
                return quiz

        raise MoodleNotFoundError(
            f"Quiz {quiz_id} not found in course {course_id}",
            "cannotfindrecord",
        )

    def get_user_attempts(
        self, quiz_id: int, user_id: int, status: str = "finished"
    ) -> list[QuizAttempt]:
        """
        Get a user's attempts at a quiz, ordered by attempt number.

        Uses: mod_quiz_get_user_attempts

        Args:
            quiz_id: The quiz instance ID
            user_id: The user ID
            status: 'all', 'finished' or 'unfinished'
        """
        response = self._call(
            "mod_quiz_get_user_attempts",
            quizid=quiz_id,
            userid=user_id,
            status=status,
        )
        attempts = [QuizAttempt.from_api_response(a) for a in response.get("attempts", [])]
        return sorted(attempts, key=lambda a: a.attempt)

    def get_user_best_grade(self, quiz_id: int, user_id: int) -> float | None:
        """
        Get a user's best grade at a quiz, None when there is none yet.

        Uses: mod_quiz_get_user_best_grade
        """
        response = self._call("mod_quiz_get_user_best_grade", quizid=quiz_id, userid=user_id)
        if not response.get("hasgrade"):
            return None
        return float(response.get("grade", 0.0))

    def get_quiz_result(self, quiz: Quiz, user_id: int) -> QuizResult:
        """Collect a user's finished attempts at a quiz."""
        return QuizResult(
            quiz=quiz,
            user_id=user_id,
            attempts=self.get_user_attempts(quiz.id, user_id, status="finished"),
        )
