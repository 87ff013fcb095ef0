"""Shared fixtures: score samples and an in-memory Moodle client."""

from datetime import datetime

import pytest

from moodle_tutor.analytics import StudentScore
from moodle_tutor.moodle import (
    Assignment,
    AssignmentGrade,
    Course,
    MoodleNotFoundError,
    Quiz,
    QuizAttempt,
    QuizResult,
    Role,
    Submission,
    User,
)

# Two clusters around 22 and 84; histogram [1, 2, 20, 2, 0, 0, 1, 2, 20, 2]
LOW_CLUSTER = [0, 12, 15] + [20, 21, 22, 23, 24] * 4 + [30, 32]
HIGH_CLUSTER = [65, 70, 72] + [80, 82, 84, 86, 88] * 4 + [95, 100]

# Peaks in bins 1, 4 and 7; histogram [1, 5, 1, 1, 5, 1, 1, 5, 1, 1]
MULTIMODAL = [0] + [15] * 5 + [25, 35] + [45] * 5 + [55, 65] + [75] * 5 + [85, 100]


def as_records(scores: list[float]) -> list[StudentScore]:
    return [StudentScore(student_id=i + 1, score=s) for i, s in enumerate(scores)]


@pytest.fixture
def bimodal_scores() -> list[float]:
    return LOW_CLUSTER + HIGH_CLUSTER


@pytest.fixture
def multimodal_scores() -> list[float]:
    return list(MULTIMODAL)


STUDENT = Role(id=5, name="Student", shortname="student")
TEACHER = Role(id=3, name="Teacher", shortname="editingteacher")


def make_user(user_id: int, first: str, last: str, roles=(STUDENT,), suspended: bool = False) -> User:
    return User(
        id=user_id,
        username=f"{first.lower()}.{last.lower()}",
        email=f"{first.lower()}@example.edu",
        first_name=first,
        last_name=last,
        roles=list(roles),
        suspended=suspended,
    )


def make_attempt(attempt_id: int, quiz_id: int, user_id: int, number: int, score: float, max_grade=10.0):
    return QuizAttempt(
        id=attempt_id,
        quiz_id=quiz_id,
        user_id=user_id,
        attempt=number,
        sum_grades=score,
        max_grade=max_grade,
        state="finished",
        time_start=datetime(2024, 3, 1, 10, 0),
        time_finish=datetime(2024, 3, 1, 10, 25),
    )


class FakeMoodleAPI:
    """In-memory stand-in for MoodleAPI with the same method names."""

    endpoint = "https://moodle.test/webservice/rest/server.php"

    def __init__(self):
        self.users: dict[int, list[User]] = {}
        self.user_courses: dict[int, list[Course]] = {}
        self.courses: list[Course] = []
        self.assignments: dict[int, list[Assignment]] = {}
        self.submissions: dict[int, list[Submission]] = {}
        self.grades: dict[int, list[AssignmentGrade]] = {}
        self.quizzes: dict[int, list[Quiz]] = {}
        self.attempts: dict[tuple[int, int], list[QuizAttempt]] = {}
        self.enrolment_methods: dict[int, list[dict]] = {}
        self.saved_grades: list[dict] = []

    def get_enrolled_users(self, course_id):
        return list(self.users.get(course_id, []))

    def get_students(self, course_id):
        return [u for u in self.get_enrolled_users(course_id) if u.is_student]

    def get_user_courses(self, user_id):
        return list(self.user_courses.get(user_id, []))

    def get_enrolment_methods(self, course_id):
        return self.enrolment_methods.get(course_id, [])

    def search_users(self, query):
        query = query.lower()
        found = {}
        for users in self.users.values():
            for user in users:
                if query in user.email.lower() or query in user.full_name.lower():
                    found.setdefault(user.id, user)
        return list(found.values())

    def search_courses(self, search_term, page=0, per_page=50):
        return [c for c in self.courses if search_term.lower() in c.fullname.lower()]

    def get_assignments(self, course_id):
        return list(self.assignments.get(course_id, []))

    def get_assignment(self, course_id, assignment_id):
        for assignment in self.get_assignments(course_id):
            if assignment.id == assignment_id:
                return assignment
        raise MoodleNotFoundError(f"Assignment {assignment_id} not found", "cannotfindrecord")

    def get_submissions(self, assignment_id, status=""):
        return list(self.submissions.get(assignment_id, []))

    def get_assignment_grades(self, assignment_id):
        return list(self.grades.get(assignment_id, []))

    def save_grade(self, **kwargs):
        self.saved_grades.append(kwargs)

    def get_quizzes(self, course_id):
        return list(self.quizzes.get(course_id, []))

    def get_quiz(self, course_id, quiz_id):
        for quiz in self.get_quizzes(course_id):
            if quiz.id == quiz_id:
                return quiz
        raise MoodleNotFoundError(f"Quiz {quiz_id} not found in course {course_id}", "cannotfindrecord")

    def get_user_attempts(self, quiz_id, user_id, status="finished"):
        attempts = self.attempts.get((quiz_id, user_id), [])
        if status == "finished":
            attempts = [a for a in attempts if a.state == "finished"]
        return sorted(attempts, key=lambda a: a.attempt)

    def get_user_best_grade(self, quiz_id, user_id):
        finished = self.get_user_attempts(quiz_id, user_id)
        if not finished:
            return None
        return max(a.sum_grades for a in finished)

    def get_quiz_result(self, quiz, user_id):
        return QuizResult(quiz=quiz, user_id=user_id, attempts=self.get_user_attempts(quiz.id, user_id))


COURSE_ID = 42
QUIZ_ID = 7


@pytest.fixture
def fake_api() -> FakeMoodleAPI:
    """Course 42: three students, one teacher, one quiz, one assignment.

    Quiz 7 (max 10): Ana best 9/10 over two attempts, Bob 5/10, Cleo none.
    Assignment 3 (max 20): Ana graded 15, Bob ungraded.
    """
    api = FakeMoodleAPI()
    ana = make_user(1, "Ana", "Popa")
    bob = make_user(2, "Bob", "Ionescu")
    cleo = make_user(3, "Cleo", "Marin", suspended=True)
    teacher = make_user(10, "Tina", "Teach", roles=(TEACHER,))
    api.users[COURSE_ID] = [ana, bob, cleo, teacher]
    api.users[43] = [bob, teacher, make_user(4, "Dan", "Radu")]

    course = Course(id=COURSE_ID, fullname="Linux Fundamentals", shortname="LINUX")
    other = Course(id=43, fullname="Networking Basics", shortname="NET")
    api.courses = [course, other]
    api.user_courses = {
        1: [course],
        2: [course, other],
        3: [Course(id=COURSE_ID, fullname="Linux Fundamentals", suspended=True)],
        10: [course, other],
    }

    api.quizzes[COURSE_ID] = [Quiz(id=QUIZ_ID, name="Shell Basics", course_id=COURSE_ID, grade=10.0)]
    api.attempts[(QUIZ_ID, 1)] = [
        make_attempt(100, QUIZ_ID, 1, 1, 6.0),
        make_attempt(101, QUIZ_ID, 1, 2, 9.0),
    ]
    api.attempts[(QUIZ_ID, 2)] = [make_attempt(102, QUIZ_ID, 2, 1, 5.0)]

    api.assignments[COURSE_ID] = [
        Assignment(id=3, name="Permissions Lab", course_id=COURSE_ID, max_grade=20.0)
    ]
    api.submissions[3] = [Submission(id=1, assignment_id=3, user_id=1, status="submitted")]
    api.grades[3] = [AssignmentGrade(user_id=1, grade=15.0), AssignmentGrade(user_id=2, grade=None)]
    api.enrolment_methods[COURSE_ID] = [{"id": 1, "type": "manual"}]
    return api
