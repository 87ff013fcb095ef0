"""Administration tools: course search, participants and enrolment status."""

import re

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from ..moodle import Course, MoodleAPI, User
from ..utils.logging import get_logger
from .common import SEPARATOR, ToolContext, format_date, tool_errors

logger = get_logger(__name__)

# Unique users listed per course when comparing participants
COMPARE_LIST_LIMIT = 10

SUMMARY_LENGTH = 100


def course_instructors(api: MoodleAPI, course_id: int) -> list[User]:
    return [u for u in api.get_enrolled_users(course_id) if u.is_teacher]


def _role_names(user: User) -> str:
    return ", ".join(role.name for role in user.roles) or "none"


def _format_courses(courses: list[Course], query: str) -> str:
    if not courses:
        return (
            f'No courses found matching "{query}".\n\n'
            "Tips:\n"
            "- Try a partial name\n"
            "- Check the spelling\n"
            "- Try searching by instructor instead"
        )

    plural = "s" if len(courses) > 1 else ""
    lines = [f'Found {len(courses)} course{plural} matching "{query}"']
    for course in courses:
        lines.append(SEPARATOR)
        lines.append(course.fullname)
        lines.append(f"   ID: {course.id} | Short name: {course.shortname}")
        lines.append(f"   Status: {'Visible' if course.visible else 'Hidden'}")
        if course.summary:
            text = re.sub(r"<[^>]*>", "", course.summary)
            ellipsis = "..." if len(text) > SUMMARY_LENGTH else ""
            lines.append(f"   Summary: {text[:SUMMARY_LENGTH]}{ellipsis}")
        if course.instructors:
            lines.append("   Instructors:")
            for instructor in course.instructors:
                lines.append(f"      {instructor.full_name} ({instructor.email}) - {_role_names(instructor)}")
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Course search
# -----------------------------------------------------------------------------


def search_courses_by_name_report(api: MoodleAPI, search_term: str, include_instructors: bool = False) -> str:
    if not search_term.strip():
        raise ToolError("search_term is required")

    courses = api.search_courses(search_term)
    if include_instructors:
        for course in courses:
            course.instructors = course_instructors(api, course.id)
    return _format_courses(courses, search_term)


def search_courses_by_instructor_report(api: MoodleAPI, instructor_query: str) -> str:
    """
    Courses in which a user matching the query holds a teaching role.

    Args:
        api: Moodle client
        instructor_query: Email address or (partial) name of the instructor
    """
    if not instructor_query.strip():
        raise ToolError("instructor_query is required")

    users = api.search_users(instructor_query)
    if not users:
        return (
            f'No instructors found matching "{instructor_query}".\n\n'
            "Try a full name, a partial name or an email address."
        )

    found: dict[int, Course] = {}
    for user in users:
        for course in api.get_user_courses(user.id):
            instructor = next(
                (u for u in course_instructors(api, course.id) if u.id == user.id),
                None,
            )
            if instructor is None:
                continue
            entry = found.setdefault(course.id, course)
            if all(i.id != instructor.id for i in entry.instructors):
                entry.instructors.append(instructor)

    return _format_courses(list(found.values()), instructor_query)


# -----------------------------------------------------------------------------
# Participants
# -----------------------------------------------------------------------------


def course_participants_report(api: MoodleAPI, course_id: int) -> str:
    users = api.get_enrolled_users(course_id)
    mentors = [u for u in users if u.is_teacher]
    students = [u for u in users if u.is_student and not u.is_teacher]
    others = [u for u in users if not u.is_student and not u.is_teacher]

    lines = [
        f"Participants of course {course_id}",
        SEPARATOR,
        f"Total: {len(users)}, mentors: {len(mentors)}, students: {len(students)}, others: {len(others)}",
    ]

    lines += ["", f"Mentors ({len(mentors)}):"]
    for user in mentors:
        lines.append(f"   {user.full_name} (ID: {user.id}) - {user.email}")
        lines.append(f"      Roles: {_role_names(user)}")
        lines.append(f"      Last course access: {format_date(user.last_course_access)}")

    lines += ["", f"Students ({len(students)}):"]
    for user in students:
        lines.append(f"   {user.full_name} (ID: {user.id}) - {user.email}")

    if others:
        lines += ["", f"Other roles ({len(others)}):"]
        for user in others:
            lines.append(f"   {user.full_name} (ID: {user.id}) - {_role_names(user)}")

    return "\n".join(lines)


def course_mentors_report(api: MoodleAPI, course_id: int) -> str:
    mentors = course_instructors(api, course_id)
    if not mentors:
        return f"No mentors found in course {course_id}."

    lines = [f"Mentors of course {course_id} ({len(mentors)})", SEPARATOR]
    for user in mentors:
        lines.append(f"{user.full_name} (ID: {user.id})")
        lines.append(f"   Email: {user.email}")
        lines.append(f"   Roles: {_role_names(user)}")
    return "\n".join(lines)


def compare_participants_report(api: MoodleAPI, course_id_1: int, course_id_2: int) -> str:
    users_1 = api.get_enrolled_users(course_id_1)
    users_2 = api.get_enrolled_users(course_id_2)
    ids_1 = {u.id for u in users_1}
    ids_2 = {u.id for u in users_2}

    common = [u for u in users_1 if u.id in ids_2]
    only_1 = [u for u in users_1 if u.id not in ids_2]
    only_2 = [u for u in users_2 if u.id not in ids_1]

    lines = [
        "Comparing participants",
        f"Course {course_id_1}: {len(users_1)} participants",
        f"Course {course_id_2}: {len(users_2)} participants",
        SEPARATOR,
        f"In both courses ({len(common)}):",
    ]
    lines.extend(f"   {u.full_name} ({u.email})" for u in common)
    if not common:
        lines.append("   (none)")

    for course_id, unique in ((course_id_1, only_1), (course_id_2, only_2)):
        lines += ["", f"Only in course {course_id} ({len(unique)}):"]
        lines.extend(f"   {u.full_name}" for u in unique[:COMPARE_LIST_LIMIT])
        if not unique:
            lines.append("   (none)")
        elif len(unique) > COMPARE_LIST_LIMIT:
            lines.append(f"   ... and {len(unique) - COMPARE_LIST_LIMIT} more")

    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Enrolment
# -----------------------------------------------------------------------------


def enrollment_status_report(api: MoodleAPI, course_id: int, include_inactive: bool = False) -> str:
    """
    Enrolled users split into active students, teachers, suspended and others.

    With include_inactive, suspended users are listed under their role
    (marked as suspended) instead of in a separate group.
    """
    users = api.get_enrolled_users(course_id)
    methods = api.get_enrolment_methods(course_id)

    students: list[User] = []
    teachers: list[User] = []
    suspended: list[User] = []
    others: list[User] = []

    for user in users:
        if user.suspended and not include_inactive:
            suspended.append(user)
        elif user.is_student:
            students.append(user)
        elif user.is_teacher:
            teachers.append(user)
        else:
            others.append(user)

    def label(user: User) -> str:
        return f"{user.full_name} (ID: {user.id})" + (" [suspended]" if user.suspended else "")

    lines = [
        f"Enrolment status of course {course_id}",
        SEPARATOR,
        f"Total enrolled: {len(users)}",
        f"Students: {len(students)}",
        f"Teachers/mentors: {len(teachers)}",
        f"Suspended: {len(suspended)}",
        f"Others: {len(others)}",
        f"Enrolment methods: {', '.join(m.get('type', '?') for m in methods) or 'none'}",
    ]

    if teachers:
        lines += ["", f"Teachers/mentors ({len(teachers)}):"]
        for user in teachers:
            lines.append(f"   {label(user)} - {user.email}")
            lines.append(f"      Roles: {_role_names(user)}")
            lines.append(f"      Last course access: {format_date(user.last_course_access)}")

    if students:
        lines += ["", f"Students ({len(students)}):"]
        for user in students:
            lines.append(f"   {label(user)} - {user.email}")
            lines.append(f"      Last course access: {format_date(user.last_course_access)}")

    if suspended:
        lines += ["", f"Suspended/inactive ({len(suspended)}):"]
        lines.extend(f"   {u.full_name} (ID: {u.id}) - {u.email}" for u in suspended)

    if others:
        lines += ["", f"Others ({len(others)}):"]
        lines.extend(f"   {label(u)} - {_role_names(u)}" for u in others)

    return "\n".join(lines)


def active_students(api: MoodleAPI, course_id: int) -> list[User]:
    """Students whose own course list shows an active enrolment in the course."""
    active = []
    for user in api.get_students(course_id):
        if user.suspended:
            logger.debug(f"User {user.id} suspended in course {course_id}")
            continue
        enrolment = next((c for c in api.get_user_courses(user.id) if c.id == course_id), None)
        if enrolment is None or enrolment.suspended:
            logger.debug(f"User {user.id} not actively enrolled in course {course_id}")
            continue
        active.append(user)
    return active


def active_students_report(api: MoodleAPI, course_id: int) -> str:
    students = active_students(api, course_id)
    if not students:
        return (
            f"No active students in course {course_id}.\n\n"
            "Possible reasons:\n"
            "- No students are enrolled\n"
            "- All students are suspended"
        )

    lines = [f"Active students in course {course_id} ({len(students)})", SEPARATOR]
    for user in students:
        lines.append(f"{user.full_name} (ID: {user.id})")
        lines.append(f"   Username: {user.username}")
        lines.append(f"   Email: {user.email}")
        lines.append(f"   Last course access: {format_date(user.last_course_access)}")
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Registration
# -----------------------------------------------------------------------------


def register_admin_tools(mcp: FastMCP, ctx: ToolContext) -> None:
    """Register administration MCP tools."""

    @mcp.tool()
    @tool_errors("searching courses")
    def search_courses_by_name(search_term: str, include_instructors: bool = False) -> str:
        """Search courses by name.

        Args:
            search_term: Text to look for in course names
            include_instructors: Also list each course's teachers
        """
        return search_courses_by_name_report(ctx.api, search_term, include_instructors)

    @mcp.tool()
    @tool_errors("searching courses by instructor")
    def search_courses_by_instructor(instructor_query: str) -> str:
        """Find the courses taught by an instructor.

        Args:
            instructor_query: Instructor email or (partial) name
        """
        return search_courses_by_instructor_report(ctx.api, instructor_query)

    @mcp.tool()
    @tool_errors("getting course participants")
    def get_course_participants(course_id: int | None = None) -> str:
        """List a course's participants grouped as mentors, students and others.

        Args:
            course_id: Moodle course ID (defaults to the configured course)
        """
        return course_participants_report(ctx.api, ctx.course(course_id))

    @mcp.tool()
    @tool_errors("getting course mentors")
    def get_course_mentors(course_id: int | None = None) -> str:
        """List a course's teachers, editing teachers and managers.

        Args:
            course_id: Moodle course ID (defaults to the configured course)
        """
        return course_mentors_report(ctx.api, ctx.course(course_id))

    @mcp.tool()
    @tool_errors("comparing course participants")
    def compare_course_participants(course_id_1: int, course_id_2: int) -> str:
        """Show the participants two courses share and those unique to each.

        Args:
            course_id_1: First course ID
            course_id_2: Second course ID
        """
        return compare_participants_report(ctx.api, course_id_1, course_id_2)

    @mcp.tool()
    @tool_errors("getting enrollment status")
    def get_enrollment_status(course_id: int | None = None, include_inactive: bool = False) -> str:
        """Show active students, teachers, suspended users and others of a course.

        Args:
            course_id: Moodle course ID (defaults to the configured course)
            include_inactive: List suspended users under their role instead of separately
        """
        return enrollment_status_report(ctx.api, ctx.course(course_id), include_inactive)

    @mcp.tool()
    @tool_errors("getting active students")
    def get_active_students_only(course_id: int | None = None) -> str:
        """List only the students actively enrolled (not suspended) in a course.

        Args:
            course_id: Moodle course ID (defaults to the configured course)
        """
        return active_students_report(ctx.api, ctx.course(course_id))
