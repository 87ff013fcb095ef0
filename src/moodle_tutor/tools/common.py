"""Shared plumbing for the MCP tool modules."""

import functools
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from mcp.server.fastmcp.exceptions import ToolError

from ..analytics import DEFAULT_THRESHOLDS, CohortThresholds, InvalidArgumentError
from ..moodle import MoodleAPI, MoodleAPIError
from ..utils.logging import get_logger

logger = get_logger(__name__)

SEPARATOR = "-" * 48

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class ToolContext:
    """What every tool needs: the Moodle client and server-wide defaults."""

    api: MoodleAPI
    default_course_id: int | None = None
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS

    def course(self, course_id: int | None) -> int:
        """Resolve an optional course id against the configured default.

        Raises:
            ToolError: If neither is available
        """
        if course_id is not None:
            return course_id
        if self.default_course_id is None:
            raise ToolError("course_id is required: no default course is configured (MOODLE_COURSE_ID)")
        return self.default_course_id


def tool_errors(action: str) -> Callable[[F], F]:
    """Turn Moodle and argument failures into MCP tool errors.

    Args:
        action: What the tool was doing, used in the error message
            (e.g. "getting quiz leaderboard")
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger.info(f"Tool {func.__name__} called")
            try:
                return func(*args, **kwargs)
            except MoodleAPIError as e:
                logger.error(f"Error {action}: {e}")
                raise ToolError(f"Error {action}: Moodle API error: {e}") from e
            except InvalidArgumentError as e:
                raise ToolError(f"Error {action}: Invalid argument: {e}") from e

        return wrapper  # type: ignore[return-value]

    return decorator


def format_date(value: datetime | None, default: str = "Never") -> str:
    if value is None:
        return default
    return value.strftime("%Y-%m-%d %H:%M")


def format_percent(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.1f}%"
