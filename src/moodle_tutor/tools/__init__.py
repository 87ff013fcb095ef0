"""
MCP tools module.

One module per tool family. Each exposes plain report functions that take
a MoodleAPI client, plus a ``register_*_tools`` function that wraps them
as MCP tools.
"""

from mcp.server.fastmcp import FastMCP

from .admin import register_admin_tools
from .cohort import register_cohort_tools
from .common import ToolContext, tool_errors
from .course import register_course_tools
from .persona import register_persona_tools
from .quiz_authoring import register_quiz_authoring_tools
from .quiz_results import register_quiz_result_tools


def register_all_tools(mcp: FastMCP, ctx: ToolContext) -> None:
    """Register every tool family on the server."""
    register_course_tools(mcp, ctx)
    register_quiz_result_tools(mcp, ctx)
    register_cohort_tools(mcp, ctx)
    register_quiz_authoring_tools(mcp, ctx)
    register_admin_tools(mcp, ctx)
    register_persona_tools(mcp, ctx)


__all__ = [
    "ToolContext",
    "tool_errors",
    "register_all_tools",
    "register_admin_tools",
    "register_cohort_tools",
    "register_course_tools",
    "register_persona_tools",
    "register_quiz_authoring_tools",
    "register_quiz_result_tools",
]
