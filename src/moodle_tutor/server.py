"""
Moodle tutor MCP server.

Builds a FastMCP server wired to a Moodle web-service client and registers
the tool catalog on it.
"""

from mcp.server.fastmcp import FastMCP

from .config.models import AppConfig, ConfigError
from .moodle import MoodleAPI
from .tools import ToolContext, register_all_tools
from .utils.logging import get_logger

logger = get_logger(__name__)

SERVER_NAME = "moodle-tutor"

INSTRUCTIONS = (
    "Moodle tutor assistant. Reads courses, students, assignments and quiz "
    "attempts from Moodle, analyzes cohort score distributions, recommends "
    "teaching strategies and drafts quizzes as Moodle XML for import."
)


def create_server(config: AppConfig, api: MoodleAPI | None = None) -> FastMCP:
    """Create the MCP server for a configuration.

    Args:
        config: Loaded application configuration
        api: Moodle client to use instead of one built from ``config.moodle``

    Returns:
        FastMCP server with every tool registered

    Raises:
        ConfigError: If no client is given and the Moodle URL or token is missing
    """
    if api is None:
        settings = config.moodle
        if not settings.url or not settings.token:
            raise ConfigError("Moodle URL and token are required to start the server")
        api = MoodleAPI(
            base_url=settings.url,
            token=settings.token,
            timeout=settings.timeout,
            verify_ssl=settings.verify_ssl,
        )

    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS)
    ctx = ToolContext(
        api=api,
        default_course_id=config.moodle.course_id,
        thresholds=config.thresholds,
    )
    register_all_tools(mcp, ctx)

    logger.info(f"MCP server ready for {api.endpoint}")
    return mcp
