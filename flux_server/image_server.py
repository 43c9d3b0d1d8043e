import logging
import signal
import sys
from typing import Any, Optional

import anyio
from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP
from mcp.types import CallToolResult, TextContent
from pydantic import Field

from flux_server.config import Config, ensure_working_directory, load_config
from flux_server.errors import ConfigError
from flux_server.image_processor import ImageProcessor
from flux_server.log import log_event, setup_logging
from flux_server.orchestrator import Orchestrator
from flux_server.replicate_client import ReplicateClient
from flux_server.temp_manager import TempManager

logger = logging.getLogger(__name__)

SERVER_NAME = "flux-replicate-mcp-server"

MODEL_CHOICES = ["flux-1.1-pro", "flux-pro", "flux-schnell", "flux-ultra"]


def create_server(orchestrator: Orchestrator) -> FastMCP:
    """Build the MCP server exposing the generate_image tool."""
    mcp = FastMCP(SERVER_NAME)

    # Arguments are typed loosely so that Orchestrator.handle does all the
    # validation and every bad value comes back as `Error: <message>`.
    # The enum and bounds are still advertised in the input schema.
    @mcp.tool(structured_output=False)
    async def generate_image(
        prompt: str = Field(description="Text description of the image to generate"),
        model: Any = Field(
            default=None,
            description="Flux model to use (defaults to the server's configured model)",
            json_schema_extra={"type": "string", "enum": MODEL_CHOICES},
        ),
        output_path: Any = Field(
            default=None,
            description="Absolute path for the output file (optional, a name is generated from the prompt)",
            json_schema_extra={"type": "string"},
        ),
        width: Any = Field(
            default=None,
            description="Image width in pixels",
            json_schema_extra={"type": "number"},
        ),
        height: Any = Field(
            default=None,
            description="Image height in pixels",
            json_schema_extra={"type": "number"},
        ),
        quality: Any = Field(
            default=None,
            description="Output quality from 1 to 100",
            json_schema_extra={"type": "number", "minimum": 1, "maximum": 100},
        ),
    ) -> CallToolResult:
        """
        Generate images using Flux Pro or Flux Schnell models.
        Saves the image locally and returns a summary including the file path.
        """
        arguments = {
            "prompt": prompt,
            "model": model,
            "output_path": output_path,
            "width": width,
            "height": height,
            "quality": quality,
        }
        arguments = {k: v for k, v in arguments.items() if v is not None}
        # Polling and downloads block, so they run on a worker thread
        response = await anyio.to_thread.run_sync(orchestrator.handle, arguments, abandon_on_cancel=True)
        return CallToolResult(
            content=[TextContent(type="text", text=response.text)],
            isError=response.is_error,
        )

    return mcp


def build_orchestrator(config: Config, working_directory: str, temp_manager: TempManager) -> Orchestrator:
    client = ReplicateClient(
        config.replicate_api_token,
        timeout=config.timeout_seconds,
        poll_interval=config.poll_interval_seconds,
    )
    return Orchestrator(
        config=config,
        working_directory=working_directory,
        client=client,
        processor=ImageProcessor(temp_manager),
        temp_manager=temp_manager,
    )


def install_shutdown_handlers(temp_manager: TempManager, orchestrator: Orchestrator) -> None:
    """SIGINT and SIGTERM both clean up and exit with code 0.

    Temp files are removed and the Replicate HTTP session is closed. The
    stdio transport is not torn down here: it closes when the process exits
    and the streams are released.
    """

    def shutdown(signum, frame):
        log_event(logger, logging.INFO, "Shutting down server", signal=signal.Signals(signum).name)
        removed = temp_manager.pending
        temp_manager.cleanup_all()
        log_event(logger, logging.INFO, "Temp files cleaned up", count=len(removed))
        close = getattr(orchestrator.client, "close", None)
        if close is not None:
            close()
            logger.info("Closed Replicate HTTP session")
        logger.info("Exiting, stdio transport closes with the process")
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)


def main() -> None:
    load_dotenv()
    setup_logging()

    try:
        config = load_config()
        working_directory = ensure_working_directory(config.working_directory)
    except (ConfigError, OSError) as e:
        log_event(logger, logging.ERROR, "Failed to start server", error=str(e))
        sys.exit(1)

    logging.getLogger().setLevel(config.log_level)

    temp_manager = TempManager()
    orchestrator = build_orchestrator(config, working_directory, temp_manager)
    mcp = create_server(orchestrator)
    install_shutdown_handlers(temp_manager, orchestrator)

    log_event(logger, logging.INFO, "Starting Flux Replicate MCP Server",
              platform=sys.platform, working_directory=working_directory,
              default_model=config.default_model)
    try:
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Server crashed")
        sys.exit(1)


if __name__ == "__main__":
    main()
