from __future__ import annotations

import logging

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from timeforge.server.server_runtime import ServerRuntime
from timeforge.server.server_tools_time import register_time_tools
from timeforge.shared.config import EngineConfig

logger = logging.getLogger(__name__)


def create_server(config: EngineConfig | None = None) -> tuple[FastMCP, ServerRuntime]:
    """Build the MCP server and its runtime with all tools registered."""
    runtime = ServerRuntime(config)
    mcp = FastMCP(name="timeforge")
    register_time_tools(mcp, runtime)
    return mcp, runtime


def main() -> None:
    """Entry point for launching the MCP server."""

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("🚀 Starting TimeForge MCP server")

    config = EngineConfig.from_env()
    mcp, runtime = create_server(config)
    runtime.initialize_critical_components()

    if config.transport == "sse":
        import uvicorn

        # Mount FastMCP at root so /messages/ and other endpoints work correctly
        app = mcp.http_app(path="/", transport="sse")

        @app.route("/health", methods=["GET"])
        async def healthcheck(_: Request) -> JSONResponse:
            """Lightweight endpoint used for container health checks."""

            return JSONResponse({"status": "ok", "ready": runtime.server_ready})

        logger.info("🌐 Running MCP server on http://%s:%s", config.host, config.port)
        logger.info("📡 SSE endpoint available at /sse")
        logger.info("💬 Messages endpoint available at /messages/")
        uvicorn.run(app, host=config.host, port=config.port)
    else:
        logger.info("📡 Running MCP server in STDIO mode")
        mcp.run()


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
