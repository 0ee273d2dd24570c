"""
HTTP entry point for the wallet summarizer agent.

The platform posts actions to ``POST /`` and expects a quick
acknowledgement, so tasks and chat replies run as background tasks.
Tools can be invoked directly with ``POST /tools/{name}``.
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .agent import CAPABILITY_NAME, WalletAgent

logger = logging.getLogger(__name__)

SERVICE_NAME = "eth-wallet-summarizer"
API_VERSION = "0.1.0"

# Tool names accepted on /tools/{name}
TOOL_ALIASES = {CAPABILITY_NAME, "summarizeEthTransactions"}


class ToolRequest(BaseModel):
    args: Dict[str, Any] = {}
    action: Optional[Dict[str, Any]] = None


def create_app(agent: WalletAgent) -> FastAPI:
    """Create the FastAPI application serving one agent.

    Args:
        agent: Handler for platform actions and tool calls

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="ETH Wallet Summarizer",
        description="Summarizes ERC-20 inflows and outflows for a wallet",
        version=API_VERSION,
    )

    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint for monitoring and load balancers."""
        return JSONResponse(
            content={
                "status": "healthy",
                "service": SERVICE_NAME,
                "version": API_VERSION,
            }
        )

    @app.post("/")
    async def handle_action(action: Dict[str, Any], background_tasks: BackgroundTasks) -> JSONResponse:
        """Acknowledge a platform action and process it in the background."""
        action_type = action.get("type")
        logger.info(f"Received platform action: {action_type}")
        background_tasks.add_task(agent.handle_action, action)
        return JSONResponse(content={"message": "OK"})

    @app.post("/tools/{tool_name}")
    def call_tool(tool_name: str, request: ToolRequest) -> JSONResponse:
        """Run a capability synchronously and return its JSON result."""
        if tool_name not in TOOL_ALIASES:
            raise HTTPException(status_code=404, detail=f"Tool '{tool_name}' not found")
        output = agent.run_capability(request.args, request.action)
        return JSONResponse(content=json.loads(output))

    return app
