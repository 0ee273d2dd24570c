"""
Task and chat handlers that connect the analyzer to the agent platform.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .analyzer import WalletAnalyzer
from .errors import PlatformError, WalletSummarizerError
from .models import AnalysisResult
from .task_platform import PlatformClient
from .utils import extract_address

logger = logging.getLogger(__name__)

CAPABILITY_NAME = "summarizeTokenTransactions"
CAPABILITY_DESCRIPTION = (
    "Summarizes inflow and outflow token transactions for a specified wallet address."
)
MISSING_ADDRESS_QUESTION = "Please provide a valid Ethereum wallet address."
CHAT_HELP_MESSAGE = (
    "I can help analyze Ethereum wallet transactions. "
    "Please provide a wallet address starting with 0x."
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_output(result: AnalysisResult, tool_call_id: Any) -> Dict[str, Any]:
    """Envelope returned to the platform for a successful analysis."""
    return {
        "newMessages": [f"Successfully analyzed transactions for {result.wallet_address}"],
        "outputToolCallId": tool_call_id,
        "result": {
            "success": True,
            "walletAddress": result.wallet_address,
            "summary": result.narrative,
            "link": result.link,
            "timestamp": _now_iso(),
        },
    }


def render_markdown(result: AnalysisResult) -> str:
    return (
        f"# Token activity for {result.wallet_address}\n\n"
        f"{result.narrative}\n\n"
        f"Wallet profile: {result.link}\n"
    )


class WalletAgent:
    """Handles platform actions for the wallet summarizer."""

    def __init__(self, analyzer: WalletAnalyzer, platform: PlatformClient,
                 upload_summary: bool = False):
        self.analyzer = analyzer
        self.platform = platform
        self.upload_summary = upload_summary

    def do_task(self, action: Dict[str, Any]) -> None:
        task = action.get("task")
        if not task:
            return

        workspace_id = action["workspace"]["id"]
        task_id = task["id"]
        address = extract_address(task.get("input"), task.get("description"))

        if address is None:
            self.platform.request_human_assistance(
                workspace_id, task_id, MISSING_ADDRESS_QUESTION)
            return

        try:
            self.platform.update_task_status(workspace_id, task_id, "in-progress")
            self.platform.add_log_to_task(
                workspace_id, task_id, f"Analyzing token transfers for {address}")

            result = self.analyzer.analyze(address)

            if self.upload_summary and result.has_activity:
                self.platform.upload_file(
                    workspace_id,
                    path=f"wallet-summary-{address}.md",
                    content=render_markdown(result),
                    task_ids=[task_id],
                )

            self.platform.complete_task(
                workspace_id, task_id, json.dumps(build_output(result, task_id)))
            logger.info(f"Completed task {task_id} for {address}")

        except PlatformError:
            raise
        except WalletSummarizerError as e:
            logger.warning(f"Task {task_id} failed: {e}")
            self.platform.request_human_assistance(
                workspace_id, task_id,
                f"Error analyzing wallet: {e.user_message}",
                agent_dump={"error": str(e), "walletAddress": address})
        except Exception as e:
            logger.exception(f"Task {task_id} failed unexpectedly")
            self.platform.request_human_assistance(
                workspace_id, task_id,
                f"Error analyzing wallet: {WalletSummarizerError.user_message}",
                agent_dump={"error": repr(e), "walletAddress": address})

    def respond_to_chat(self, action: Dict[str, Any]) -> None:
        workspace_id = action["workspace"]["id"]
        agent_id = action["me"]["id"]
        messages = action.get("messages") or []
        last_message = messages[-1].get("message") if messages else None

        address = extract_address(last_message)
        if address is None:
            reply = CHAT_HELP_MESSAGE
        else:
            try:
                result = self.analyzer.analyze(address)
                reply = f"{result.narrative}\n\nWallet profile: {result.link}"
            except WalletSummarizerError as e:
                logger.warning(f"Chat analysis failed for {address}: {e}")
                reply = e.user_message

        self.platform.send_chat_message(workspace_id, agent_id, reply)

    def run_capability(self, args: Dict[str, Any], action: Optional[Dict[str, Any]] = None) -> str:
        """Direct tool call; always returns a JSON string."""
        tool_call_id = ((action or {}).get("task") or {}).get("id", "direct_call")
        address = (args or {}).get("walletAddress")

        try:
            result = self.analyzer.analyze(address)
        except WalletSummarizerError as e:
            logger.warning(f"Capability call failed: {e}")
            return json.dumps({
                "newMessages": [e.user_message],
                "outputToolCallId": tool_call_id,
                "result": {
                    "success": False,
                    "walletAddress": address,
                    "error": e.user_message,
                },
            })
        return json.dumps(build_output(result, tool_call_id))

    def handle_action(self, action: Dict[str, Any]) -> None:
        """Dispatch a platform webhook action, never raising to the caller."""
        action_type = action.get("type")
        try:
            if action_type == "do-task":
                self.do_task(action)
            elif action_type == "respond-chat-message":
                self.respond_to_chat(action)
            else:
                logger.warning(f"Ignoring unknown action type: {action_type}")
        except PlatformError as e:
            logger.error(f"Platform call failed while handling {action_type}: {e}")
        except (KeyError, TypeError) as e:
            logger.error(f"Malformed {action_type} action: {e}")

