"""
Client for the agent platform REST API (task lifecycle, chat, files).
"""

import json
import logging
from typing import Optional, List, Dict, Any
import requests

from .config import Config
from .errors import PlatformError

logger = logging.getLogger(__name__)


class PlatformClient:
    """Thin wrapper over the platform endpoints the agent needs."""

    def __init__(self, config: Config, session: Optional[requests.Session] = None):
        self.base_url = config.platform_base_url.rstrip("/")
        self.timeout = config.request_timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "x-openserv-key": config.require_platform_key(),
            "Accept": "application/json",
        })

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise PlatformError(f"{method} {path} failed: {e}") from e

        if not response.ok:
            raise PlatformError(
                f"{method} {path} returned HTTP {response.status_code}: {response.text[:200]}")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def update_task_status(self, workspace_id: int, task_id: int, status: str) -> Any:
        return self._request(
            "PUT", f"/workspaces/{workspace_id}/tasks/{task_id}/status",
            json={"status": status})

    def add_log_to_task(self, workspace_id: int, task_id: int, body: str,
                        severity: str = "info", log_type: str = "text") -> Any:
        return self._request(
            "POST", f"/workspaces/{workspace_id}/tasks/{task_id}/log",
            json={"severity": severity, "type": log_type, "body": body})

    def request_human_assistance(self, workspace_id: int, task_id: int, question: str,
                                 question_type: str = "text",
                                 agent_dump: Optional[Dict[str, Any]] = None) -> Any:
        payload: Dict[str, Any] = {"type": question_type, "question": question}
        if agent_dump is not None:
            payload["agentDump"] = agent_dump
        return self._request(
            "POST", f"/workspaces/{workspace_id}/tasks/{task_id}/human-assistance",
            json=payload)

    def complete_task(self, workspace_id: int, task_id: int, output: str) -> Any:
        return self._request(
            "PUT", f"/workspaces/{workspace_id}/tasks/{task_id}/complete",
            json={"output": output})

    def upload_file(self, workspace_id: int, path: str, content: str,
                    task_ids: Optional[List[int]] = None, skip_summarizer: bool = True) -> Any:
        """Attach a text document to the workspace."""
        data = {
            "path": path,
            "skipSummarizer": json.dumps(skip_summarizer),
        }
        if task_ids:
            data["taskIds"] = json.dumps(task_ids)
        files = {"file": (path, content.encode("utf-8"), "text/markdown")}
        return self._request(
            "POST", f"/workspaces/{workspace_id}/file", data=data, files=files)

    def send_chat_message(self, workspace_id: int, agent_id: int, message: str) -> Any:
        return self._request(
            "POST", f"/workspaces/{workspace_id}/agent-chat/{agent_id}/message",
            json={"message": message})
