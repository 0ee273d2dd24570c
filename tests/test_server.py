"""Tests for the agent HTTP endpoints."""

import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from eth_wallet_summarizer.server import create_app

from conftest import WALLET


@pytest.fixture
def agent():
    mock = MagicMock()
    mock.run_capability.return_value = json.dumps(
        {"outputToolCallId": "direct_call", "result": {"success": True, "walletAddress": WALLET}})
    return mock


@pytest.fixture
def client(agent) -> TestClient:
    return TestClient(create_app(agent))


def test_health_check(client: TestClient) -> None:
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "eth-wallet-summarizer"


def test_action_is_acknowledged_and_handled(client: TestClient, agent) -> None:
    """Test that platform actions are dispatched to the agent."""
    action = {"type": "do-task", "workspace": {"id": 1}, "task": {"id": 2, "input": WALLET}}
    response = client.post("/", json=action)
    assert response.status_code == 200
    agent.handle_action.assert_called_once_with(action)


def test_tool_call(client: TestClient, agent) -> None:
    """Test direct capability invocation."""
    response = client.post(
        "/tools/summarizeTokenTransactions", json={"args": {"walletAddress": WALLET}})
    assert response.status_code == 200
    assert response.json()["result"]["walletAddress"] == WALLET
    agent.run_capability.assert_called_once_with({"walletAddress": WALLET}, None)


def test_tool_alias(client: TestClient, agent) -> None:
    """Test the legacy tool name."""
    response = client.post("/tools/summarizeEthTransactions", json={"args": {"walletAddress": WALLET}})
    assert response.status_code == 200


def test_unknown_tool(client: TestClient, agent) -> None:
    """Test unknown tool names return 404."""
    response = client.post("/tools/doSomethingElse", json={"args": {}})
    assert response.status_code == 404
    agent.run_capability.assert_not_called()
