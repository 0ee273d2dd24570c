"""Tests for configuration loading and API key rotation."""

import os
import random
from unittest.mock import patch

import pytest

from eth_wallet_summarizer.config import (
    Config,
    RandomKeySelector,
    RoundRobinKeySelector,
    build_key_selector,
)
from eth_wallet_summarizer.errors import ConfigurationError

REQUIRED_ENV = {"ETHERSCAN_API_KEY": "etherscan-key", "OPENAI_API_KEY": "sk-test"}


class TestFromEnv:
    """Tests for Config.from_env."""

    @patch.dict(os.environ, REQUIRED_ENV, clear=True)
    def test_defaults(self) -> None:
        config = Config.from_env()
        assert config.etherscan_api_keys == ["etherscan-key"]
        assert config.fetch_limit == 50
        assert config.summary_window == 20
        assert config.request_timeout == 10.0
        assert config.balance_filter is False
        assert config.openserv_api_key is None

    @patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}, clear=True)
    def test_missing_etherscan_key(self) -> None:
        with pytest.raises(ConfigurationError, match="ETHERSCAN_API_KEY"):
            Config.from_env()

    @patch.dict(os.environ, {"ETHERSCAN_API_KEY": "etherscan-key"}, clear=True)
    def test_missing_openai_key(self) -> None:
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            Config.from_env()

    @patch.dict(os.environ, {**REQUIRED_ENV, "ETHERSCAN_API_KEYS": "a, b ,c"}, clear=True)
    def test_key_list_takes_precedence(self) -> None:
        assert Config.from_env().etherscan_api_keys == ["a", "b", "c"]

    @patch.dict(os.environ, {**REQUIRED_ENV, "SUMMARY_WINDOW": "all", "BALANCE_FILTER": "true"}, clear=True)
    def test_window_all_and_balance_filter(self) -> None:
        config = Config.from_env()
        assert config.summary_window is None
        assert config.balance_filter is True

    @patch.dict(os.environ, {**REQUIRED_ENV, "FETCH_LIMIT": "many"}, clear=True)
    def test_invalid_number(self) -> None:
        with pytest.raises(ConfigurationError):
            Config.from_env()

    @patch.dict(os.environ, {**REQUIRED_ENV, "KEY_STRATEGY": "weighted"}, clear=True)
    def test_unknown_key_strategy(self) -> None:
        with pytest.raises(ConfigurationError, match="KEY_STRATEGY"):
            Config.from_env()

    @patch.dict(os.environ, {**REQUIRED_ENV, "BALANCE_SOURCE": "moralis"}, clear=True)
    def test_unknown_balance_source(self) -> None:
        with pytest.raises(ConfigurationError, match="BALANCE_SOURCE"):
            Config.from_env()

    def test_config_error_is_value_error(self) -> None:
        assert issubclass(ConfigurationError, ValueError)


class TestConfigHelpers:
    """Tests for derived configuration values."""

    def test_profile_link(self, config: Config) -> None:
        link = config.profile_link("0xabc")
        assert link == "https://platform.spotonchain.ai/en/profile?address=0xabc"

    def test_platform_key_required(self, config: Config) -> None:
        config.openserv_api_key = None
        with pytest.raises(ConfigurationError, match="OPENSERV_API_KEY"):
            config.require_platform_key()

    def test_key_selector_is_shared(self, config: Config) -> None:
        assert config.key_selector is config.key_selector


class TestKeySelectors:
    """Tests for key rotation strategies."""

    def test_round_robin_cycles(self) -> None:
        selector = RoundRobinKeySelector(["a", "b", "c"])
        assert [selector.next_key() for _ in range(7)] == ["a", "b", "c", "a", "b", "c", "a"]

    def test_random_uses_configured_keys(self) -> None:
        selector = RandomKeySelector(["a", "b"], rng=random.Random(7))
        picks = {selector.next_key() for _ in range(50)}
        assert picks <= {"a", "b"}
        assert len(picks) == 2

    def test_empty_key_list(self) -> None:
        with pytest.raises(ConfigurationError):
            RoundRobinKeySelector([])

    def test_build_by_name(self) -> None:
        assert isinstance(build_key_selector(["a"], "RANDOM"), RandomKeySelector)
        assert isinstance(build_key_selector(["a"]), RoundRobinKeySelector)
