"""Shared fixtures for the wallet summarizer tests."""

from typing import Any, Dict

import pytest

from eth_wallet_summarizer.config import Config

WALLET = "0x6dd63e4dd6201b20bc754b93b07de351ba053fd2"
OTHER = "0x28c6c06298d514db089934071355e5743bf21d60"
USDT = "0xdac17f958d2ee523a2206206994597c13d831ec7"
PEPE = "0x6982508145454ce325ddbe47a25d4ec3d2311933"


def make_raw_transfer(**overrides: Any) -> Dict[str, Any]:
    """Build a tokentx record shaped like the Etherscan response."""
    record = {
        "blockNumber": "19000000",
        "timeStamp": "1700000000",
        "hash": "0x" + "ab" * 32,
        "from": WALLET,
        "to": OTHER,
        "contractAddress": PEPE,
        "value": "522350000000000000000",
        "tokenName": "Pepe",
        "tokenSymbol": "PEPE",
        "tokenDecimal": "18",
    }
    record.update(overrides)
    return record


@pytest.fixture
def config() -> Config:
    return Config(
        etherscan_api_keys=["key-a", "key-b"],
        openai_api_key="sk-test",
        openserv_api_key="platform-key",
        platform_base_url="https://platform.test",
        etherscan_base_url="https://explorer.test/api",
    )
