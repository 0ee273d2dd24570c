"""Tests for the summarization pipeline and balance filter."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from eth_wallet_summarizer.analyzer import (
    NO_ACTIVITY_NARRATIVE,
    BalanceFilter,
    WalletAnalyzer,
)
from eth_wallet_summarizer.api_clients import Web3Client
from eth_wallet_summarizer.config import Config
from eth_wallet_summarizer.errors import (
    InvalidAddressFormat,
    SummaryGenerationFailed,
    UpstreamError,
    UpstreamRateLimited,
)
from eth_wallet_summarizer.models import Direction
from eth_wallet_summarizer.utils import classify_transfers, parse_token_transfers

from conftest import OTHER, PEPE, USDT, WALLET, make_raw_transfer


def raw_history(count: int):
    """Alternate outflows and inflows, one minute apart."""
    records = []
    for i in range(count):
        sender, receiver = (WALLET, OTHER) if i % 2 == 0 else (OTHER, WALLET)
        records.append(make_raw_transfer(
            timeStamp=str(1700000000 + i * 60),
            hash=f"0x{i:064x}",
            **{"from": sender, "to": receiver},
        ))
    return records


class CountingLimiter:
    def __init__(self) -> None:
        self.calls = 0

    def acquire(self) -> float:
        self.calls += 1
        return 0.0


@pytest.fixture
def explorer():
    return MagicMock()


@pytest.fixture
def summarizer():
    mock = MagicMock()
    mock.summarize.return_value = "The wallet mostly sent PEPE."
    return mock


class TestWalletAnalyzer:
    """Tests for WalletAnalyzer.analyze."""

    def test_example_wallet(self, config: Config, explorer, summarizer) -> None:
        explorer.get_token_transfers.return_value = parse_token_transfers([make_raw_transfer()])

        result = WalletAnalyzer(config, explorer, summarizer).analyze(WALLET)

        assert result.narrative == "The wallet mostly sent PEPE."
        assert result.link == f"https://platform.spotonchain.ai/en/profile?address={WALLET}"
        [transfer] = result.transfers
        assert transfer.direction is Direction.OUTFLOW
        assert transfer.display_amount == Decimal("522.35")

        data = summarizer.summarize.call_args.args[0]
        assert data["UrlToAccount"] == result.link
        assert data["summary"]["inflows"] == []
        assert data["summary"]["outflows"][0]["totalMove"] == 522.35
        assert data["tokens"][0]["lastDirection"] == "Outflow"

    def test_address_is_lowercased_before_fetch(self, config: Config, explorer, summarizer) -> None:
        explorer.get_token_transfers.return_value = []
        WalletAnalyzer(config, explorer, summarizer).analyze(WALLET.upper().replace("0X", "0x"))
        explorer.get_token_transfers.assert_called_once_with(WALLET)

    def test_invalid_address_never_fetches(self, config: Config, explorer, summarizer) -> None:
        with pytest.raises(InvalidAddressFormat):
            WalletAnalyzer(config, explorer, summarizer).analyze("not-an-address")
        explorer.get_token_transfers.assert_not_called()

    def test_no_activity(self, config: Config, explorer, summarizer) -> None:
        explorer.get_token_transfers.return_value = []
        result = WalletAnalyzer(config, explorer, summarizer).analyze(WALLET)
        assert result.narrative == NO_ACTIVITY_NARRATIVE
        assert not result.has_activity
        summarizer.summarize.assert_not_called()

    def test_window_from_config(self, config: Config, explorer, summarizer) -> None:
        explorer.get_token_transfers.return_value = parse_token_transfers(raw_history(50))
        result = WalletAnalyzer(config, explorer, summarizer).analyze(WALLET)
        assert len(result.transfers) == 20
        assert result.transfers[0].event.tx_hash == f"0x{49:064x}"

    def test_window_override(self, config: Config, explorer, summarizer) -> None:
        explorer.get_token_transfers.return_value = parse_token_transfers(raw_history(50))
        analyzer = WalletAnalyzer(config, explorer, summarizer)
        assert len(analyzer.analyze(WALLET, window=None).transfers) == 50
        assert len(analyzer.analyze(WALLET, window=5).transfers) == 5

    def test_classification_is_repeatable(self, config: Config, explorer, summarizer) -> None:
        explorer.get_token_transfers.return_value = parse_token_transfers(raw_history(10))
        analyzer = WalletAnalyzer(config, explorer, summarizer)
        first = analyzer.analyze(WALLET)
        second = analyzer.analyze(WALLET)
        assert first.transfers == second.transfers
        assert first.tokens == second.tokens

    def test_upstream_errors_propagate(self, config: Config, explorer, summarizer) -> None:
        explorer.get_token_transfers.side_effect = UpstreamRateLimited("slow down")
        with pytest.raises(UpstreamRateLimited):
            WalletAnalyzer(config, explorer, summarizer).analyze(WALLET)

    def test_summary_failure_propagates(self, config: Config, explorer, summarizer) -> None:
        explorer.get_token_transfers.return_value = parse_token_transfers([make_raw_transfer()])
        summarizer.summarize.side_effect = SummaryGenerationFailed("model down")
        with pytest.raises(SummaryGenerationFailed):
            WalletAnalyzer(config, explorer, summarizer).analyze(WALLET)

    def test_filtered_to_nothing_is_no_activity(self, config: Config, explorer, summarizer) -> None:
        explorer.get_token_transfers.return_value = parse_token_transfers([make_raw_transfer()])
        source = MagicMock()
        source.get_token_balance.return_value = 0
        balance_filter = BalanceFilter(source, CountingLimiter())

        result = WalletAnalyzer(config, explorer, summarizer, balance_filter).analyze(WALLET)

        assert result.narrative == NO_ACTIVITY_NARRATIVE
        summarizer.summarize.assert_not_called()


class TestFromConfig:
    """Tests for WalletAnalyzer.from_config wiring."""

    def test_without_balance_filter(self, config: Config) -> None:
        analyzer = WalletAnalyzer.from_config(config)
        assert analyzer.balance_filter is None

    def test_etherscan_balance_source(self, config: Config) -> None:
        config.balance_filter = True
        analyzer = WalletAnalyzer.from_config(config)
        assert analyzer.balance_filter.source is analyzer.explorer

    def test_rpc_balance_source(self, config: Config) -> None:
        config.balance_filter = True
        config.balance_source = "rpc"
        analyzer = WalletAnalyzer.from_config(config)
        assert isinstance(analyzer.balance_filter.source, Web3Client)
        assert analyzer.balance_filter.source is not analyzer.explorer


class TestBalanceFilter:
    """Tests for BalanceFilter."""

    def _transfers(self):
        events = parse_token_transfers([
            make_raw_transfer(hash="0x01", contractAddress=PEPE),
            make_raw_transfer(hash="0x02", contractAddress=USDT, tokenName="Tether USD",
                              tokenDecimal="6", value="1000000"),
            make_raw_transfer(hash="0x03", contractAddress=PEPE),
        ])
        return classify_transfers(events, WALLET, window=None)

    def test_drops_zero_balance_tokens(self) -> None:
        source = MagicMock()
        source.get_token_balance.side_effect = lambda contract, address: 0 if contract == USDT else 5
        limiter = CountingLimiter()

        kept = BalanceFilter(source, limiter).apply(self._transfers(), WALLET)

        assert {t.event.contract_address for t in kept} == {PEPE}
        assert len(kept) == 2

    def test_one_lookup_per_contract_through_limiter(self) -> None:
        source = MagicMock()
        source.get_token_balance.return_value = 1
        limiter = CountingLimiter()

        BalanceFilter(source, limiter).apply(self._transfers(), WALLET)

        assert source.get_token_balance.call_count == 2
        assert limiter.calls == 2

    def test_explorer_refusal_keeps_token(self) -> None:
        source = MagicMock()
        source.get_token_balance.side_effect = UpstreamError("NOTOK")
        kept = BalanceFilter(source, CountingLimiter()).apply(self._transfers(), WALLET)
        assert len(kept) == 3

    def test_rate_limit_propagates(self) -> None:
        source = MagicMock()
        source.get_token_balance.side_effect = UpstreamRateLimited("slow down")
        with pytest.raises(UpstreamRateLimited):
            BalanceFilter(source, CountingLimiter()).apply(self._transfers(), WALLET)
