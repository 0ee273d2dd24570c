"""
Wallet transfer summarization pipeline.

validate -> fetch -> window + classify -> optional balance filter ->
aggregate -> summarize. Nothing is kept between calls.
"""

import logging
from typing import Dict, List, Optional, Protocol

from .api_clients import EtherscanClient, SummaryClient, Web3Client
from .config import Config
from .errors import UpstreamError
from .models import AnalysisResult, ClassifiedTransfer
from .throttling import TokenBucket
from .utils import (
    aggregate_by_token,
    classify_transfers,
    split_by_direction,
    token_summary_record,
    validate_address,
)

logger = logging.getLogger(__name__)

NO_ACTIVITY_NARRATIVE = "No transactions found."
USE_CONFIG_WINDOW = -1


class BalanceSource(Protocol):
    def get_token_balance(self, contract_address: str, address: str) -> int:
        ...


class RateLimiter(Protocol):
    def acquire(self) -> float:
        ...


class BalanceFilter:
    """Drops transfers of tokens the wallet no longer holds.

    One balance lookup per distinct token contract, each gated by the rate
    limiter.
    """

    def __init__(self, source: BalanceSource, limiter: RateLimiter):
        self.source = source
        self.limiter = limiter

    def held_contracts(self, transfers: List[ClassifiedTransfer], address: str) -> Dict[str, bool]:
        held: Dict[str, bool] = {}
        for transfer in transfers:
            contract = transfer.event.contract_address
            if contract in held:
                continue

            self.limiter.acquire()
            try:
                balance = self.source.get_token_balance(contract, address)
            except UpstreamError as e:
                # An explorer refusal says nothing about the balance
                logger.warning(f"Balance lookup failed for {contract}, keeping token: {e}")
                held[contract] = True
                continue

            held[contract] = balance > 0
            logger.debug(f"Balance of {contract} for {address}: {balance}")
        return held

    def apply(self, transfers: List[ClassifiedTransfer], address: str) -> List[ClassifiedTransfer]:
        held = self.held_contracts(transfers, address)
        kept = [t for t in transfers if held.get(t.event.contract_address, True)]
        logger.info(
            f"Balance filter kept {len(kept)} of {len(transfers)} transfers")
        return kept


class WalletAnalyzer:
    """Runs the full summarization for one wallet address."""

    def __init__(self, config: Config, explorer: EtherscanClient, summarizer: SummaryClient,
                 balance_filter: Optional[BalanceFilter] = None):
        self.config = config
        self.explorer = explorer
        self.summarizer = summarizer
        self.balance_filter = balance_filter

    @classmethod
    def from_config(cls, config: Config) -> "WalletAnalyzer":
        explorer = EtherscanClient(config)
        balance_filter = None
        if config.balance_filter:
            source = Web3Client(config) if config.balance_source == "rpc" else explorer
            limiter = TokenBucket(config.rate_limit_per_second, config.rate_limit_burst)
            balance_filter = BalanceFilter(source, limiter)
        return cls(config, explorer, SummaryClient(config), balance_filter)

    def classify(self, address: str, window: Optional[int] = USE_CONFIG_WINDOW) -> List[ClassifiedTransfer]:
        """Fetch and classify without summarizing. The configured window applies unless one is given."""
        address = validate_address(address)
        if window == USE_CONFIG_WINDOW:
            window = self.config.summary_window

        events = self.explorer.get_token_transfers(address)
        transfers = classify_transfers(events, address, window)

        if self.balance_filter is not None and transfers:
            transfers = self.balance_filter.apply(transfers, address)
        return transfers

    def analyze(self, address: str, window: Optional[int] = USE_CONFIG_WINDOW) -> AnalysisResult:
        """Produce the narrative and explorer link for a wallet."""
        address = validate_address(address)
        link = self.config.profile_link(address)

        transfers = self.classify(address, window)
        if not transfers:
            logger.info(f"No activity for {address}")
            return AnalysisResult(wallet_address=address, narrative=NO_ACTIVITY_NARRATIVE, link=link)

        tokens = aggregate_by_token(transfers)
        data = {
            "summary": split_by_direction(transfers),
            "tokens": [token_summary_record(token) for token in tokens],
            "UrlToAccount": link,
        }

        logger.info(
            f"Summarizing {len(transfers)} transfers across {len(tokens)} tokens for {address}")
        narrative = self.summarizer.summarize(data)

        return AnalysisResult(
            wallet_address=address,
            narrative=narrative,
            link=link,
            transfers=transfers,
            tokens=tokens,
        )
