"""
Data models for wallet transfer summaries.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Any


def scale_amount(raw_amount: str, decimals: int) -> Decimal:
    """Divide a raw integer amount by 10**decimals without rounding."""
    sign, digits, exponent = Decimal(raw_amount).as_tuple()
    return Decimal((sign, digits, exponent - decimals))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Direction(str, Enum):
    """Direction of a transfer relative to the queried wallet."""
    INFLOW = "Inflow"
    OUTFLOW = "Outflow"


@dataclass(frozen=True)
class TokenTransferEvent:
    """One ERC-20 transfer as reported by the explorer."""
    token_name: str
    token_symbol: str
    raw_amount: str
    decimals: int
    from_address: str
    to_address: str
    timestamp: datetime
    tx_hash: str
    contract_address: str
    block_number: int = 0

    @property
    def display_amount(self) -> Decimal:
        return scale_amount(self.raw_amount, self.decimals)


@dataclass(frozen=True)
class ClassifiedTransfer:
    """A transfer tagged with its direction."""
    event: TokenTransferEvent
    direction: Direction

    @property
    def display_amount(self) -> Decimal:
        return self.event.display_amount


@dataclass
class TokenSummary:
    """Aggregated movement of one token within the inspected window."""
    token_name: str
    contract_address: str
    total_moved: Decimal = Decimal("0")
    total_inflow: Decimal = Decimal("0")
    total_outflow: Decimal = Decimal("0")
    transfer_count: int = 0
    last_direction: Optional[Direction] = None


@dataclass
class AnalysisResult:
    """Narrative and explorer link returned to the caller."""
    wallet_address: str
    narrative: str
    link: str
    transfers: List[ClassifiedTransfer] = field(default_factory=list)
    tokens: List[TokenSummary] = field(default_factory=list)
    generated_at: datetime = field(default_factory=_utc_now)

    @property
    def has_activity(self) -> bool:
        return bool(self.transfers)


@dataclass(frozen=True)
class ExplorerOk:
    """Successful explorer envelope."""
    result: Any


@dataclass(frozen=True)
class ExplorerError:
    """Non-success explorer envelope."""
    message: str
    result: Any = None
