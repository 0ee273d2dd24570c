"""
Utility functions for address handling, parsing and classification.
"""

from typing import List, Dict, Any, Optional, Iterable
from datetime import datetime, timezone
from decimal import Decimal, MAX_PREC, localcontext
import re
import logging

from .errors import InvalidAddressFormat
from .models import Direction, TokenTransferEvent, ClassifiedTransfer, TokenSummary, scale_amount

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r'^0x[a-fA-F0-9]{40}$')
ADDRESS_SEARCH_PATTERN = re.compile(r'0x[a-fA-F0-9]{40}(?![a-fA-F0-9])')


def is_valid_ethereum_address(address: Any) -> bool:
    """Check if a value is a 0x-prefixed 40 hex character address."""
    if not isinstance(address, str):
        return False
    return bool(ADDRESS_PATTERN.fullmatch(address))


def normalize_address(address: str) -> str:
    """Normalize an Ethereum address to lowercase."""
    return address.lower() if address else ""


def validate_address(address: Any) -> str:
    """Validate an address and return it lowercased.

    Raises InvalidAddressFormat for anything else. Input is never corrected,
    so a missing 0x prefix or surrounding whitespace is rejected.
    """
    if not is_valid_ethereum_address(address):
        raise InvalidAddressFormat(address)
    return normalize_address(address)


def extract_address(*texts: Optional[str]) -> Optional[str]:
    """Return the first address found in the given texts, lowercased."""
    for text in texts:
        if not text:
            continue
        match = ADDRESS_SEARCH_PATTERN.search(text)
        if match:
            return normalize_address(match.group(0))
    return None


def format_token_amount(raw_amount: str, decimals: int) -> Decimal:
    """Scale a raw integer amount by 10**decimals."""
    return scale_amount(raw_amount, decimals)


def parse_token_transfers(raw_transactions: List[Dict[str, Any]]) -> List[TokenTransferEvent]:
    """Parse raw Etherscan tokentx records into TokenTransferEvent objects."""
    transfers = []

    if not raw_transactions:
        return transfers

    required_fields = ['timeStamp', 'value', 'tokenDecimal',
                       'hash', 'from', 'to', 'contractAddress']

    for tx in raw_transactions:
        try:
            if not isinstance(tx, dict) or not all(field in tx for field in required_fields):
                logger.warning(
                    f"Skipping transfer with missing fields: {tx}")
                continue

            # tokenDecimal is occasionally empty for broken tokens
            decimals = int(tx['tokenDecimal'] or 0)
            raw_value = str(int(tx['value']))

            transfers.append(TokenTransferEvent(
                token_name=tx.get('tokenName') or 'Unknown Token',
                token_symbol=tx.get('tokenSymbol') or 'UNKNOWN',
                raw_amount=raw_value,
                decimals=decimals,
                from_address=normalize_address(tx['from']),
                to_address=normalize_address(tx['to']),
                timestamp=datetime.fromtimestamp(
                    int(tx['timeStamp']), tz=timezone.utc),
                tx_hash=tx['hash'],
                contract_address=normalize_address(tx['contractAddress']),
                block_number=int(tx.get('blockNumber') or 0),
            ))

        except (ValueError, TypeError, AttributeError, OverflowError) as e:
            logger.warning(
                f"Error parsing transfer {tx.get('hash', 'unknown')}: {e}")
            continue

    logger.info(
        f"Parsed {len(transfers)} valid transfers from {len(raw_transactions)} raw records")
    return transfers


def classify_transfer(event: TokenTransferEvent, wallet_address: str) -> Direction:
    """Outflow when the wallet sent the transfer, otherwise Inflow."""
    if event.from_address.lower() == wallet_address.lower():
        return Direction.OUTFLOW
    return Direction.INFLOW


def select_recent(events: Iterable[TokenTransferEvent],
                  window: Optional[int] = 20) -> List[TokenTransferEvent]:
    """Sort newest first and keep at most `window` events (all if None)."""
    ordered = sorted(events, key=lambda e: e.timestamp, reverse=True)
    if window is None:
        return ordered
    return ordered[:window]


def classify_transfers(events: Iterable[TokenTransferEvent], wallet_address: str,
                       window: Optional[int] = 20) -> List[ClassifiedTransfer]:
    """Truncate to the most recent window, then tag each transfer."""
    return [
        ClassifiedTransfer(event=event, direction=classify_transfer(event, wallet_address))
        for event in select_recent(events, window)
    ]


def aggregate_by_token(transfers: Iterable[ClassifiedTransfer]) -> List[TokenSummary]:
    """Group transfers by token name.

    `last_direction` is the direction of the most recent transfer of the
    token. Summaries keep first-seen order.
    """
    summaries: Dict[str, TokenSummary] = {}
    latest: Dict[str, datetime] = {}

    # Sums stay exact however many digits a token amount has
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        for transfer in transfers:
            _add_to_summary(summaries, latest, transfer)

    return list(summaries.values())


def _add_to_summary(summaries: Dict[str, TokenSummary], latest: Dict[str, datetime],
                    transfer: ClassifiedTransfer) -> None:
    event = transfer.event
    summary = summaries.get(event.token_name)
    if summary is None:
        summary = TokenSummary(
            token_name=event.token_name,
            contract_address=event.contract_address)
        summaries[event.token_name] = summary

    amount = event.display_amount
    summary.total_moved += amount
    summary.transfer_count += 1
    if transfer.direction is Direction.INFLOW:
        summary.total_inflow += amount
    else:
        summary.total_outflow += amount

    if event.token_name not in latest or event.timestamp > latest[event.token_name]:
        latest[event.token_name] = event.timestamp
        summary.last_direction = transfer.direction


def format_decimal(amount: Decimal) -> str:
    """Render a Decimal without exponent or trailing zeros."""
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        return format(amount.normalize(), 'f')


def transfer_record(transfer: ClassifiedTransfer) -> Dict[str, Any]:
    """Shape one transfer the way it is sent to the language model."""
    event = transfer.event
    return {
        'name': event.token_name,
        'symbol': event.token_symbol,
        'totalMove': float(event.display_amount),
        'outInflow': transfer.direction.value,
        'timestamp': event.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"),
        'contractAddress': event.contract_address,
        'hash': event.tx_hash,
    }


def split_by_direction(transfers: Iterable[ClassifiedTransfer]) -> Dict[str, List[Dict[str, Any]]]:
    """Separate transfer records into inflows and outflows."""
    summary: Dict[str, List[Dict[str, Any]]] = {'inflows': [], 'outflows': []}
    for transfer in transfers:
        category = 'inflows' if transfer.direction is Direction.INFLOW else 'outflows'
        summary[category].append(transfer_record(transfer))
    return summary


def token_summary_record(summary: TokenSummary) -> Dict[str, Any]:
    return {
        'name': summary.token_name,
        'contractAddress': summary.contract_address,
        'totalMove': float(summary.total_moved),
        'totalInflow': float(summary.total_inflow),
        'totalOutflow': float(summary.total_outflow),
        'transfers': summary.transfer_count,
        'lastDirection': summary.last_direction.value if summary.last_direction else None,
    }


def format_number(number: Decimal, decimals: int = 2) -> str:
    """Format a number with K/M/B suffixes."""
    try:
        if number == 0:
            return "0"

        num = float(number)
        magnitude = abs(num)

        if magnitude >= 1_000_000_000:
            return f"{num / 1_000_000_000:.{decimals}f}B"
        elif magnitude >= 1_000_000:
            return f"{num / 1_000_000:.{decimals}f}M"
        elif magnitude >= 1_000:
            return f"{num / 1_000:.{decimals}f}K"
        else:
            return f"{num:.{decimals}f}"
    except (ValueError, TypeError, OverflowError) as e:
        logger.warning(f"Error formatting number {number}: {e}")
        return str(number)
