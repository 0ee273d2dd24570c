import json
import logging
from typing import Optional, List, Dict, Any, Union
import requests
from openai import OpenAI, OpenAIError, RateLimitError
from web3 import Web3

from .config import Config, KeySelector
from .errors import (
    SummaryGenerationFailed,
    UpstreamError,
    UpstreamRateLimited,
    UpstreamUnavailable,
)
from .models import TokenTransferEvent, ExplorerOk, ExplorerError
from .utils import parse_token_transfers

# Set up logging
logger = logging.getLogger(__name__)

MAINNET_CHAIN_ID = 1
NO_TRANSACTIONS_MESSAGE = "no transactions found"
RATE_LIMIT_MARKERS = ("rate limit", "too many requests")

ExplorerResponse = Union[ExplorerOk, ExplorerError]


def parse_explorer_response(payload: Any) -> ExplorerResponse:
    """Validate an Etherscan JSON envelope into a tagged result."""
    if not isinstance(payload, dict) or "result" not in payload:
        return ExplorerError(message="Malformed response from explorer", result=payload)

    status = str(payload.get("status", ""))
    message = str(payload.get("message", ""))
    result = payload.get("result")

    if status == "1":
        return ExplorerOk(result=result)
    return ExplorerError(message=message or "Unknown error", result=result)


def is_rate_limit_error(error: ExplorerError) -> bool:
    text = f"{error.message} {error.result if isinstance(error.result, str) else ''}".lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


def is_empty_result(error: ExplorerError) -> bool:
    return (error.message.lower().startswith(NO_TRANSACTIONS_MESSAGE)
            and not error.result)


def raise_for_explorer_error(error: ExplorerError) -> None:
    """Convert a non-success envelope into the matching exception."""
    if is_rate_limit_error(error):
        raise UpstreamRateLimited(f"Etherscan rate limit: {error.result or error.message}")
    detail = error.result if isinstance(error.result, str) and error.result else error.message
    raise UpstreamError(detail)


class EtherscanClient:
    """Client for Etherscan API."""

    def __init__(self, config: Config, key_selector: Optional[KeySelector] = None):
        self.config = config
        self.base_url = config.etherscan_base_url
        self.timeout = config.request_timeout
        self.key_selector = key_selector or config.key_selector

    def _make_request(self, params: Dict[str, Any]) -> ExplorerResponse:
        """Make a request to Etherscan API."""
        params = dict(params)
        params["chainid"] = MAINNET_CHAIN_ID
        params["apikey"] = self.key_selector.next_key()

        try:
            response = requests.get(
                self.base_url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise UpstreamUnavailable(f"Etherscan request timed out: {e}") from e
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"Etherscan request failed: {e}") from e

        if response.status_code == 429:
            raise UpstreamRateLimited("Etherscan returned HTTP 429")
        if response.status_code >= 500:
            raise UpstreamUnavailable(
                f"Etherscan returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise UpstreamError(f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError("Response was not valid JSON") from e

        return parse_explorer_response(payload)

    def get_token_transfers(self, address: str, limit: Optional[int] = None) -> List[TokenTransferEvent]:
        """Get the most recent ERC-20 transfers for a wallet, newest first."""
        params = {
            "module": "account",
            "action": "tokentx",
            "address": address,
            "startblock": 0,
            "endblock": 99999999,
            "page": 1,
            "offset": limit or self.config.fetch_limit,
            "sort": "desc"
        }

        result = self._make_request(params)
        if isinstance(result, ExplorerError):
            if is_empty_result(result):
                logger.info(f"No token transfers found for {address}")
                return []
            raise_for_explorer_error(result)

        if not isinstance(result.result, list):
            raise UpstreamError(f"Unexpected tokentx result: {result.result!r}")

        logger.info(
            f"Fetched {len(result.result)} token transfers for {address}")
        return parse_token_transfers(result.result)

    def get_token_balance(self, contract_address: str, address: str) -> int:
        """Get the wallet's current raw balance of one token."""
        params = {
            "module": "account",
            "action": "tokenbalance",
            "contractaddress": contract_address,
            "address": address,
            "tag": "latest"
        }

        result = self._make_request(params)
        if isinstance(result, ExplorerError):
            raise_for_explorer_error(result)

        try:
            return int(result.result)
        except (TypeError, ValueError) as e:
            raise UpstreamError(
                f"Unexpected tokenbalance result: {result.result!r}") from e


class Web3Client:
    """Reads token balances straight from a JSON-RPC node."""

    ERC20_BALANCE_ABI = [
        {"constant": True, "inputs": [{"name": "owner", "type": "address"}],
         "name": "balanceOf", "outputs": [{"name": "", "type": "uint256"}],
         "type": "function"},
    ]

    def __init__(self, config: Optional[Config] = None, provider_url: Optional[str] = None,
                 w3: Optional[Web3] = None):
        if w3 is None:
            if provider_url is None:
                provider_url = config.rpc_url if config else "https://eth.llamarpc.com"
            timeout = config.request_timeout if config else 10
            w3 = Web3(Web3.HTTPProvider(
                provider_url, request_kwargs={"timeout": timeout}))
        self.w3 = w3

    def get_token_balance(self, contract_address: str, address: str) -> int:
        """Call balanceOf(address) on an ERC-20 contract."""
        try:
            contract = self.w3.eth.contract(
                address=Web3.to_checksum_address(contract_address),
                abi=self.ERC20_BALANCE_ABI
            )
            return int(contract.functions.balanceOf(
                Web3.to_checksum_address(address)).call())
        except Exception as e:
            raise UpstreamUnavailable(
                f"balanceOf call failed for {contract_address}: {e}") from e


class SummaryClient:
    """Produces the narrative through the OpenAI chat completions API."""

    SYSTEM_PROMPT = (
        "You are a helpful assistant who summarizes inflow and outflow "
        "movements from crypto tokens."
    )

    def __init__(self, config: Config, client: Optional[OpenAI] = None):
        self.config = config
        self.model = config.openai_model
        self.max_tokens = config.openai_max_tokens
        self.temperature = config.openai_temperature
        self.client = client or OpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout=max(config.request_timeout, 60.0),
        )

    @staticmethod
    def build_payload(data: Dict[str, Any]) -> str:
        return f"Here is the data: {json.dumps(data, indent=2, default=str)}"

    def summarize(self, data: Dict[str, Any]) -> str:
        """Return the model's narrative for the serialized transfer data."""
        messages = [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {"role": "user", "content": self.build_payload(data)},
        ]

        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except RateLimitError as e:
            raise UpstreamRateLimited(f"Language model rate limit: {e}") from e
        except OpenAIError as e:
            raise SummaryGenerationFailed(f"Completion request failed: {e}") from e

        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise SummaryGenerationFailed("Completion response had no choices") from e

        if not content:
            raise SummaryGenerationFailed("Completion response was empty")
        return content
