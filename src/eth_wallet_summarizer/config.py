import os
import random
from dataclasses import dataclass, field
from typing import Optional, List, Sequence
from dotenv import load_dotenv

from .errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()


class KeySelector:
    """Picks which API key to use for the next explorer request."""

    def __init__(self, keys: Sequence[str]):
        if not keys:
            raise ConfigurationError("At least one API key is required")
        self.keys = list(keys)

    def next_key(self) -> str:
        raise NotImplementedError


class RoundRobinKeySelector(KeySelector):
    """Cycles through the keys in order."""

    def __init__(self, keys: Sequence[str]):
        super().__init__(keys)
        self._index = 0

    def next_key(self) -> str:
        key = self.keys[self._index]
        self._index = (self._index + 1) % len(self.keys)
        return key


class RandomKeySelector(KeySelector):
    """Picks a key uniformly at random."""

    def __init__(self, keys: Sequence[str], rng: Optional[random.Random] = None):
        super().__init__(keys)
        self._rng = rng or random.Random()

    def next_key(self) -> str:
        return self._rng.choice(self.keys)


KEY_SELECTORS = {
    "round_robin": RoundRobinKeySelector,
    "random": RandomKeySelector,
}


def build_key_selector(keys: Sequence[str], strategy: str = "round_robin") -> KeySelector:
    """Create a key selector for the given strategy name."""
    try:
        selector_cls = KEY_SELECTORS[strategy.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown KEY_STRATEGY '{strategy}', expected one of: {', '.join(KEY_SELECTORS)}")
    return selector_cls(keys)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_keys(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [key.strip() for key in value.split(",") if key.strip()]


def _parse_window(value: str) -> Optional[int]:
    if value.strip().lower() in ("all", "none", ""):
        return None
    window = int(value)
    if window <= 0:
        raise ConfigurationError("SUMMARY_WINDOW must be a positive integer or 'all'")
    return window


@dataclass
class Config:
    """Application configuration."""

    # API Keys
    etherscan_api_keys: List[str]
    openai_api_key: str
    openserv_api_key: Optional[str] = None

    # API URLs
    etherscan_base_url: str = "https://api.etherscan.io/v2/api"
    openai_base_url: Optional[str] = None
    platform_base_url: str = "https://api.openserv.ai"
    wallet_profile_url: str = "https://platform.spotonchain.ai/en/profile?address={address}"
    rpc_url: str = "https://eth.llamarpc.com"

    # Language model settings
    openai_model: str = "gpt-4"
    openai_max_tokens: int = 1000
    openai_temperature: float = 1.0

    # Analysis settings
    fetch_limit: int = 50
    summary_window: Optional[int] = 20
    request_timeout: float = 10.0
    key_strategy: str = "round_robin"

    # Balance filter settings
    balance_filter: bool = False
    balance_source: str = "etherscan"  # etherscan, rpc
    rate_limit_per_second: float = 0.5
    rate_limit_burst: int = 1

    # Agent settings
    upload_summary: bool = False
    port: int = 7378
    log_level: str = "WARNING"

    _key_selector: Optional[KeySelector] = field(default=None, init=False, repr=False)

    @property
    def key_selector(self) -> KeySelector:
        """Key selector shared by every explorer client built from this config."""
        if self._key_selector is None:
            self._key_selector = build_key_selector(
                self.etherscan_api_keys, self.key_strategy)
        return self._key_selector

    def profile_link(self, address: str) -> str:
        return self.wallet_profile_url.format(address=address)

    def require_platform_key(self) -> str:
        if not self.openserv_api_key:
            raise ConfigurationError(
                "OPENSERV_API_KEY environment variable is required to run the agent")
        return self.openserv_api_key

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        etherscan_keys = _parse_keys(os.getenv("ETHERSCAN_API_KEYS")) or _parse_keys(
            os.getenv("ETHERSCAN_API_KEY"))
        if not etherscan_keys:
            raise ConfigurationError(
                "ETHERSCAN_API_KEY environment variable is required")

        openai_key = os.getenv("OPENAI_API_KEY")
        if not openai_key:
            raise ConfigurationError(
                "OPENAI_API_KEY environment variable is required")

        balance_source = os.getenv("BALANCE_SOURCE", "etherscan").lower()
        if balance_source not in ("etherscan", "rpc"):
            raise ConfigurationError(
                f"Unknown BALANCE_SOURCE '{balance_source}', expected etherscan or rpc")

        try:
            config = cls(
                etherscan_api_keys=etherscan_keys,
                openai_api_key=openai_key,
                openserv_api_key=os.getenv("OPENSERV_API_KEY"),
                etherscan_base_url=os.getenv(
                    "ETHERSCAN_BASE_URL", "https://api.etherscan.io/v2/api"),
                openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
                platform_base_url=os.getenv(
                    "OPENSERV_API_URL", "https://api.openserv.ai"),
                wallet_profile_url=os.getenv(
                    "WALLET_PROFILE_URL", "https://platform.spotonchain.ai/en/profile?address={address}"),
                rpc_url=os.getenv("RPC_URL", "https://eth.llamarpc.com"),
                openai_model=os.getenv("OPENAI_MODEL", "gpt-4"),
                openai_max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", "1000")),
                openai_temperature=float(os.getenv("OPENAI_TEMPERATURE", "1.0")),
                fetch_limit=int(os.getenv("FETCH_LIMIT", "50")),
                summary_window=_parse_window(os.getenv("SUMMARY_WINDOW", "20")),
                request_timeout=float(os.getenv("REQUEST_TIMEOUT", "10")),
                key_strategy=os.getenv("KEY_STRATEGY", "round_robin"),
                balance_filter=_parse_bool(os.getenv("BALANCE_FILTER", "false")),
                balance_source=balance_source,
                rate_limit_per_second=float(
                    os.getenv("RATE_LIMIT_PER_SECOND", "0.5")),
                rate_limit_burst=int(os.getenv("RATE_LIMIT_BURST", "1")),
                upload_summary=_parse_bool(os.getenv("UPLOAD_SUMMARY", "false")),
                port=int(os.getenv("PORT", "7378")),
                log_level=os.getenv("LOG_LEVEL", "WARNING").upper(),
            )
        except ValueError as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        # Reject unknown strategies at startup
        build_key_selector(config.etherscan_api_keys, config.key_strategy)
        return config
