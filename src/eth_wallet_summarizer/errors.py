"""
Exceptions raised by the wallet summarizer.
"""


class WalletSummarizerError(Exception):
    """Base error. `user_message` is safe to show to end users."""

    user_message = "Something went wrong while analyzing the wallet."

    def __init__(self, message: str = "", user_message: str = ""):
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


class ConfigurationError(WalletSummarizerError, ValueError):
    """A required setting is missing or invalid."""

    user_message = "The service is not configured correctly."


class InvalidAddressFormat(WalletSummarizerError):
    """Input is not a 0x-prefixed 40 hex character address."""

    user_message = "Please provide a valid Ethereum wallet address (0x followed by 40 hex characters)."

    def __init__(self, address):
        self.address = address
        super().__init__(f"Invalid Ethereum wallet address format: {address!r}")


class UpstreamRateLimited(WalletSummarizerError):
    user_message = "The data provider is rate limiting requests. Please try again later."


class UpstreamUnavailable(WalletSummarizerError):
    user_message = "The data provider could not be reached. Please try again later."


class UpstreamError(WalletSummarizerError):
    """The explorer answered with a non-success envelope."""

    user_message = "The data provider rejected the request."

    def __init__(self, message: str):
        super().__init__(
            f"Etherscan API error: {message}",
            user_message=f"The data provider rejected the request: {message}")
        self.upstream_message = message


class SummaryGenerationFailed(WalletSummarizerError):
    user_message = "The summary could not be generated. Please try again later."


class PlatformError(WalletSummarizerError):
    """Agent platform API call failed."""
