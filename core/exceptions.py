class AutoBotError(Exception):
    """Base class for every anticipated failure in the bot."""


class StoppedError(AutoBotError):
    """Raised at a suspension point when a stop has been requested."""


class AlreadyRunningError(AutoBotError):
    pass


class InvalidStateTransition(AutoBotError):
    pass


class InvalidAddressError(AutoBotError, ValueError):
    pass


class ConfigValidationError(AutoBotError, ValueError):
    pass


class ApiError(AutoBotError):
    """Non-2xx answer from one of the Tea-Fi HTTP endpoints."""

    def __init__(self, url: str, status: int, payload=None):
        self.url = url
        self.status = status
        self.payload = payload
        super().__init__(f"API call failed ({url}): HTTP {status} {self.message}".rstrip())

    @property
    def message(self) -> str:
        if isinstance(self.payload, dict):
            return str(self.payload.get("message", ""))
        return str(self.payload or "")


class SwapError(AutoBotError):
    """Any failure that aborts a single swap."""


class InsufficientBalanceError(SwapError):
    pass


class InsufficientGasError(SwapError):
    pass


class QuoteError(SwapError):
    pass


class ApprovalError(SwapError):
    pass


class SubmissionError(SwapError):
    def __init__(self, message: str, nonce_related: bool = False):
        super().__init__(message)
        self.nonce_related = nonce_related


class RevertedError(SwapError):
    pass


class ReceiptError(SwapError):
    pass


class ConfirmationTimeoutError(SwapError, TimeoutError):
    pass
