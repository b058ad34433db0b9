from typing import List, Optional


class CryptoPulseError(Exception):
    """Base class for every error raised by the risk gate."""

    status_code = 500
    public_message = "Internal server error"


class ValidationError(CryptoPulseError):
    """Malformed or out-of-range input. Caller error, never retried."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or [message]
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return f"Request validation failed: {'; '.join(self.errors)}"


class PositionSizingError(ValidationError):
    """Sizing inputs cannot produce a finite quantity (e.g. entry == stop)."""


class DuplicateSignalError(ValidationError):
    def __init__(self, signal_id: str):
        self.signal_id = signal_id
        super().__init__(f"duplicate signal id '{signal_id}'")


class CircuitOpenError(CryptoPulseError):
    """Raised when trading is suspended by the circuit breaker."""

    status_code = 423

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        message = "Trading suspended: circuit breaker open"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return str(self)


class ExecutionError(CryptoPulseError):
    """The exchange collaborator failed. The trade never counts in DailyStats."""

    status_code = 502

    def __init__(self, message: str, order_id: Optional[str] = None):
        self.order_id = order_id
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return f"Trade execution failed: {self}"


class ResourceNotFoundError(CryptoPulseError):
    status_code = 404

    @property
    def public_message(self) -> str:
        return str(self)


class DependencyUnavailableError(CryptoPulseError):
    """A collaborator (portfolio, queue) did not answer in time."""


class SignalQueueFullError(DependencyUnavailableError):
    pass


class BotNotRunningError(CryptoPulseError):
    """Signals were submitted to a bot whose worker is stopped."""

    status_code = 409

    @property
    def public_message(self) -> str:
        return str(self)
