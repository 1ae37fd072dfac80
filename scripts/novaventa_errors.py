from __future__ import annotations


class OrderError(RuntimeError):
    """Base for every error raised by the Novaventa cart filler."""


class ConfigError(OrderError):
    """Missing credentials or unusable item list. Raised before the browser starts."""


class AuthError(OrderError):
    pass


class DriverTimeout(OrderError):
    def __init__(self, action: str, timeout_ms: int | None = None, message: str = "") -> None:
        text = message or f"Timed out waiting for {action}"
        if timeout_ms is not None:
            text = f"{text} ({timeout_ms} ms)"
        super().__init__(text)
        self.action = action
        self.timeout_ms = timeout_ms


class LocatorError(OrderError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class LocatorTimeout(LocatorError):
    pass


class AddRejected(OrderError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class SessionLost(OrderError):
    pass
