from __future__ import annotations

from typing import Optional


class AutofillError(Exception):
    """Base class for every error raised by the form-automation engine."""


class ValidationError(AutofillError):
    """Configuration rejected before any browser session is created."""


class FormatError(AutofillError):
    STRUCTURAL = "structural"
    SYNTAX = "syntax"
    INVALID_CONFIG = "invalid_config"
    INVALID_FIELD = "invalid_field"

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class SelectorTimeoutError(AutofillError):
    def __init__(self, selector: str, timeout_ms: int) -> None:
        super().__init__(f"selector {selector!r} did not appear within {timeout_ms}ms")
        self.selector = selector


class InteractionError(AutofillError):
    def __init__(self, selector: str, detail: str) -> None:
        super().__init__(f"interaction with {selector!r} failed: {detail}")
        self.selector = selector


class AuthStepError(AutofillError):
    def __init__(self, method: str, detail: str) -> None:
        super().__init__(f"{method} authentication failed: {detail}")
        self.method = method


class DetectionError(AutofillError):
    """The in-page field scan could not be evaluated."""


class FatalLaunchError(AutofillError):
    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or message
