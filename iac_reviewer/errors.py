from __future__ import annotations

from typing import List, Optional, Sequence


class ReviewerError(Exception):
    """Base class for every error raised by the reviewer pipeline."""


class ParseError(ReviewerError):
    """Compiled template text is not valid JSON."""


class SchemaError(ReviewerError):
    """Compiled template parsed but has no usable top-level resources list."""


class PrivacyContractViolation(ReviewerError):
    """Outbound payload still carries data the validator considers sensitive.

    Fatal for the transmission attempt that raised it. The same payload must
    never be resent, stripped or otherwise.
    """

    def __init__(
        self,
        message: str = "Privacy contract violation: Sanitized data contains sensitive information",
        violations: Optional[Sequence[str]] = None,
    ) -> None:
        super().__init__(message)
        self.violations: List[str] = list(violations or [])


class ExecError(ReviewerError):
    """A subprocess could not be launched or exceeded its deadline."""


class BicepInstallError(ReviewerError):
    pass


class GitHubContextError(ReviewerError):
    """Workflow environment or event payload is missing required data."""


class GitHubAPIError(ReviewerError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "ReviewerError",
    "ParseError",
    "SchemaError",
    "PrivacyContractViolation",
    "ExecError",
    "BicepInstallError",
    "GitHubContextError",
    "GitHubAPIError",
]
