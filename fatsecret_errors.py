"""
Exceptions raised by the FatSecret API client.
"""
from typing import Any, Dict, List, Optional, Tuple


# Bound on how many validation issues are carried and shown
MAX_VALIDATION_ISSUES = 5


class FatSecretError(Exception):
    """Base exception for FatSecret API errors."""
    def __init__(self, message: str, error_type: str = "unknown", details: Optional[Dict] = None):
        super().__init__(message)
        self.error_type = error_type
        self.details = details or {}


class TransportError(FatSecretError):
    """Raised when the HTTP response status is not a success."""
    def __init__(self, status_code: int, body: str, details: Optional[Dict] = None):
        details = details or {}
        details['status_code'] = status_code
        super().__init__(f"FatSecret HTTP error {status_code}: {body}",
                         error_type="transport", details=details)
        self.status_code = status_code
        self.body = body


class ApiError(FatSecretError):
    """Raised when FatSecret answers with an error envelope."""
    def __init__(self, code: int, message: str):
        super().__init__(f"FatSecret API error {code}: {message}",
                         error_type="api", details={'code': code})
        self.code = code
        self.api_message = message


class ValidationError(FatSecretError):
    """
    Raised when a response does not match the expected shape.

    Carries the first few (path, message) issues and the raw payload so the
    offending response can be inspected.
    """
    def __init__(self, issues: List[Tuple[str, str]], raw_response: Any):
        issues = list(issues)[:MAX_VALIDATION_ISSUES]
        summary = '; '.join(f"{path}: {message}" for path, message in issues)
        super().__init__(
            f"API response validation failed: {summary or 'Invalid response structure'}",
            error_type="validation",
            details={'issues': issues},
        )
        self.issues = issues
        self.raw_response = raw_response

    @property
    def paths(self) -> List[str]:
        """Dotted paths of the reported issues."""
        return [path for path, _ in self.issues]
