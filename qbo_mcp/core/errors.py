"""Error taxonomy for tool calls, with suggested actions.

Every error raised while serving a tool call derives from ToolError. The
tool router catches them at the dispatch boundary and turns them into a
failed tool result, so a caller always receives a structured answer.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Standardized error codes for the server."""

    # Routing errors
    UNKNOWN_OPERATION = "UNKNOWN_OPERATION"

    # Credential errors
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"

    # Validation errors
    INVALID_ARGUMENTS = "INVALID_ARGUMENTS"

    # QuickBooks Online API errors
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    AMBIGUOUS_QUERY_RESPONSE = "AMBIGUOUS_QUERY_RESPONSE"

    # Network errors
    TRANSPORT_ERROR = "TRANSPORT_ERROR"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standardized error payload.

    Attributes:
        error_code: Machine-readable error code
        message: Human-readable error message
        details: Additional error details
        suggested_action: Actionable suggestion for the caller
    """
    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    suggested_action: Optional[str] = None


# Suggested actions for common errors
SUGGESTED_ACTIONS = {
    ErrorCode.UNKNOWN_OPERATION: "Use qbo_navigate to select a domain and list its tools.",
    ErrorCode.MISSING_CREDENTIALS: "Provide a QuickBooks Online access token and realm ID.",
    ErrorCode.INVALID_ARGUMENTS: "Check the tool's input schema and supply the required fields.",
    ErrorCode.UPSTREAM_ERROR: "Review the QuickBooks Online response body for the cause.",
    ErrorCode.AMBIGUOUS_QUERY_RESPONSE: "Narrow the query so it selects a single entity type.",
    ErrorCode.TRANSPORT_ERROR: "Check network connectivity to QuickBooks Online and try again.",
    ErrorCode.INTERNAL_ERROR: "An internal error occurred. Please try again.",
}


def create_error_response(
    error_code: ErrorCode,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ErrorResponse:
    """Create a standardized error response.

    Args:
        error_code: The error code
        message: Optional custom message (uses default if not provided)
        details: Optional additional details

    Returns:
        ErrorResponse with suggested action
    """
    suggested_action = SUGGESTED_ACTIONS.get(error_code)

    return ErrorResponse(
        error_code=error_code.value,
        message=message or suggested_action or "An error occurred",
        details=details,
        suggested_action=suggested_action,
    )


class ToolError(Exception):
    """Base exception for errors surfaced to the caller as failed results."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.error_response = create_error_response(
            error_code=self.error_code,
            message=message,
            details=details,
        )
        self.message = self.error_response.message
        self.details = details
        super().__init__(self.message)


class UnknownOperationError(ToolError):
    """Raised when an operation name matches no navigation or domain tool."""

    error_code = ErrorCode.UNKNOWN_OPERATION

    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(
            message or f"Unknown tool: {name}. Use qbo_navigate to select a domain first.",
            details={"name": name},
        )


class MissingCredentialsError(ToolError):
    """Raised when a credential policy cannot produce a credential pair."""

    error_code = ErrorCode.MISSING_CREDENTIALS

    def __init__(self, missing: List[str], source: str):
        self.missing = list(missing)
        names = " and ".join(self.missing)
        verb = "is" if len(self.missing) == 1 else "are"
        super().__init__(
            f"Missing credentials: {names} {verb} required ({source})",
            details={"missing": self.missing, "source": source},
        )


class InvalidArgumentsError(ToolError):
    """Raised when tool arguments are missing or malformed."""

    error_code = ErrorCode.INVALID_ARGUMENTS

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(
            message or f"Missing required argument: {field}",
            details={"field": field},
        )


class UpstreamError(ToolError):
    """Raised when QuickBooks Online answers with a non-2xx status."""

    error_code = ErrorCode.UPSTREAM_ERROR

    def __init__(
        self,
        method: str,
        path: str,
        status: int,
        body: str,
        message: Optional[str] = None,
    ):
        self.method = method
        self.path = path
        self.status = status
        self.body = body
        super().__init__(
            message or f"QBO API error {method} /{path} ({status}): {body}",
            details={"method": method, "path": path, "status": status, "body": body},
        )


class AmbiguousQueryResponseError(UpstreamError):
    """Raised when a query response holds more than one entity array."""

    error_code = ErrorCode.AMBIGUOUS_QUERY_RESPONSE

    def __init__(self, fields: List[str], status: int = 200):
        self.fields = list(fields)
        super().__init__(
            method="POST",
            path="query",
            status=status,
            body=", ".join(self.fields),
            message=(
                "QBO query response contains more than one entity array "
                f"({', '.join(self.fields)}); expected exactly one"
            ),
        )


class TransportError(ToolError):
    """Raised when QuickBooks Online cannot be reached (connection, timeout)."""

    error_code = ErrorCode.TRANSPORT_ERROR
