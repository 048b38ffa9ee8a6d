"""Request and error payload models for the HTTP API."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


STATUS_TO_ERROR_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.NOT_FOUND,
    500: ErrorCode.INTERNAL_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


def get_error_code(status_code: int) -> ErrorCode:
    """Get ErrorCode from HTTP status code."""
    return STATUS_TO_ERROR_CODE.get(status_code, ErrorCode.INTERNAL_ERROR)


class ErrorResponse(BaseModel):
    error: str
    code: ErrorCode


class IngestionNotification(BaseModel):
    """Payload the ingestion pipeline sends after publishing a new database."""

    model_config = ConfigDict(extra="allow")

    version: Optional[str] = None
    timestamp: Optional[str] = None
    lists_count: Optional[int] = None
    repos_count: Optional[int] = None


class WebhookAck(BaseModel):
    success: bool
    message: str
