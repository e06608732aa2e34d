"""Response envelopes shared by the API routes."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Every successful response body is wrapped as ``{"data": ...}``."""

    data: T


class ErrorResponse(BaseModel):
    """Body of every error response."""

    detail: str


# Documented on every router; the app-level handler produces these bodies
ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}
