"""Envelope wrapped around every API response body."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ResponseMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(alias="requestId")
    timestamp: datetime


class ResponseFeedback(BaseModel):
    """Non-fatal notice attached to a successful response."""

    code: str
    level: Literal["info", "warning"] = "info"
    message: str


class ResponseError(BaseModel):
    """Stable ``code`` plus a message safe to show to callers; never raw provider text."""

    code: str
    message: str
    details: Optional[dict[str, Any]] = None
    hint: Optional[str] = None


class ResponseEnvelope(BaseModel, Generic[T]):
    """``success`` with ``data``, or failure with ``error``; ``meta`` always set."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    data: Optional[T] = None
    error: Optional[ResponseError] = None
    meta: ResponseMeta
    feedback: list[ResponseFeedback] = Field(default_factory=list)
