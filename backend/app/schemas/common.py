"""
SubText Backend — Shared Pydantic Schemas
===========================================

What:  Base model with camelCase aliases plus the response shapes shared by
       every router (errors, health, API status).
Why:   The mobile client speaks camelCase JSON (fullName, expiresAt, ...)
       while the Python side keeps snake_case attribute names.
How:   alias_generator=to_camel; FastAPI serializes response models by alias.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    """Body returned by every global exception handler."""
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable explanation")
    details: Optional[Dict[str, Any]] = Field(default=None)
    request_id: str = Field(default="", description="Correlates with server logs")


class ApiStatusResponse(BaseModel):
    status: str = Field(examples=["SubText API is running!"])
    version: str
    timestamp: datetime


class HealthResponse(CamelModel):
    """
    status:   healthy | degraded | unhealthy
    database: connected | disconnected
    llm:      available | unavailable
    """
    status: str
    version: str
    database: str
    llm: str
    uptime_seconds: float


class MessageResponse(CamelModel):
    message: str
    success: Optional[bool] = None
