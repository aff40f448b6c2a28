"""
Ebookshelf Backend: Shared Response Schemas
=============================================

What:  Error, confirmation and health payloads used across routers.
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Every failure response has exactly this shape.

    Example:
        {"error": "Book not found."}
    """
    error: str = Field(description="Human-readable error description")


class MessageResponse(BaseModel):
    message: str = Field(description="Short confirmation, e.g. 'Book deleted.'")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
