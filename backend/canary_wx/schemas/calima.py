"""Pydantic schemas for Calima API."""

from pydantic import BaseModel


class CalimaResponse(BaseModel):
    available: bool
    is_detected: bool = False
    is_severe: bool = False
    pm10: int | None = None
    timestamp: str | None = None
