from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PredictionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: str = Field(..., alias="class", description="Predicted waste class")
    confidence: float = Field(..., ge=0.0, le=1.0)
    processing_time: int | None = Field(
        None, alias="processingTime", description="Milliseconds spent on the prediction"
    )


class UpstreamErrorResponse(BaseModel):
    error: str = Field("upstream_error")
    details: Any = None


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    mode: str


__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "PredictionResponse",
    "UpstreamErrorResponse",
]
