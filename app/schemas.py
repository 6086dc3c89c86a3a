"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from models.records import WriteResult


class IngestAck(BaseModel):
    """Response returned to a device after both writes succeeded."""

    success: bool = True
    message: str = "Data stored successfully"
    device_id: str
    timestamp: int = Field(..., description="Device timestamp in epoch milliseconds.")


class WriteOutcome(BaseModel):
    """Result of one leg of the dual write."""

    leg: str
    path: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: WriteResult) -> "WriteOutcome":
        return cls(
            leg=result.leg,
            path=result.path,
            ok=result.ok,
            status_code=result.status_code,
            error=result.error,
        )


class ErrorResponse(BaseModel):
    """Structured failure payload; ``error`` carries the failure kind."""

    success: bool = False
    error: str
    details: str
    field: Optional[str] = None
    status_code: Optional[int] = None


class WriteFailureResponse(ErrorResponse):
    outcome: str = Field(
        ..., description="One of history_failed, current_failed or both_failed."
    )
    failed_legs: List[str]
    device_id: str
    timestamp: int
    results: List[WriteOutcome] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    store_url: str
    auth_mode: str


class StoreCheckResponse(BaseModel):
    success: bool = True
    message: str = "Store connection test successful"
    path: str
    status_code: Optional[int] = None
