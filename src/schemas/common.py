"""Health and error envelopes shared by every route."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.core.clock import utcnow

API_VERSION = "0.1.0"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Liveness answer; never touches the datastore."""

    status: HealthStatus = Field(description="Current health status")
    timestamp: datetime = Field(default_factory=utcnow, description="Check timestamp (UTC)")
    version: str = Field(default=API_VERSION, description="API version")


class DependencyCheck(BaseModel):
    """Outcome of checking one dependency (datastore, sweeper)."""

    name: str = Field(description="Dependency name, e.g. 'database' or 'session_sweeper'")
    healthy: bool = Field(description="Whether the dependency can serve traffic")
    latency_ms: float | None = Field(default=None, description="Round-trip time of the check")
    error: str | None = Field(default=None, description="Why the dependency is unhealthy")


class ReadinessResponse(BaseModel):
    """Readiness answer with one entry per dependency and live relay load."""

    status: HealthStatus = Field(description="Overall readiness status")
    timestamp: datetime = Field(default_factory=utcnow, description="Check timestamp (UTC)")
    checks: list[DependencyCheck] = Field(default_factory=list, description="Individual dependency checks")
    feed_subscribers: int = Field(default=0, description="Open change-feed subscriptions on this instance")


class ErrorDetail(BaseModel):
    """One field-level or contextual error entry."""

    loc: list[str] | None = Field(default=None, description="Path of the offending field")
    msg: str = Field(description="Human-readable message")
    type: str = Field(description="Machine-readable error kind")


class ErrorResponse(BaseModel):
    """Body of every non-2xx response.

    A lost claim race (error "already_claimed") also names the advertisement
    that was taken and carries the refreshed list of open advertisements so
    the client can redraw without another request.
    """

    model_config = ConfigDict(extra="forbid")

    error: str = Field(description="Error kind, e.g. 'already_claimed' or 'invalid_state'")
    message: str = Field(description="Human-readable description")
    details: list[ErrorDetail] | None = Field(default=None, description="Field-level details")
    request_id: str | None = Field(default=None, description="X-Request-ID of the failed request")
    timestamp: datetime = Field(default_factory=utcnow, description="When the error was produced (UTC)")
    advertisement_id: str | None = Field(default=None, description="Advertisement a lost claim targeted")
    open_advertisements: list[dict[str, Any]] | None = Field(
        default=None,
        description="Advertisements still open after a lost claim",
    )

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
        **fields: Any,
    ) -> "ErrorResponse":
        """Build the envelope from an error's parts.

        Extra keyword fields must be declared on ErrorResponse; unknown
        names are rejected.
        """
        error_details = None
        if details:
            error_details = [
                ErrorDetail(loc=d.get("loc"), msg=d.get("msg", str(d)), type=d.get("type", "error"))
                for d in details
            ]
        return cls(error=error_type, message=message, details=error_details, request_id=request_id, **fields)
