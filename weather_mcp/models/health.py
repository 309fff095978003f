from datetime import datetime

from pydantic import BaseModel, ConfigDict

from weather_mcp.models.enums import CheckStatus, HealthState


class HealthCheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    status: CheckStatus
    message: str
    duration_ms: float
    metadata: dict | None = None


class MemoryMetrics(BaseModel):
    used: int
    total: int
    percentage: float
    peak: int


class CpuMetrics(BaseModel):
    user_seconds: float
    system_seconds: float
    load_average: tuple[float, float, float]


class RequestMetrics(BaseModel):
    total: int
    average_response_ms: float


class ErrorMetrics(BaseModel):
    total: int
    rate: float


class SystemMetrics(BaseModel):
    """Read-only snapshot of other components' state."""

    model_config = ConfigDict(frozen=True)

    memory: MemoryMetrics
    cpu: CpuMetrics
    cache: dict[str, dict]
    rate_limiter: dict
    requests: RequestMetrics
    errors: ErrorMetrics


class HealthStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: HealthState
    timestamp: datetime
    uptime: float
    version: str
    checks: list[HealthCheckResult]
    metrics: SystemMetrics

    def to_document(self) -> dict:
        """JSON-ready health document (ISO-8601 timestamp, enum values as strings)."""
        return self.model_dump(mode="json")


class QuickHealth(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: HealthState
    uptime: float
    timestamp: datetime
