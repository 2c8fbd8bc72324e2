from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str  # "ok" or "degraded"
    database_status: str  # "connected" or "disconnected"
    uptime_seconds: float = 0.0
    version: str = "0.1.0"
