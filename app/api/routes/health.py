# app/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from app.core.config import get_settings


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """
    Response schema for the health check endpoint.
    """

    status: str = Field(
        ...,
        description="Overall health status of the meeting session service.",
        examples=["ok"],
    )
    app_name: str = Field(
        ...,
        description="Human-friendly name of the running application.",
        examples=["Meeting Session Service"],
    )
    environment: str = Field(
        ...,
        description="Current deployment environment (local/test/dev/stage/prod).",
        examples=["local"],
    )
    active_rooms: int = Field(
        ...,
        description="Meetings that currently have at least one joined WebSocket connection.",
        examples=[2],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) at which this health check was generated.",
        examples=["2025-01-01T10:30:00Z"],
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check for the meeting session service",
    description=(
        "Lightweight endpoint to verify that the backend is up and responding.\n\n"
        "Typical use-cases:\n"
        "- Container / VM health probes\n"
        "- Uptime monitoring & alerting\n"
        "- Quick smoke-test after deployments\n"
    ),
    responses={
        200: {
            "description": "Service is healthy and responding as expected.",
            "content": {
                "application/json": {
                    "example": {
                        "status": "ok",
                        "app_name": "Meeting Session Service",
                        "environment": "local",
                        "active_rooms": 0,
                        "timestamp_utc": "2025-01-01T10:30:00Z",
                    }
                }
            },
        }
    },
)
async def health_check(request: Request) -> HealthResponse:
    """
    Returns the current health status of the service.

    Does not touch the database so that it stays reliable while the store
    is degraded.
    """
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        active_rooms=len(request.app.state.room_hub.room_ids()),
        timestamp_utc=datetime.now(tz=timezone.utc),
    )
