"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of verity-server")
    ollama_connected: bool | None = Field(default=None, description="Whether Ollama is reachable")
    ollama_host: str | None = Field(default=None, description="Ollama host URL")
