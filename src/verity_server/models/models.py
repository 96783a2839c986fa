"""Pydantic models for model listing endpoints."""

from pydantic import BaseModel, Field


class ModelDetail(BaseModel):
    name: str
    size_mb: float
    family: str
    parameter_size: str
    capabilities: list[str]
    context_length: int


class ModelListResponse(BaseModel):
    models: list[ModelDetail] = Field(default_factory=list)
