"""Pydantic request/response schemas for the Soil Snapshot API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from soilsnap.ml.classifier import Prediction
    from soilsnap.ml.pipeline import AnalysisResult
    from soilsnap.notifications import Notification


class LoginRequest(BaseModel):
    email: str
    password: str


class NotificationSchema(BaseModel):
    """A toast-style notification for the UI."""

    title: str
    description: str
    severity: str = Field(description="'success', 'info', 'warning' or 'error'")

    @classmethod
    def from_notification(cls, notification: Notification) -> NotificationSchema:
        return cls(
            title=notification.title,
            description=notification.description,
            severity=notification.severity.value,
        )


class NotificationsResponse(BaseModel):
    notifications: list[NotificationSchema]


class PredictionSchema(BaseModel):
    """A single class probability with its display percentage."""

    class_name: str
    probability: float = Field(ge=0.0, le=1.0)
    percent: str = Field(description="Probability as a percentage with one decimal, e.g. '57.3%'")

    @classmethod
    def from_prediction(cls, prediction: Prediction) -> PredictionSchema:
        return cls(
            class_name=prediction.class_name,
            probability=min(max(prediction.probability, 0.0), 1.0),
            percent=f"{prediction.probability * 100:.1f}%",
        )


class AnalysisResponse(BaseModel):
    """Result set for the classification panel."""

    predictions: list[PredictionSchema]
    top_prediction: PredictionSchema | None
    synthetic: bool = Field(description="True when results were simulated instead of produced by the model")

    @classmethod
    def from_result(cls, result: AnalysisResult) -> AnalysisResponse:
        top = result.top_prediction
        return cls(
            predictions=[PredictionSchema.from_prediction(p) for p in result.predictions],
            top_prediction=PredictionSchema.from_prediction(top) if top is not None else None,
            synthetic=result.synthetic,
        )


class ImageResponse(BaseModel):
    filename: str
    content_type: str
    size: int


class ModelStatusResponse(BaseModel):
    """Acquisition status and the "About this model" details."""

    model_config = ConfigDict(protected_namespaces=())

    status: str = Field(description="'loading', 'ready' or 'degraded'")
    reason: str | None = None
    model_name: str | None = None
    class_count: int | None = None


class ProgressResponse(BaseModel):
    value: float = Field(ge=0.0, le=100.0)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    acquisition: str
    concurrent_requests: int
    queue_depth: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
