"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status

from soilsnap.api.middleware import require_login
from soilsnap.api.schemas import (
    AnalysisResponse,
    ErrorResponse,
    HealthResponse,
    ImageResponse,
    LoginRequest,
    ModelStatusResponse,
    NotificationSchema,
    NotificationsResponse,
    ProgressResponse,
)
from soilsnap.ml.metadata import is_available
from soilsnap.ml.pipeline import ImageMissingError, ModelNotReadyError
from soilsnap.notifications import Severity
from soilsnap.session import UploadedImage, check_credentials

if TYPE_CHECKING:
    from soilsnap.config import Settings
    from soilsnap.ml.acquisition import ModelAcquisitionService
    from soilsnap.ml.inference import InferencePool
    from soilsnap.ml.pipeline import InferencePipeline
    from soilsnap.notifications import Notifier, ProgressTracker
    from soilsnap.session import Session

logger = logging.getLogger(__name__)

# starlette's name for 413 differs across versions
HTTP_413_PAYLOAD_TOO_LARGE = 413

router = APIRouter(prefix="/api/v1")
dashboard = APIRouter(dependencies=[Depends(require_login)])


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_session(request: Request) -> Session:
    session: Session = request.app.state.session
    return session


def _get_notifier(request: Request) -> Notifier:
    notifier: Notifier = request.app.state.notifier
    return notifier


def _get_acquisition(request: Request) -> ModelAcquisitionService:
    acquisition: ModelAcquisitionService = request.app.state.acquisition
    return acquisition


# -- Login gate ---------------------------------------------------------------


@router.post(
    "/login",
    response_model=NotificationSchema,
    responses={status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse}},
    summary="Log in with the demo credentials",
)
async def login(body: LoginRequest, request: Request) -> NotificationSchema:
    settings = _get_settings(request)
    notifier = _get_notifier(request)

    if not await check_credentials(settings, body.email, body.password):
        notifier.notify(
            "Login failed",
            f"Invalid credentials. Use {settings.login_email} / {settings.login_password}",
            Severity.ERROR,
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    _get_session(request).authenticated = True
    notification = notifier.notify("Login successful", "Welcome to the Soil Classification System", Severity.SUCCESS)
    return NotificationSchema.from_notification(notification)


@dashboard.post("/logout", response_model=NotificationSchema, summary="Log out and discard session state")
async def logout(request: Request) -> NotificationSchema:
    _get_session(request).logout()
    notification = _get_notifier(request).notify("Logged out", "You have been logged out successfully", Severity.INFO)
    return NotificationSchema.from_notification(notification)


# -- Dashboard ------------------------------------------------------------------


@dashboard.get("/model", response_model=ModelStatusResponse, summary="Model acquisition status")
async def model_status(request: Request) -> ModelStatusResponse:
    """Return acquisition status and the model details shown under "About this model"."""
    state = _get_acquisition(request).state
    metadata = state.metadata
    return ModelStatusResponse(
        status=state.status.value,
        reason=state.reason,
        model_name=metadata.display_name if metadata is not None else None,
        class_count=len(metadata.labels) if is_available(metadata) else None,
    )


@dashboard.post(
    "/image",
    response_model=ImageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        HTTP_413_PAYLOAD_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": ErrorResponse},
    },
    summary="Upload a soil sample image",
)
async def upload_image(file: UploadFile, request: Request) -> ImageResponse:
    """Replace the current image. Previous results are cleared."""
    settings = _get_settings(request)

    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail="Upload a JPG, PNG or GIF image")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    if len(data) > settings.max_file_size:
        raise HTTPException(
            status_code=HTTP_413_PAYLOAD_TOO_LARGE,
            detail=f"Uploaded file exceeds {settings.max_file_size} bytes",
        )

    image = UploadedImage(filename=file.filename or "upload", content_type=content_type, data=data)
    _get_session(request).set_image(image)
    _get_notifier(request).notify("Image uploaded", "Click 'Analyze Soil' to process the image", Severity.INFO)
    logger.info("Received image %s (%d bytes)", image.filename, image.size)
    return ImageResponse(filename=image.filename, content_type=image.content_type, size=image.size)


@dashboard.post(
    "/analyze",
    response_model=AnalysisResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
    summary="Classify the uploaded image",
)
async def analyze(request: Request) -> AnalysisResponse:
    session = _get_session(request)
    pipeline: InferencePipeline = request.app.state.pipeline
    state = _get_acquisition(request).state

    try:
        result = await pipeline.analyze(state, session.image)
    except ImageMissingError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ModelNotReadyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    session.result = result
    return AnalysisResponse.from_result(result)


@dashboard.get(
    "/results",
    response_model=AnalysisResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    summary="Latest analysis results",
)
async def results(request: Request) -> AnalysisResponse:
    result = _get_session(request).result
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No data yet")
    return AnalysisResponse.from_result(result)


@dashboard.get("/progress", response_model=ProgressResponse, summary="Analysis progress")
async def progress(request: Request) -> ProgressResponse:
    tracker: ProgressTracker = request.app.state.progress
    return ProgressResponse(value=tracker.value)


@dashboard.get("/notifications", response_model=NotificationsResponse, summary="Pending notifications")
async def notifications(request: Request) -> NotificationsResponse:
    """Return and clear notifications raised since the last poll."""
    pending = _get_notifier(request).drain()
    return NotificationsResponse(notifications=[NotificationSchema.from_notification(n) for n in pending])


# -- Operations -------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pool: InferencePool = request.app.state.inference_pool
    return HealthResponse(
        status="ok",
        acquisition=_get_acquisition(request).state.status.value,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


router.include_router(dashboard)
