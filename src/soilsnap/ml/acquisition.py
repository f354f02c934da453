"""Model acquisition: obtain metadata and a usable classifier once per session.

The service moves from ``loading`` to exactly one terminal state:

    loading -> ready      metadata and classifier both loaded
    loading -> degraded   anything failed; synthetic predictions take over

Degraded is a designed operating mode, not an error. Failures here are
logged and reported as warning notifications, never raised to the caller.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from soilsnap.ml.metadata import MetadataError, fetch_metadata, is_available
from soilsnap.notifications import Severity

if TYPE_CHECKING:
    from soilsnap.ml.classifier import Classifier, ClassifierLoader
    from soilsnap.ml.metadata import ModelMetadata
    from soilsnap.notifications import Notifier

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT: str = "soil samples"


class AcquisitionStatus(StrEnum):
    LOADING = "loading"
    READY = "ready"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class AcquisitionState:
    """Current acquisition outcome. Only ``ready`` carries a classifier."""

    status: AcquisitionStatus
    classifier: Classifier | None = None
    reason: str | None = None
    metadata: ModelMetadata | None = None

    @classmethod
    def loading(cls) -> AcquisitionState:
        return cls(status=AcquisitionStatus.LOADING)

    @classmethod
    def ready(cls, classifier: Classifier, metadata: ModelMetadata) -> AcquisitionState:
        return cls(status=AcquisitionStatus.READY, classifier=classifier, metadata=metadata)

    @classmethod
    def degraded(cls, reason: str, metadata: ModelMetadata | None = None) -> AcquisitionState:
        return cls(status=AcquisitionStatus.DEGRADED, reason=reason, metadata=metadata)

    @property
    def is_terminal(self) -> bool:
        return self.status is not AcquisitionStatus.LOADING

    @property
    def labels(self) -> list[str]:
        return list(self.metadata.labels) if is_available(self.metadata) else []


class ModelAcquisitionService:
    """Runs the one-time metadata and classifier load for a session."""

    def __init__(
        self,
        loader: ClassifierLoader,
        notifier: Notifier,
        metadata_location: str,
        model_location: str,
        metadata_timeout: float = 10.0,
    ) -> None:
        self._loader = loader
        self._notifier = notifier
        self._metadata_location = metadata_location
        self._model_location = model_location
        self._metadata_timeout = metadata_timeout
        self._state = AcquisitionState.loading()
        self._task: asyncio.Task[AcquisitionState] | None = None

    @property
    def state(self) -> AcquisitionState:
        return self._state

    def start(self) -> asyncio.Task[AcquisitionState]:
        """Schedule acquisition in the background and return its task."""
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="model-acquisition")
        return self._task

    async def acquire(self) -> AcquisitionState:
        """Run acquisition, or join the attempt already in flight.

        Once a terminal state is reached it is returned as-is; acquisition
        never runs twice in one session.
        """
        if self._state.is_terminal:
            return self._state
        task = self.start()
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return self._state
            raise

    async def cancel(self) -> None:
        """Abandon an in-flight acquisition, finalizing the state as degraded."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if not self._state.is_terminal:
            self._finish(AcquisitionState.degraded("Model acquisition cancelled"), notify=False)

    # -- Internal -----------------------------------------------------------

    async def _run(self) -> AcquisitionState:
        metadata: ModelMetadata | None = None
        try:
            metadata, metadata_error = await self._fetch_metadata()

            try:
                classifier = await self._loader(self._model_location, self._metadata_location)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Classifier load failed: %s", exc, exc_info=True)
                return self._finish(AcquisitionState.degraded(f"Classifier unavailable: {exc}", metadata))

            if metadata is None or metadata_error is not None:
                return self._finish(AcquisitionState.degraded(metadata_error or "Model metadata unavailable", metadata))
            if tuple(classifier.labels) != tuple(metadata.labels):
                logger.warning("Classifier labels %s differ from metadata labels %s", classifier.labels, metadata.labels)
                return self._finish(AcquisitionState.degraded("Classifier labels do not match model metadata", metadata))

            return self._finish(AcquisitionState.ready(classifier, metadata))
        except asyncio.CancelledError:
            self._finish(AcquisitionState.degraded("Model acquisition cancelled", metadata), notify=False)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Model acquisition failed")
            return self._finish(AcquisitionState.degraded(f"Model acquisition failed: {exc}", metadata))

    async def _fetch_metadata(self) -> tuple[ModelMetadata | None, str | None]:
        try:
            metadata = await fetch_metadata(self._metadata_location, timeout=self._metadata_timeout)
        except MetadataError as exc:
            logger.warning("Model metadata unavailable: %s", exc)
            return None, f"Model metadata unavailable: {exc}"

        if not is_available(metadata):
            logger.warning("Model metadata at %s lists no labels", self._metadata_location)
            return metadata, "Model metadata lists no labels"
        return metadata, None

    def _finish(self, state: AcquisitionState, notify: bool = True) -> AcquisitionState:
        if self._state.is_terminal:
            return self._state
        self._state = state

        metadata = state.metadata
        if state.status is AcquisitionStatus.READY and metadata is not None:
            logger.info("Model ready: %s (%d labels)", metadata.display_name, len(metadata.labels))
            if notify:
                self._notifier.notify(
                    "Model loaded",
                    f"Ready to analyze {metadata.model_name or DEFAULT_SUBJECT}",
                    Severity.SUCCESS,
                )
        else:
            logger.warning("Model acquisition degraded: %s", state.reason)
            if notify:
                self._notifier.notify(
                    "Model loading failed",
                    f"{state.reason}. Results will be simulated.",
                    Severity.WARNING,
                )
        return state
