"""Inference result pipeline: uploaded image in, displayable result set out.

A real classifier is used when acquisition reached ``ready``. In degraded
mode, or when the real ``predict`` call fails, the pipeline substitutes
synthetic predictions so the user always receives a result.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from soilsnap.ml.acquisition import AcquisitionStatus
from soilsnap.ml.synthetic import generate_synthetic_predictions
from soilsnap.notifications import Severity

if TYPE_CHECKING:
    from collections.abc import Sequence

    from soilsnap.ml.acquisition import AcquisitionState
    from soilsnap.ml.classifier import Prediction
    from soilsnap.ml.inference import InferencePool
    from soilsnap.notifications import Notifier, ProgressTracker
    from soilsnap.session import UploadedImage

logger = logging.getLogger(__name__)


class AnalysisRejectedError(Exception):
    """An analysis request that cannot be attempted yet."""

    title: str = "Cannot analyze"


class ImageMissingError(AnalysisRejectedError):
    def __init__(self) -> None:
        super().__init__("Please upload a soil image before analyzing")


class ModelNotReadyError(AnalysisRejectedError):
    def __init__(self) -> None:
        super().__init__("The model is still loading, try again in a moment")


@dataclass(frozen=True)
class AnalysisResult:
    """Published predictions plus the derived top prediction."""

    predictions: list[Prediction] = field(default_factory=list)
    top_prediction: Prediction | None = None
    synthetic: bool = False


def top_prediction(predictions: Sequence[Prediction]) -> Prediction | None:
    """Highest-probability entry; ties go to the earliest entry."""
    best: Prediction | None = None
    for prediction in predictions:
        if best is None or prediction.probability > best.probability:
            best = prediction
    return best


class InferencePipeline:
    """Turns an acquisition state and an uploaded image into an AnalysisResult."""

    def __init__(
        self,
        pool: InferencePool,
        notifier: Notifier,
        progress: ProgressTracker,
        settle_delay: float = 0.1,
        rng: random.Random | None = None,
    ) -> None:
        self._pool = pool
        self._notifier = notifier
        self._progress = progress
        self._settle_delay = settle_delay
        self._rng = rng or random.Random()

    async def analyze(self, state: AcquisitionState, image: UploadedImage | None) -> AnalysisResult:
        """Classify ``image`` with the real model or the synthetic fallback.

        Raises:
            ImageMissingError: No image has been uploaded.
            ModelNotReadyError: Acquisition has not finished yet.
        """
        if image is None:
            raise self._reject(ImageMissingError())
        if state.status is AcquisitionStatus.LOADING:
            raise self._reject(ModelNotReadyError())

        try:
            self._progress.advance(10)
            # Let the upload settle before it reaches the classifier.
            await asyncio.sleep(self._settle_delay)
            self._progress.advance(30)

            predictions, synthetic = await self._predict(state, image)
            self._progress.advance(90)

            result = AnalysisResult(
                predictions=predictions,
                top_prediction=top_prediction(predictions),
                synthetic=synthetic,
            )
            self._progress.advance(100)
        finally:
            self._progress.reset()

        self._report(result)
        return result

    async def _predict(self, state: AcquisitionState, image: UploadedImage) -> tuple[list[Prediction], bool]:
        classifier = state.classifier
        if state.status is AcquisitionStatus.READY and classifier is not None:
            try:
                return list(await self._pool.run(classifier.predict, image)), False
            except Exception:
                logger.exception("Inference failed for %s, falling back to synthetic predictions", image.filename)

        return generate_synthetic_predictions(state.labels, self._rng), True

    def _reject(self, error: AnalysisRejectedError) -> AnalysisRejectedError:
        logger.info("Analysis rejected: %s", error)
        self._notifier.notify(error.title, str(error), Severity.ERROR)
        return error

    def _report(self, result: AnalysisResult) -> None:
        if not result.predictions:
            self._notifier.notify("Analysis failed", "No soil classes are available to classify against", Severity.ERROR)
        elif result.synthetic:
            self._notifier.notify(
                "Analysis complete",
                "Showing simulated results while the classifier is unavailable",
                Severity.WARNING,
            )
        else:
            self._notifier.notify("Analysis complete", "Soil classification results are ready", Severity.SUCCESS)
