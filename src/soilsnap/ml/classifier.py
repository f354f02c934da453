"""Image classifier capability.

A classifier maps an uploaded image to one probability per label, in the
label order published by the model metadata. The acquisition service only
sees the ``Classifier`` protocol and an injected ``ClassifierLoader``, so the
ONNX implementation below and test doubles are interchangeable.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import numpy as np

from soilsnap.ml.preprocessing import decode_image, preprocess_for_classification

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

    from soilsnap.session import UploadedImage

DISTRIBUTION_TOLERANCE: float = 1e-3


@dataclass(frozen=True)
class Prediction:
    """A single class probability."""

    class_name: str
    probability: float


class Classifier(Protocol):
    """Protocol for image classification models."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    @property
    def labels(self) -> tuple[str, ...]:
        """Return the class labels in canonical order."""
        ...

    def predict(self, image: UploadedImage) -> list[Prediction]:
        """Classify an image.

        Returns:
            One prediction per label, in canonical label order.
        """
        ...


# (model_location, metadata_location) -> ready classifier
ClassifierLoader = Callable[[str, str], Awaitable[Classifier]]


def _softmax(logits: NDArray[np.float32]) -> NDArray[np.float32]:
    shifted = logits - np.max(logits)
    exp = np.exp(shifted)
    return exp / np.sum(exp)


def to_distribution(scores: NDArray[np.float32]) -> NDArray[np.float32]:
    """Return ``scores`` unchanged if they already form a distribution, else softmax them."""
    if np.all(scores >= 0.0) and np.all(scores <= 1.0) and abs(float(np.sum(scores)) - 1.0) <= DISTRIBUTION_TOLERANCE:
        return scores
    return _softmax(scores)


class OnnxClassifier:
    """Classifier backed by an ONNX Runtime inference session."""

    def __init__(
        self,
        session: InferenceSession,
        labels: Sequence[str],
        model_name: str,
        image_size: int = 224,
        max_pixels: int | None = None,
    ) -> None:
        if not labels:
            raise ValueError("Classifier requires at least one label")

        self._session = session
        self._labels = tuple(labels)
        self._model_name = model_name
        self._image_size = image_size
        self._max_pixels = max_pixels
        self._input_name: str = session.get_inputs()[0].name

        output_width = session.get_outputs()[0].shape[-1]
        if isinstance(output_width, int) and output_width != len(self._labels):
            raise ValueError(
                f"Mismatch between model output units and metadata labels: {output_width} != {len(self._labels)}"
            )

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels

    def predict(self, image: UploadedImage) -> list[Prediction]:
        pixels = decode_image(image.data, max_pixels=self._max_pixels)
        batch = preprocess_for_classification(pixels, size=self._image_size)

        outputs = self._session.run(None, {self._input_name: batch})
        scores = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
        if scores.shape[0] != len(self._labels):
            raise ValueError(f"Unexpected prediction output shape: {np.shape(outputs[0])}")

        probabilities = to_distribution(scores)
        return [
            Prediction(class_name=label, probability=float(prob))
            for label, prob in zip(self._labels, probabilities, strict=True)
        ]
