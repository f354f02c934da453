"""Shared fixtures and test doubles."""

from __future__ import annotations

import io
import json
from typing import TYPE_CHECKING

import pytest
from PIL import Image

from soilsnap.ml.classifier import Prediction
from soilsnap.session import UploadedImage

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

SOIL_LABELS: list[str] = ["Clay", "Sand", "Loam"]


class FakeClassifier:
    """Deterministic classifier returning a fixed distribution."""

    def __init__(self, probabilities: Sequence[float] = (0.2, 0.5, 0.3), labels: Sequence[str] = SOIL_LABELS) -> None:
        self._labels = tuple(labels)
        self._predictions = [Prediction(label, p) for label, p in zip(labels, probabilities, strict=True)]
        self.calls: list[UploadedImage] = []

    @property
    def model_name(self) -> str:
        return "Fake Soil Classifier"

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels

    def predict(self, image: UploadedImage) -> list[Prediction]:
        self.calls.append(image)
        return list(self._predictions)


class FailingClassifier(FakeClassifier):
    def predict(self, image: UploadedImage) -> list[Prediction]:
        self.calls.append(image)
        raise ValueError("malformed image")


def make_png(width: int = 32, height: int = 24, color: tuple[int, ...] = (120, 80, 40), mode: str = "RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture()
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture()
def uploaded_image(png_bytes: bytes) -> UploadedImage:
    return UploadedImage(filename="sample.png", content_type="image/png", data=png_bytes)


@pytest.fixture()
def metadata_file(tmp_path: Path) -> Path:
    path = tmp_path / "metadata.json"
    path.write_text(json.dumps({"modelName": "Soil Classifier", "labels": SOIL_LABELS}))
    return path
