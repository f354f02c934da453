"""Tests for the ONNX-backed classifier."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest
from conftest import SOIL_LABELS

from soilsnap.ml.classifier import OnnxClassifier, Prediction, to_distribution
from soilsnap.ml.preprocessing import ImageDecodeError
from soilsnap.session import UploadedImage


def _make_session(outputs: list[float], output_width: object = 3) -> MagicMock:
    session = MagicMock()
    session.get_inputs.return_value = [SimpleNamespace(name="input_1", shape=[None, 224, 224, 3])]
    session.get_outputs.return_value = [SimpleNamespace(name="output", shape=[None, output_width])]
    session.run.return_value = [np.array([outputs], dtype=np.float32)]
    return session


class TestToDistribution:
    def test_probabilities_pass_through(self) -> None:
        scores = np.array([0.1, 0.6, 0.3], dtype=np.float32)
        assert np.array_equal(to_distribution(scores), scores)

    def test_logits_are_softmaxed(self) -> None:
        result = to_distribution(np.array([2.0, -1.0, 0.5], dtype=np.float32))
        assert np.isclose(result.sum(), 1.0)
        assert int(result.argmax()) == 0


class TestOnnxClassifier:
    def test_predict_aligns_to_labels(self, uploaded_image: UploadedImage) -> None:
        session = _make_session([0.2, 0.5, 0.3])
        classifier = OnnxClassifier(session, labels=SOIL_LABELS, model_name="Soil Classifier")

        predictions = classifier.predict(uploaded_image)

        assert [p.class_name for p in predictions] == SOIL_LABELS
        assert predictions[1] == Prediction("Sand", pytest.approx(0.5))
        feed = session.run.call_args.args[1]
        assert feed["input_1"].shape == (1, 224, 224, 3)

    def test_uses_metadata_image_size(self, uploaded_image: UploadedImage) -> None:
        session = _make_session([0.2, 0.5, 0.3])
        classifier = OnnxClassifier(session, labels=SOIL_LABELS, model_name="Soil Classifier", image_size=96)
        classifier.predict(uploaded_image)
        assert session.run.call_args.args[1]["input_1"].shape == (1, 96, 96, 3)

    def test_output_width_mismatch_rejected(self) -> None:
        with pytest.raises(ValueError, match="Mismatch"):
            OnnxClassifier(_make_session([0.5, 0.5], output_width=2), labels=SOIL_LABELS, model_name="x")

    def test_symbolic_output_width_accepted(self, uploaded_image: UploadedImage) -> None:
        classifier = OnnxClassifier(_make_session([1.0, 0.0, 0.0], output_width="classes"), SOIL_LABELS, "x")
        assert len(classifier.predict(uploaded_image)) == 3

    def test_unexpected_output_shape_raises(self, uploaded_image: UploadedImage) -> None:
        classifier = OnnxClassifier(_make_session([0.5, 0.5], output_width="n"), SOIL_LABELS, "x")
        with pytest.raises(ValueError, match="Unexpected prediction output shape"):
            classifier.predict(uploaded_image)

    def test_malformed_image_raises(self) -> None:
        classifier = OnnxClassifier(_make_session([0.2, 0.5, 0.3]), SOIL_LABELS, "x")
        bad = UploadedImage(filename="bad.png", content_type="image/png", data=b"not a png")
        with pytest.raises(ImageDecodeError):
            classifier.predict(bad)

    def test_requires_labels(self) -> None:
        with pytest.raises(ValueError, match="at least one label"):
            OnnxClassifier(_make_session([]), labels=[], model_name="x")
