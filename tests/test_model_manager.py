"""Tests for the ONNX model manager."""

from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from soilsnap.config import Settings
from soilsnap.ml.classifier import OnnxClassifier
from soilsnap.ml.model_manager import OnnxModelManager, make_onnx_loader

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "device": "cpu",
        "assets_dir": "/tmp/soilsnap_test_assets",
        "model_repo_id": None,
        "intra_op_threads": 0,
        "inter_op_threads": 1,
        "gpu_mem_limit": 2_147_483_648,
        "max_concurrent": 2,
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


def _fake_onnxruntime(output_width: int = 3) -> MagicMock:
    ort = MagicMock()
    session = ort.InferenceSession.return_value
    session.get_inputs.return_value = [SimpleNamespace(name="input", shape=[None, 224, 224, 3])]
    session.get_outputs.return_value = [SimpleNamespace(name="output", shape=[None, output_width])]
    session.get_providers.return_value = ["CPUExecutionProvider"]
    return ort


# ---------------------------------------------------------------------------
# Model file resolution
# ---------------------------------------------------------------------------


class TestEnsureModelFile:
    @patch("soilsnap.ml.model_manager.hf_hub_download")
    def test_existing_file_skips_download(self, mock_download: MagicMock, tmp_path: Path) -> None:
        model_file = tmp_path / "model.onnx"
        model_file.touch()
        mgr = OnnxModelManager(_make_settings(model_repo_id="someone/soil-model"))

        assert mgr.ensure_model_file(model_file) == model_file
        mock_download.assert_not_called()

    def test_missing_file_without_repo_raises(self, tmp_path: Path) -> None:
        mgr = OnnxModelManager(_make_settings())
        with pytest.raises(FileNotFoundError, match="Model file not found"):
            mgr.ensure_model_file(tmp_path / "model.onnx")

    @patch("soilsnap.ml.model_manager.hf_hub_download")
    def test_missing_file_downloads_from_repo(self, mock_download: MagicMock, tmp_path: Path) -> None:
        mock_download.return_value = "/tmp/soilsnap_test_assets/model.onnx"
        mgr = OnnxModelManager(_make_settings(model_repo_id="someone/soil-model"))

        path = mgr.ensure_model_file(tmp_path / "model.onnx")

        mock_download.assert_called_once_with(
            repo_id="someone/soil-model",
            filename="model.onnx",
            local_dir="/tmp/soilsnap_test_assets",
        )
        assert path == Path("/tmp/soilsnap_test_assets/model.onnx")


# ---------------------------------------------------------------------------
# Session creation and loading
# ---------------------------------------------------------------------------


class TestCreateSession:
    def test_creates_session_with_providers(self, tmp_path: Path) -> None:
        model_file = tmp_path / "model.onnx"
        model_file.touch()
        ort = _fake_onnxruntime()
        mgr = OnnxModelManager(_make_settings())

        with patch.dict(sys.modules, {"onnxruntime": ort}):
            session = mgr.create_session(model_file)

        assert session is ort.InferenceSession.return_value
        args, kwargs = ort.InferenceSession.call_args
        assert args == (str(model_file),)
        assert kwargs["providers"] == ["CPUExecutionProvider"]
        assert kwargs["sess_options"] is ort.SessionOptions.return_value

    def test_missing_library_raises_import_error(self, tmp_path: Path) -> None:
        mgr = OnnxModelManager(_make_settings())
        with patch.dict(sys.modules, {"onnxruntime": None}), pytest.raises(ImportError):
            mgr.create_session(tmp_path / "model.onnx")


class TestLoad:
    async def test_load_builds_classifier_from_metadata(self, tmp_path: Path, metadata_file: Path) -> None:
        model_file = tmp_path / "model.onnx"
        model_file.touch()
        ort = _fake_onnxruntime(output_width=3)
        loader = make_onnx_loader(_make_settings())

        with patch.dict(sys.modules, {"onnxruntime": ort}):
            classifier = await loader(str(model_file), str(metadata_file))

        assert isinstance(classifier, OnnxClassifier)
        assert classifier.model_name == "Soil Classifier"
        assert classifier.labels == ("Clay", "Sand", "Loam")

    async def test_load_rejects_label_mismatch(self, tmp_path: Path, metadata_file: Path) -> None:
        model_file = tmp_path / "model.onnx"
        model_file.touch()
        mgr = OnnxModelManager(_make_settings())

        with patch.dict(sys.modules, {"onnxruntime": _fake_onnxruntime(output_width=7)}):
            with pytest.raises(ValueError, match="Mismatch"):
                await mgr.load(str(model_file), str(metadata_file))


# ---------------------------------------------------------------------------
# Execution providers
# ---------------------------------------------------------------------------


class TestProviders:
    def test_provider_building_cpu(self) -> None:
        mgr = OnnxModelManager(_make_settings(device="cpu"))
        assert mgr._providers == ["CPUExecutionProvider"]

    def test_provider_building_cuda(self) -> None:
        mgr = OnnxModelManager(_make_settings(device="cuda", gpu_mem_limit=1024))
        assert len(mgr._providers) == 2
        provider_name, provider_opts = mgr._providers[0]  # type: ignore[misc]
        assert provider_name == "CUDAExecutionProvider"
        assert provider_opts["gpu_mem_limit"] == 1024
        assert mgr._providers[1] == "CPUExecutionProvider"

    def test_provider_building_openvino(self) -> None:
        mgr = OnnxModelManager(_make_settings(device="openvino"))
        provider_name, _provider_opts = mgr._providers[0]  # type: ignore[misc]
        assert provider_name == "OpenVINOExecutionProvider"
        assert mgr._providers[1] == "CPUExecutionProvider"

    def test_openvino_disables_graph_optimization(self) -> None:
        ort = _fake_onnxruntime()
        mgr = OnnxModelManager(_make_settings(device="openvino"))
        opts = mgr._build_session_options(ort)
        assert opts.graph_optimization_level == ort.GraphOptimizationLevel.ORT_DISABLE_ALL
