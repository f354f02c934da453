"""Model manager: locate, download and load the ONNX soil classifier.

Resolves the model file (optionally fetching it from HuggingFace), builds
ONNX Runtime providers and session options from settings, and wraps the
resulting session in an ``OnnxClassifier``. ``onnxruntime`` is imported at
load time so an environment without it yields a load failure the
acquisition service can degrade from.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from huggingface_hub import hf_hub_download

from soilsnap.ml.classifier import OnnxClassifier
from soilsnap.ml.metadata import MetadataError, fetch_metadata, is_available

if TYPE_CHECKING:
    from soilsnap.config import Settings
    from soilsnap.ml.classifier import Classifier, ClassifierLoader

logger = logging.getLogger(__name__)


class OnnxModelManager:
    """Resolves the model file and creates ONNX inference sessions."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._providers = self._build_providers()

    # -- Public API ---------------------------------------------------------

    def ensure_model_file(self, model_location: str | Path) -> Path:
        """Return the local model path, downloading it from HuggingFace if configured."""
        path = Path(model_location)
        if path.exists():
            return path

        repo_id = self._settings.model_repo_id
        if repo_id is None:
            raise FileNotFoundError(f"Model file not found: {path}")

        downloaded = Path(
            hf_hub_download(
                repo_id=repo_id,
                filename=path.name,
                local_dir=str(self._settings.assets_dir),
            )
        )
        logger.info("Downloaded %s from %s to %s", path.name, repo_id, downloaded)
        return downloaded

    def create_session(self, model_location: str | Path) -> Any:
        """Create an ONNX Runtime InferenceSession for the model file."""
        import onnxruntime

        model_path = self.ensure_model_file(model_location)
        session = onnxruntime.InferenceSession(
            str(model_path),
            sess_options=self._build_session_options(onnxruntime),
            providers=self._providers,
        )
        logger.info("Loaded session for %s (providers=%s)", model_path, session.get_providers())
        return session

    async def load(self, model_location: str, metadata_location: str) -> Classifier:
        """Load the classifier described by the model file and metadata document."""
        metadata = await fetch_metadata(metadata_location, timeout=self._settings.metadata_timeout)
        if not is_available(metadata):
            raise MetadataError("Model metadata has no labels")

        session = await asyncio.to_thread(self.create_session, model_location)
        return OnnxClassifier(
            session,
            labels=metadata.labels,
            model_name=metadata.display_name,
            image_size=metadata.image_size,
            max_pixels=self._settings.max_image_pixels,
        )

    # -- Internal -----------------------------------------------------------

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                (
                    "CUDAExecutionProvider",
                    {
                        "device_id": 0,
                        "gpu_mem_limit": self._settings.gpu_mem_limit,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                ),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self, ort: Any) -> Any:
        opts = ort.SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            opts.graph_optimization_level = ort.GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts


def make_onnx_loader(settings: Settings) -> ClassifierLoader:
    """Return a ClassifierLoader backed by ONNX Runtime."""
    return OnnxModelManager(settings).load
