"""
Feature print extraction via HuggingFace Transformers CLIP.

A feature print is the image embedding produced by one algorithm revision.
Each revision is served by its own provider bound to its own CLIP checkpoint;
prints from different revisions are never compared with each other.

    revision "1" → raw CLIP image features
    revision "2" → L2-normalised CLIP image features

Providers also own a distance routine over their prints.  The distance
engine treats it as a black box and cross-checks it with its own float64
recomputation.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
import torch

from featureprint.core.errors import (
    ComputationError,
    ExtractionError,
    LengthMismatchError,
    ModelNotReadyError,
    UnknownRevisionError,
)
from featureprint.models.registry import REVISIONS, ModelRegistry
from featureprint.utils.image_loader import LoadedImage

logger = logging.getLogger(__name__)

NORMALISED_REVISIONS = frozenset({"2"})


@dataclass(frozen=True, eq=False)
class FeatureVector:
    """Immutable feature print for one image."""

    values: np.ndarray
    revision: str

    def __post_init__(self) -> None:
        arr = np.array(self.values, dtype=np.float32)
        if arr.ndim != 1 or arr.size == 0:
            raise ValueError(
                f"A feature vector must be a non-empty 1-D sequence, got shape {arr.shape}."
            )
        arr.flags.writeable = False
        object.__setattr__(self, "values", arr)

    @classmethod
    def from_sequence(cls, values: Sequence[float], revision: str) -> "FeatureVector":
        return cls(values=np.asarray(values), revision=revision)

    def __len__(self) -> int:
        return int(self.values.shape[0])

    def as_float64(self) -> np.ndarray:
        return self.values.astype(np.float64)

    def tolist(self) -> list[float]:
        return self.values.tolist()


class EmbeddingProvider(ABC):
    """Produces feature prints for one revision and measures distance between them."""

    revision: str

    @abstractmethod
    def extract(self, image: LoadedImage, cpu_only: bool = False) -> FeatureVector:
        """Return the feature print of `image`; raise ExtractionError on failure."""

    @abstractmethod
    def distance(self, a: FeatureVector, b: FeatureVector) -> float:
        """Provider-native distance; raise ComputationError on failure."""

    def _check_comparable(self, a: FeatureVector, b: FeatureVector) -> None:
        for vec in (a, b):
            if vec.revision != self.revision:
                raise ComputationError(
                    f"Feature print of revision {vec.revision} cannot be measured "
                    f"by the revision {self.revision} provider."
                )
        if len(a) != len(b):
            raise LengthMismatchError(len(a), len(b))


class ClipFeaturePrintProvider(EmbeddingProvider):
    """CLIP image features as feature prints, one instance per revision."""

    def __init__(
        self,
        revision: str,
        model: Any,
        processor: Any,
        normalise: bool = False,
    ) -> None:
        self.revision = revision
        self.processor = processor
        self.normalise = normalise
        self._models: dict[str, Any] = {"cpu": model}
        self._lock = threading.Lock()

    def _device_for(self, cpu_only: bool) -> str:
        if cpu_only or not torch.cuda.is_available():
            return "cpu"
        return "cuda"

    def _model_on(self, device: str) -> Any:
        with self._lock:
            model = self._models.get(device)
            if model is None:
                logger.info("Moving revision %s model to %s", self.revision, device)
                model = copy.deepcopy(self._models["cpu"]).to(device)
                self._models[device] = model
            return model

    def extract(self, image: LoadedImage, cpu_only: bool = False) -> FeatureVector:
        device = self._device_for(cpu_only)
        try:
            model = self._model_on(device)
            inputs = self.processor(images=image.pil, return_tensors="pt")
            inputs = {k: v.to(device) for k, v in inputs.items()}

            with torch.no_grad():
                features = model.get_image_features(**inputs)
            # Newer transformers wrap the projected features in a model output.
            if not isinstance(features, torch.Tensor):
                features = features.pooler_output

            vector = features.squeeze(0).float().cpu().numpy()
        except Exception as exc:
            raise ExtractionError(
                f"Revision {self.revision} extraction failed: {type(exc).__name__}: {exc}"
            ) from exc

        if not np.all(np.isfinite(vector)):
            raise ExtractionError(f"Revision {self.revision} produced non-finite features.")

        if self.normalise:
            vector = _l2_normalize(vector)

        return FeatureVector(values=vector, revision=self.revision)

    def distance(self, a: FeatureVector, b: FeatureVector) -> float:
        self._check_comparable(a, b)
        ta = torch.from_numpy(a.values.copy())
        tb = torch.from_numpy(b.values.copy())
        return float(torch.linalg.vector_norm(ta - tb))


def _l2_normalize(vec: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(vec)
    if norm == 0:
        return vec
    return vec / norm


def get_provider(revision: str, registry: ModelRegistry) -> EmbeddingProvider:
    """Build the provider for `revision` from the loaded registry models."""
    if revision not in REVISIONS:
        raise UnknownRevisionError(revision)

    cached = registry.providers.get(revision)
    if cached is not None:
        return cached

    model, processor = registry.for_revision(revision)
    if not model.loaded:
        raise ModelNotReadyError(model.name)
    if not processor.loaded:
        raise ModelNotReadyError(processor.name)

    provider = ClipFeaturePrintProvider(
        revision=revision,
        model=model.instance,
        processor=processor.instance,
        normalise=revision in NORMALISED_REVISIONS,
    )
    registry.providers[revision] = provider
    return provider
