"""
Model registry — single source of truth for the loaded feature print models.

Models are loaded exactly once at application startup via the `lifespan`
context manager in `main.py`.  Route handlers retrieve them through
`get_registry()`; no model is ever constructed inside a request handler.

Each algorithm revision owns a CLIP model + processor pair.  A revision that
fails to load leaves the service running in degraded mode: comparisons on
the other revision keep working.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

REVISIONS = ("1", "2")


@dataclass
class LoadedModel:
    name: str
    instance: Any | None = None
    loaded: bool = False
    load_time_ms: float | None = None
    error: str | None = None


@dataclass
class ModelRegistry:
    """Container for the per-revision CLIP model instances."""

    clip_rev1: LoadedModel = field(default_factory=lambda: LoadedModel("clip_rev1"))
    clip_rev1_processor: LoadedModel = field(
        default_factory=lambda: LoadedModel("clip_rev1_processor")
    )
    clip_rev2: LoadedModel = field(default_factory=lambda: LoadedModel("clip_rev2"))
    clip_rev2_processor: LoadedModel = field(
        default_factory=lambda: LoadedModel("clip_rev2_processor")
    )
    # Embedding providers built on top of the models, keyed by revision.
    providers: dict[str, Any] = field(default_factory=dict, repr=False)

    def all_models(self) -> list[LoadedModel]:
        return [
            self.clip_rev1,
            self.clip_rev1_processor,
            self.clip_rev2,
            self.clip_rev2_processor,
        ]

    def for_revision(self, revision: str) -> tuple[LoadedModel, LoadedModel]:
        """Return the (model, processor) pair backing `revision`."""
        return (
            getattr(self, f"clip_rev{revision}"),
            getattr(self, f"clip_rev{revision}_processor"),
        )

    def overall_status(self) -> str:
        statuses = [m.loaded for m in self.all_models()]
        if all(statuses):
            return "ok"
        if any(statuses):
            return "degraded"
        return "unhealthy"


# Module-level singleton — populated during startup lifespan.
_registry: ModelRegistry | None = None


def get_registry() -> ModelRegistry:
    if _registry is None:
        raise RuntimeError(
            "ModelRegistry has not been initialised. "
            "Ensure `load_all_models()` is called inside the lifespan handler."
        )
    return _registry


def set_registry(registry: ModelRegistry | None) -> None:
    global _registry
    _registry = registry


def load_all_models(settings: Any) -> ModelRegistry:
    """
    Load both feature print revisions and return a populated ModelRegistry.
    Failures are logged but do not raise — the service starts in degraded mode.
    """
    registry = ModelRegistry()

    for revision in REVISIONS:
        _load_clip(registry, revision, settings)

    set_registry(registry)
    loaded = sum(1 for m in registry.all_models() if m.loaded)
    total = len(registry.all_models())
    logger.info("Model loading complete: %d/%d models ready", loaded, total)
    return registry


def _timed_load(fn: Any, *args: Any, **kwargs: Any) -> tuple[Any, float]:
    t0 = time.perf_counter()
    result = fn(*args, **kwargs)
    elapsed_ms = (time.perf_counter() - t0) * 1000
    return result, elapsed_ms


def _load_clip(registry: ModelRegistry, revision: str, settings: Any) -> None:
    model_attr = f"clip_rev{revision}"
    processor_attr = f"clip_rev{revision}_processor"
    model_name = settings.checkpoint_for(revision)

    try:
        from transformers import CLIPModel, CLIPProcessor  # type: ignore

        logger.info("Loading CLIP model for revision %s: %s", revision, model_name)
        model, ms = _timed_load(
            CLIPModel.from_pretrained,
            model_name,
            cache_dir=settings.models_dir,
        )
        model.eval()
        setattr(registry, model_attr, LoadedModel(
            name=model_attr, instance=model, loaded=True, load_time_ms=ms
        ))

        processor, ms2 = _timed_load(
            CLIPProcessor.from_pretrained,
            model_name,
            cache_dir=settings.models_dir,
        )
        setattr(registry, processor_attr, LoadedModel(
            name=processor_attr, instance=processor, loaded=True, load_time_ms=ms2
        ))
        logger.info("Revision %s loaded in %.0f ms", revision, ms + ms2)
    except Exception as exc:
        err = str(exc)
        logger.error("Failed to load CLIP for revision %s: %s", revision, err)
        setattr(registry, model_attr, LoadedModel(name=model_attr, error=err))
        setattr(registry, processor_attr, LoadedModel(name=processor_attr, error=err))
