"""
Shared pytest fixtures.

Strategy: we never load actual ML models in tests.
The model registry is populated with deterministic CLIP stand-ins: the
processor downsamples the image to an 8x8 RGB grid and the model returns the
flattened grid as the "image features".  Identical images therefore produce
identical feature prints, and distinct colours produce distinct ones.
"""

from __future__ import annotations

import base64
import io
from typing import Any, Iterator

import numpy as np
import pytest
import torch
from fastapi.testclient import TestClient
from PIL import Image

from featureprint.core.config import get_settings
from featureprint.models.registry import LoadedModel, ModelRegistry, set_registry


# ------------------------------------------------------------------ #
# Mock model instances
# ------------------------------------------------------------------ #

class MockCLIPProcessor:
    def __call__(self, images: Any, return_tensors: str = "pt") -> dict[str, Any]:
        grid = np.asarray(images.convert("RGB").resize((8, 8)), dtype=np.float32) / 255.0
        pixel_values = torch.from_numpy(grid).permute(2, 0, 1).unsqueeze(0)
        return {"pixel_values": pixel_values}


class MockCLIPModel:
    def get_image_features(self, pixel_values: Any) -> Any:
        return pixel_values.flatten(1)

    def to(self, device: str) -> "MockCLIPModel":
        return self


# ------------------------------------------------------------------ #
# Mock registry
# ------------------------------------------------------------------ #

def make_mock_registry() -> ModelRegistry:
    r = ModelRegistry()
    for revision in ("1", "2"):
        setattr(r, f"clip_rev{revision}", LoadedModel(
            f"clip_rev{revision}", instance=MockCLIPModel(), loaded=True, load_time_ms=10.0
        ))
        setattr(r, f"clip_rev{revision}_processor", LoadedModel(
            f"clip_rev{revision}_processor", instance=MockCLIPProcessor(),
            loaded=True, load_time_ms=5.0,
        ))
    return r


@pytest.fixture
def mock_registry() -> Iterator[ModelRegistry]:
    registry = make_mock_registry()
    set_registry(registry)
    yield registry
    set_registry(None)


def _make_client(
    monkeypatch: pytest.MonkeyPatch, registry: ModelRegistry, api_key: str
) -> Iterator[TestClient]:
    monkeypatch.setenv("API_KEY", api_key)
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
    monkeypatch.setenv("PRELOAD_MODELS", "false")
    monkeypatch.setenv("LOG_JSON", "false")
    get_settings.cache_clear()

    from featureprint.main import create_app

    with TestClient(create_app(), raise_server_exceptions=False) as c:
        yield c

    get_settings.cache_clear()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, mock_registry: ModelRegistry) -> Iterator[TestClient]:
    """TestClient in open mode with the mock registry installed."""
    yield from _make_client(monkeypatch, mock_registry, api_key="")


@pytest.fixture
def authed_client(
    monkeypatch: pytest.MonkeyPatch, mock_registry: ModelRegistry
) -> Iterator[TestClient]:
    """TestClient with API_KEY=test-secret enforced."""
    yield from _make_client(monkeypatch, mock_registry, api_key="test-secret")


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ------------------------------------------------------------------ #
# Image helpers
# ------------------------------------------------------------------ #

def png_bytes(color: str | tuple[int, int, int], size: tuple[int, int] = (16, 16)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format="PNG")
    return buffer.getvalue()


def png_b64(color: str | tuple[int, int, int], size: tuple[int, int] = (16, 16)) -> str:
    return base64.b64encode(png_bytes(color, size)).decode("ascii")


@pytest.fixture
def red_png_b64() -> str:
    return png_b64("red")


@pytest.fixture
def blue_png_b64() -> str:
    return png_b64("blue")


@pytest.fixture
def not_an_image_b64() -> str:
    return base64.b64encode(b"definitely not an image").decode("ascii")
