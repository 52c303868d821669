"""
Model pre-download script — run once while building the container image.

Fetches the CLIP checkpoint behind every feature print revision into the
model cache so the service starts without network access.

This script must be runnable standalone (no featureprint imports).
"""

from __future__ import annotations

import os
import sys

MODELS_DIR = os.environ.get("MODELS_DIR", "/app/models_cache")
REVISION_MODELS = {
    "1": os.environ.get("CLIP_REV1_MODEL_NAME", "openai/clip-vit-base-patch32"),
    "2": os.environ.get("CLIP_REV2_MODEL_NAME", "openai/clip-vit-base-patch16"),
}

print(f"[download_models] Model cache dir: {MODELS_DIR}", flush=True)


def download_clip(revision: str, model_name: str) -> None:
    print(f"[download_models] Revision {revision}: downloading {model_name}", flush=True)
    from transformers import CLIPModel, CLIPProcessor  # type: ignore

    CLIPProcessor.from_pretrained(model_name, cache_dir=MODELS_DIR)
    CLIPModel.from_pretrained(model_name, cache_dir=MODELS_DIR)
    print(f"[download_models] Revision {revision} done.", flush=True)


if __name__ == "__main__":
    errors: list[str] = []

    for revision, model_name in REVISION_MODELS.items():
        try:
            download_clip(revision, model_name)
        except Exception as exc:
            print(f"[download_models] ERROR for revision {revision}: {exc}",
                  file=sys.stderr, flush=True)
            errors.append(str(exc))

    if errors:
        print(f"[download_models] {len(errors)} model(s) failed to download.", file=sys.stderr)
        sys.exit(1)

    print("[download_models] All models downloaded successfully.", flush=True)
