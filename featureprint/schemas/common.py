"""
Shared schema primitives reused across endpoints.
"""

from __future__ import annotations

from pydantic import AnyHttpUrl, Base64Bytes, BaseModel, Field, model_validator


class ImageInput(BaseModel):
    """
    A single image to be compared.

    Exactly one of `url` or `data` must be provided.
    `url`: publicly reachable HTTP/HTTPS URL.
    `data`: raw image bytes encoded as standard base64 (no data-URI prefix).
    """

    url: AnyHttpUrl | None = Field(
        default=None,
        description="Publicly reachable HTTP or HTTPS URL of the image.",
        examples=["https://example.com/cat1.jpg"],
    )
    data: Base64Bytes | None = Field(
        default=None,
        description="Raw image bytes encoded as standard base64 (RFC 4648). "
                    "Do NOT include a data-URI prefix (`data:image/...`).",
        examples=["iVBORw0KGgoAAAANSUhEUgAA..."],
    )
    image_id: str | None = Field(
        default=None,
        description="Caller-supplied identifier echoed back in logs. Max 128 chars.",
        max_length=128,
        examples=["cat1"],
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {"url": "https://cdn.example.com/cat1.jpg", "image_id": "cat1"},
            {"data": "<base64-encoded-bytes>", "image_id": "cat2"},
        ]
    }}

    @model_validator(mode="after")
    def exactly_one_source(self) -> "ImageInput":
        if self.url is None and self.data is None:
            raise ValueError("Provide exactly one of `url` or `data`.")
        if self.url is not None and self.data is not None:
            raise ValueError("Provide only one of `url` or `data`, not both.")
        return self

    @property
    def label(self) -> str:
        if self.image_id:
            return self.image_id
        return str(self.url) if self.url is not None else "<base64>"
