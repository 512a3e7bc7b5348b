"""Pydantic request models for the Flux Studio API.

Models
------
GenerateRequest
    Payload for ``POST /api/generate`` -- the selected model, the raw form
    values and an optional per-request API key.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        model_id: Provider identifier of a registered model schema.
        input: Raw parameter values keyed by parameter key.  Validated
            against the model's schema; undeclared keys are dropped.
        api_key: fal.ai key for this request.  Falls back to the configured
            ``FLUXSTUDIO_FAL_KEY`` when omitted.
    """

    model_config = ConfigDict(protected_namespaces=())

    model_id: str = Field(
        ...,
        description="Provider model identifier (e.g. 'fal-ai/flux-pro/v1.1').",
    )
    input: dict[str, Any] = Field(
        default_factory=dict,
        description="Raw parameter values keyed by parameter key.",
    )
    api_key: str | None = Field(
        default=None,
        description="fal.ai API key; the configured key is used when omitted.",
    )
