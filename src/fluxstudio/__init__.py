"""Flux Studio - schema-driven Flux image generation with reconciled history."""

__version__ = "0.1.0"

from fluxstudio.core.config import FluxStudioConfig, config
from fluxstudio.core.model_registry import schema_registry

# Import the catalog to ensure the models are registered
from fluxstudio.core import catalog  # noqa: F401

__all__ = [
    "FluxStudioConfig",
    "config",
    "schema_registry",
]
