"""Core functionality: model schemas, request validation and generation.

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with FLUXSTUDIO_ in .env files

2. **Schema Layer** (schema.py, model_registry.py, catalog/):
   - Declarative ParameterSpec / ModelSchema definitions
   - Global schema_registry populated by the catalog on import

3. **Request Layer** (validation.py):
   - Schema-driven validation and default filling

4. **Provider Layer** (invoker.py):
   - fal.ai queue submission, progress relay and error classification

Usage Example
-------------
    from fluxstudio.core import schema_registry, build_request, GenerationInvoker

    schema = schema_registry.get("fal-ai/flux-pro/v1.1")
    parameters = build_request(schema, {"prompt": "a lighthouse at dusk"})
    result = await GenerationInvoker().invoke(schema, parameters, api_key=key)
"""

# Import the catalog to ensure the models are registered
from fluxstudio.core import catalog  # noqa: F401
from fluxstudio.core.config import FluxStudioConfig, config
from fluxstudio.core.invoker import (
    GenerationFailure,
    GenerationInvoker,
    GenerationSuccess,
    ProgressUpdate,
    classify_provider_error,
)
from fluxstudio.core.model_registry import SchemaRegistry, schema_registry
from fluxstudio.core.schema import ModelSchema, ParameterSpec
from fluxstudio.core.validation import ParameterValidationError, build_request, validate_request

__all__ = [
    "FluxStudioConfig",
    "GenerationFailure",
    "GenerationInvoker",
    "GenerationSuccess",
    "ModelSchema",
    "ParameterSpec",
    "ParameterValidationError",
    "ProgressUpdate",
    "SchemaRegistry",
    "build_request",
    "classify_provider_error",
    "config",
    "schema_registry",
    "validate_request",
]
