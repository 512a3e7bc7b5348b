"""Schema Registry: the in-memory catalog of model schemas.

Every supported provider model is described by a :class:`ModelSchema`.
Catalog modules register their schemas on import, after which the registry
is read-only in practice: schemas are immutable and the registry lives for
the whole process.

Usage Example
-------------
    >>> from fluxstudio.core.model_registry import schema_registry
    >>> schema_registry.list_available()
    ['fal-ai/flux-pro/v1.1', 'fal-ai/flux-pro/v1.1-ultra', 'fal-ai/flux-lora']
    >>> schema = schema_registry.get("fal-ai/flux-lora")
    >>> schema.name
    'Flux LoRA'

See Also
--------
- fluxstudio.core.schema: ModelSchema and ParameterSpec definitions
- fluxstudio.core.catalog: the registered model catalog
"""

import logging
from typing import Any

from .schema import ModelSchema

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Registry for managing available model schemas.

    Schemas are keyed by their provider identifier and kept in registration
    order, which is also the order the catalog is presented in.

    Notes
    -----
    - Registering an id twice logs a warning and replaces the earlier schema
    - Registry is global and shared across the application
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._schemas: dict[str, ModelSchema] = {}

    def register(self, schema: ModelSchema) -> ModelSchema:
        """Register a model schema.

        Args:
            schema: Schema to register

        Returns
        -------
        ModelSchema
            The registered schema, so catalog modules can register inline
        """
        if schema.id in self._schemas:
            logger.warning(f"Model schema '{schema.id}' is already registered, overwriting")

        self._schemas[schema.id] = schema
        logger.debug(f"Registered model schema: {schema.id} ({schema.name})")
        return schema

    def get(self, model_id: str) -> ModelSchema:
        """Look up a schema by provider identifier.

        Args:
            model_id: Provider identifier, e.g. "fal-ai/flux-pro/v1.1"

        Returns
        -------
        ModelSchema
            The registered schema

        Raises
        ------
        KeyError
            If model_id is not registered
        """
        if model_id not in self._schemas:
            available = ", ".join(self.list_available())
            raise KeyError(f"Model '{model_id}' not found. Available models: {available}")
        return self._schemas[model_id]

    def find(self, model_id: str) -> ModelSchema | None:
        return self._schemas.get(model_id)

    def list_available(self) -> list[str]:
        """List all registered model identifiers in registration order."""
        return list(self._schemas.keys())

    def list_schemas(self) -> list[ModelSchema]:
        return list(self._schemas.values())

    def get_model_info(self, model_id: str) -> dict[str, Any] | None:
        """Get a JSON-ready description of a registered schema.

        Args:
            model_id: Provider identifier

        Returns
        -------
        dict[str, Any] | None
            Serialised schema or None if not found
        """
        schema = self._schemas.get(model_id)
        if schema is None:
            return None
        return schema.model_dump(mode="json", exclude_none=True)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)


# Global schema registry instance
schema_registry = SchemaRegistry()
