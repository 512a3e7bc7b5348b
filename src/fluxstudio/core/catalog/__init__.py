"""Model catalog.

Importing this package registers every catalog schema with
:data:`fluxstudio.core.model_registry.schema_registry`.
"""

from fluxstudio.core.catalog.flux import FLUX_1_1_PRO, FLUX_1_1_PRO_ULTRA, FLUX_LORA

__all__ = ["FLUX_1_1_PRO", "FLUX_1_1_PRO_ULTRA", "FLUX_LORA"]
