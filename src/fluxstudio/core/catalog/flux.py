"""Flux text-to-image models served by fal.ai."""

from fluxstudio.core.model_registry import schema_registry
from fluxstudio.core.schema import ModelSchema

IMAGE_SIZES = [
    "square_hd",
    "square",
    "portrait_4_3",
    "portrait_16_9",
    "landscape_4_3",
    "landscape_16_9",
]

# Shared by every Flux endpoint.
FLUX_OUTPUT_SCHEMA = [
    {
        "key": "images",
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "url": {"type": "string"},
                "width": {"type": "number"},
                "height": {"type": "number"},
                "content_type": {"type": "string"},
            },
        },
    },
    {"key": "seed", "type": "number"},
    {"key": "has_nsfw_concepts", "type": "array", "items": {"type": "boolean"}},
]

_SAFETY_TOLERANCE = {
    "key": "safety_tolerance",
    "type": "enum",
    "default": "6",
    "options": ["1", "2", "3", "4", "5", "6"],
}

_OUTPUT_FORMAT = {
    "key": "output_format",
    "type": "enum",
    "default": "jpeg",
    "options": ["jpeg", "png"],
}

FLUX_1_1_PRO = schema_registry.register(
    ModelSchema.model_validate(
        {
            "name": "Flux 1.1 Pro",
            "id": "fal-ai/flux-pro/v1.1",
            "input_schema": [
                {"key": "prompt", "type": "string", "required": True},
                {
                    "key": "image_size",
                    "type": "enum",
                    "default": "portrait_4_3",
                    "options": IMAGE_SIZES,
                },
                {"key": "sync_mode", "type": "boolean", "default": False},
                {"key": "num_images", "type": "number", "default": 1},
                {"key": "enable_safety_checker", "type": "boolean", "default": False},
                _SAFETY_TOLERANCE,
                _OUTPUT_FORMAT,
                {"key": "seed", "type": "number"},
            ],
            "output_schema": FLUX_OUTPUT_SCHEMA,
        }
    )
)

FLUX_1_1_PRO_ULTRA = schema_registry.register(
    ModelSchema.model_validate(
        {
            "name": "Flux 1.1 Pro Ultra",
            "id": "fal-ai/flux-pro/v1.1-ultra",
            "input_schema": [
                {"key": "prompt", "type": "string", "required": True},
                {
                    "key": "aspect_ratio",
                    "type": "enum",
                    "default": "16:9",
                    "options": ["21:9", "16:9", "4:3", "1:1", "3:4", "9:16", "9:21"],
                },
                {"key": "sync_mode", "type": "boolean", "default": False},
                {"key": "num_images", "type": "number", "default": 1},
                {"key": "enable_safety_checker", "type": "boolean", "default": False},
                _SAFETY_TOLERANCE,
                _OUTPUT_FORMAT,
                {"key": "raw", "type": "boolean"},
                {"key": "seed", "type": "number"},
            ],
            "output_schema": FLUX_OUTPUT_SCHEMA,
        }
    )
)

FLUX_LORA = schema_registry.register(
    ModelSchema.model_validate(
        {
            "name": "Flux LoRA",
            "id": "fal-ai/flux-lora",
            "input_schema": [
                {"key": "prompt", "type": "string", "required": True},
                {
                    "key": "image_size",
                    "type": "enum",
                    "default": "landscape_4_3",
                    "options": IMAGE_SIZES,
                },
                {
                    "key": "num_inference_steps",
                    "type": "number",
                    "default": 35,
                    "validation": {"min": 1, "max": 50},
                },
                {
                    "key": "guidance_scale",
                    "type": "number",
                    "default": 3.5,
                    "validation": {"min": 1, "max": 10},
                },
                {"key": "seed", "type": "number"},
                {
                    "key": "loras",
                    "type": "array",
                    "description": "LoRA weights to use for image generation",
                    "items": {
                        "type": "object",
                        "properties": {
                            "path": {
                                "type": "string",
                                "description": "URL or path to the LoRA weights",
                            },
                            "scale": {
                                "type": "number",
                                "description": "Scale factor for the LoRA weight (0 to 2)",
                                "validation": {"min": 0, "max": 2},
                                "default": 1,
                            },
                        },
                    },
                },
                {"key": "sync_mode", "type": "boolean", "default": False},
                {"key": "num_images", "type": "number", "default": 1},
                {"key": "enable_safety_checker", "type": "boolean", "default": True},
                _OUTPUT_FORMAT,
            ],
            "output_schema": FLUX_OUTPUT_SCHEMA,
        }
    )
)
