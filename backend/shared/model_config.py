"""
Model catalog configuration for the vARY generation gateway.

The catalog is a YAML file with a ``model_list``. Each entry is tagged by
its ``provider`` family and validated against a closed schema for that
family, so a typo in a model entry fails at load time rather than at
generation time.

Example:

    model_list:
      - model_name: nano-banana
        provider: google
        model_id: gemini-2.5-flash-image-preview
        cost_per_generation: "0.0398"
        allowed_tiers: [free, light, heavy]
"""

from decimal import Decimal
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, TypeAdapter


class _CatalogEntry(BaseModel):
    """Fields shared by every provider family."""

    model_config = {"frozen": True, "extra": "forbid"}

    model_name: str
    cost_per_generation: Decimal = Field(..., ge=0)
    allowed_tiers: tuple[str, ...] = ("free", "light", "heavy")
    min_level: Optional[int] = Field(default=None, ge=1)
    generation_type: Literal["image", "video", "character_variation"] = "image"
    is_active: bool = True


class FalModelConfig(_CatalogEntry):
    """A model served through the FAL queue API."""

    provider: Literal["fal"]
    endpoint: str = Field(..., description="FAL application path, e.g. fal-ai/veo3/fast")


class ReplicateModelConfig(_CatalogEntry):
    """A model served through Replicate predictions."""

    provider: Literal["replicate"]
    model_ref: str = Field(..., description="owner/name on Replicate")
    version: Optional[str] = None


class GoogleModelConfig(_CatalogEntry):
    """A Gemini model called through the Generative Language API."""

    provider: Literal["google"]
    model_id: str


ModelConfig = Annotated[
    Union[FalModelConfig, ReplicateModelConfig, GoogleModelConfig],
    Field(discriminator="provider"),
]

_model_list_adapter = TypeAdapter(list[ModelConfig])


def parse_model_list(model_list: list[dict]) -> dict[str, ModelConfig]:
    """Parse model_list entries into a dict keyed by model_name.

    Args:
        model_list: List of model entries from YAML

    Returns:
        Dictionary mapping model_name to its provider-specific config

    Raises:
        pydantic.ValidationError: If an entry has an unknown provider,
            a missing field, or an unexpected key
        ValueError: If a model_name appears twice
    """
    configs = _model_list_adapter.validate_python(model_list)
    models: dict[str, ModelConfig] = {}
    for config in configs:
        if config.model_name in models:
            raise ValueError(f"Duplicate model_name in catalog: {config.model_name}")
        models[config.model_name] = config
    return models


def load_model_catalog(catalog_path: Path) -> dict[str, ModelConfig]:
    """Load the model catalog from a YAML file.

    Raises:
        FileNotFoundError: If the catalog file doesn't exist
        yaml.YAMLError: If the file is invalid YAML
    """
    with open(catalog_path) as f:
        data = yaml.safe_load(f) or {}

    return parse_model_list(data.get("model_list", []))
