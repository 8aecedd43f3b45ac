"""Shared base model and enumerations for API records."""

from typing import Literal

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

Complexity = Literal["simple", "moderate", "complex"]

# Ordinal used by both complexity filters and sorting
COMPLEXITY_ORDER: dict[str, int] = {"simple": 1, "moderate": 2, "complex": 3}


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }
