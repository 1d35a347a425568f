"""
triple_inference/relations.py - Relation Property Registry

Per-relation logical flags consulted by the engine:
- transitive: A R B, B R C => A R C
- symmetric:  A R B => B R A
- inverse:    A R B => B R⁻¹ A

The registry is an explicit object handed to each engine at construction;
the engine keeps its own copy, so local overrides never leak back into the
registry or into other engines.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class RelationProperties(BaseModel):
    """Logical properties of a single relation."""

    transitive: bool = Field(default=False, description="A R B, B R C => A R C")
    symmetric: bool = Field(default=False, description="A R B => B R A")
    inverse: Optional[str] = Field(default=None, description="Name of the inverse relation")

    model_config = {"frozen": True, "extra": "ignore"}

    def merged(self, **overrides: Any) -> RelationProperties:
        """Validated copy with the given flags replaced."""
        return RelationProperties(**{**self.model_dump(), **overrides})


NO_PROPERTIES = RelationProperties()


# =============================================================================
# BUILT-IN RELATION TABLE
# =============================================================================

DEFAULT_RELATION_PROPERTIES: dict[str, dict[str, Any]] = {
    # Taxonomy / mereology
    "IS_A": {"transitive": True},
    "PART_OF": {"transitive": True, "inverse": "HAS_PART"},
    "HAS_PART": {"inverse": "PART_OF"},
    "LOCATED_IN": {"transitive": True},
    # Kinship
    "PARENT_OF": {"inverse": "CHILD_OF"},
    "CHILD_OF": {"inverse": "PARENT_OF"},
    "MARRIED_TO": {"symmetric": True},
    "SIBLING_OF": {"symmetric": True},
    # Ordering
    "GREATER_THAN": {"transitive": True, "inverse": "LESS_THAN"},
    "LESS_THAN": {"transitive": True, "inverse": "GREATER_THAN"},
    # Equivalence / exclusion
    "EQUIVALENT_TO": {"symmetric": True, "transitive": True},
    "DISJOINT_WITH": {"symmetric": True},
    # Causality
    "CAUSES": {"inverse": "CAUSED_BY"},
    "CAUSED_BY": {"inverse": "CAUSES"},
}


class RelationRegistry:
    """Relation name -> RelationProperties.

    Example:
        registry = RelationRegistry.default()
        registry.get("IS_A").transitive        # True
        registry.get("UNKNOWN_REL").symmetric  # False
    """

    def __init__(self, properties: Mapping[str, RelationProperties | Mapping[str, Any]] | None = None):
        self._properties: dict[str, RelationProperties] = {}
        for name, props in (properties or {}).items():
            self.set(name, props)

    @classmethod
    def default(cls) -> RelationRegistry:
        """Fresh registry seeded with the built-in relation table."""
        return cls(DEFAULT_RELATION_PROPERTIES)

    @classmethod
    def from_spec(cls, spec: Mapping[str, Any]) -> RelationRegistry:
        """Build from a configuration document with a relation properties section.

        Accepts ``relationProperties`` or ``relation_properties`` keys; a
        document without either yields an empty registry.
        """
        section = spec.get("relationProperties", spec.get("relation_properties")) or {}
        if not isinstance(section, Mapping):
            raise ValueError(f"relation properties must be a mapping, got {type(section).__name__}")
        return cls(section)

    def set(self, name: str, props: RelationProperties | Mapping[str, Any]) -> None:
        if not isinstance(props, RelationProperties):
            props = RelationProperties(**props)
        logger.debug("Relation %s: %s", name, props)
        self._properties[name] = props

    def get(self, name: str) -> RelationProperties:
        """Properties for a relation; unknown relations have none."""
        return self._properties.get(name, NO_PROPERTIES)

    def names(self) -> list[str]:
        return list(self._properties)

    def items(self) -> Iterator[tuple[str, RelationProperties]]:
        return iter(self._properties.items())

    def to_spec(self) -> dict[str, Any]:
        return {
            "relation_properties": {
                name: props.model_dump(exclude_defaults=True)
                for name, props in self._properties.items()
            }
        }

    def __contains__(self, name: str) -> bool:
        return name in self._properties

    def __len__(self) -> int:
        return len(self._properties)
