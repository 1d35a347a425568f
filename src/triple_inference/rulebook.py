"""
triple_inference/rulebook.py - Declarative Registries

A Rulebook bundles everything an engine is configured with (relation
properties, composition rules, default rules) as a document that can be
kept in version control.

Features:
- Dict / JSON / YAML persistence
- Installation into an engine, preserving document order
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from .engine import InferenceEngine
from .relations import RelationProperties, RelationRegistry
from .rules import DefaultRule, Rule

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class Rulebook:
    """Relation properties, rules and defaults for an engine.

    Example:
        book = Rulebook.from_yaml("family.yaml")
        engine = InferenceEngine()
        book.install(engine)
    """
    relations: Dict[str, RelationProperties] = field(default_factory=dict)
    rules: List[Rule] = field(default_factory=list)
    defaults: List[DefaultRule] = field(default_factory=list)

    def install(self, engine: InferenceEngine) -> InferenceEngine:
        """Register relation properties, then rules, then defaults."""
        for name, props in self.relations.items():
            engine.set_relation_properties(name, props)
        for rule in self.rules:
            engine.register_rule(rule)
        for default in self.defaults:
            engine.register_default(default)

        logger.info(
            "Installed rulebook: %d relations, %d rules, %d defaults",
            len(self.relations), len(self.rules), len(self.defaults)
        )
        return engine

    def registry(self) -> RelationRegistry:
        """Relation properties as a standalone registry."""
        return RelationRegistry(self.relations)

    @classmethod
    def from_engine(cls, engine: InferenceEngine) -> Rulebook:
        """Snapshot of an engine's registries."""
        return cls(
            relations=dict(engine.relations.items()),
            rules=list(engine.rules),
            defaults=list(engine.defaults),
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Export to dictionary."""
        return {
            "relations": {
                name: props.model_dump(exclude_defaults=True)
                for name, props in self.relations.items()
            },
            "rules": [rule.to_dict() for rule in self.rules],
            "defaults": [default.to_dict() for default in self.defaults],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Rulebook:
        """Import from dictionary.

        Raises:
            ValueError: If a section has the wrong shape or an entry is
                missing required fields
        """
        if not isinstance(data, dict):
            raise ValueError(f"Rulebook must be a mapping, got {type(data).__name__}")

        relations = data.get("relations") or {}
        rules = data.get("rules") or []
        defaults = data.get("defaults") or []
        if not isinstance(relations, dict):
            raise ValueError("Rulebook 'relations' must be a mapping")
        if not isinstance(rules, list) or not isinstance(defaults, list):
            raise ValueError("Rulebook 'rules' and 'defaults' must be lists")

        book = cls()
        for name, props in relations.items():
            if props is None:
                logger.warning("Skipping relation %s with no properties", name)
                continue
            if not isinstance(props, dict):
                raise ValueError(f"Properties of relation {name} must be a mapping")
            book.relations[str(name)] = RelationProperties(**props)

        book.rules = [Rule.from_dict(r) for r in rules]
        book.defaults = [DefaultRule.from_dict(d) for d in defaults]
        return book

    def to_json(self, path: PathLike) -> None:
        """Save to JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_json(cls, path: PathLike) -> Rulebook:
        """Load from JSON file."""
        with open(path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON rulebook {path}: {e}") from e
        return cls.from_dict(data)

    def to_yaml(self, path: PathLike) -> None:
        """Save to YAML file."""
        with open(path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, path: PathLike) -> Rulebook:
        """Load from YAML file."""
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML rulebook {path}: {e}") from e
        return cls.from_dict(data or {})

    @classmethod
    def load(cls, path: PathLike) -> Rulebook:
        """Load from a .json, .yaml or .yml file."""
        suffix = Path(path).suffix.lower()
        if suffix == ".json":
            return cls.from_json(path)
        if suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        raise ValueError(f"Unsupported rulebook format: {suffix or path}")
