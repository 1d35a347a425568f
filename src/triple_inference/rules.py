"""
triple_inference/rules.py - Composition and Default Rules

Two kinds of user-registered knowledge:
- Rule: head <- body, a Horn clause over triple patterns
  (e.g. ?x GRANDPARENT_OF ?z <- ?x PARENT_OF ?y, ?y PARENT_OF ?z)
- DefaultRule: a defeasible generalisation with exceptions
  (e.g. birds CAN fly, unless Penguin or Ostrich)

Rules are not validated beyond their shape: a rule with inconsistent
variables simply never matches.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .terms import Pattern, normalize


@dataclass(frozen=True)
class Rule:
    """Composition rule: head is true if every body pattern holds.

    Example:
        Rule(
            name="grandparent",
            head=Pattern("?x", "GRANDPARENT_OF", "?z"),
            body=(
                Pattern("?x", "PARENT_OF", "?y"),
                Pattern("?y", "PARENT_OF", "?z"),
            ),
        )
    """
    name: str
    head: Pattern
    body: tuple[Pattern, ...] = ()

    def __post_init__(self):
        # Accept any sequence for the body
        object.__setattr__(self, "body", tuple(self.body))

    @property
    def relation(self) -> str:
        return self.head.relation

    def variables(self) -> set[str]:
        result = self.head.variables()
        for pattern in self.body:
            result.update(pattern.variables())
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Rule:
        if "head" not in data:
            raise ValueError(f"Rule is missing 'head': {dict(data)}")
        head = Pattern.from_dict(data["head"])
        body = [Pattern.from_dict(p) for p in data.get("body") or []]
        return cls(name=str(data.get("name") or head.relation), head=head, body=tuple(body))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "head": self.head.to_dict(),
            "body": [p.to_dict() for p in self.body],
        }

    def __repr__(self) -> str:
        body_str = ", ".join(repr(p) for p in self.body)
        return f"{self.name}: {self.head!r} :- {body_str}."


@dataclass(frozen=True)
class DefaultRule:
    """Non-monotonic rule: typical members of a type have a property.

    Applies to a query ``subject property value`` when the subject is a
    ``typical_type`` and none of the ``exceptions`` types.

    Example:
        DefaultRule(
            name="birds_fly",
            typical_type="Bird",
            property="CAN",
            value="fly",
            exceptions=("Penguin", "Ostrich"),
        )
    """
    name: str
    typical_type: str
    property: str
    value: str
    exceptions: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "exceptions", tuple(self.exceptions))

    @property
    def has_exceptions(self) -> bool:
        return len(self.exceptions) > 0

    def applies_to(self, relation: str, obj: str) -> bool:
        """True if this default concludes ``? relation obj``."""
        return self.property == relation and normalize(self.value) == normalize(obj)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DefaultRule:
        try:
            typical_type = data.get("typical_type", data.get("typicalType"))
            if typical_type is None:
                raise KeyError("typical_type")
            return cls(
                name=str(data.get("name") or f"{typical_type}_{data['property']}_{data['value']}"),
                typical_type=str(typical_type),
                property=str(data["property"]),
                value=str(data["value"]),
                exceptions=tuple(str(e) for e in data.get("exceptions") or ()),
            )
        except KeyError as e:
            raise ValueError(f"Default rule is missing field {e.args[0]!r}: {dict(data)}") from None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "typical_type": self.typical_type,
            "property": self.property,
            "value": self.value,
            "exceptions": list(self.exceptions),
        }
