"""
triple_inference/terms.py - Triples and Patterns

The fundamental structures the engine reasons over:
- Fact: a ground subject-relation-object triple supplied by the caller
- Pattern: a triple whose subject/object may be variables (``?x``)

Subjects and objects compare case-insensitively (trimmed, lowercased);
relations compare exactly.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

VARIABLE_PREFIX = "?"


def is_variable(value: Any) -> bool:
    """True if value is a variable name such as ``?x``.

    A bare ``?`` or a question such as ``?what now`` is a constant.
    """
    return (
        isinstance(value, str)
        and value.startswith(VARIABLE_PREFIX)
        and value[1:].isidentifier()
    )


def normalize(value: Any) -> str:
    """Comparison form of a subject or object."""
    return str(value).strip().lower()


def triple_key(subject: Any, relation: str, obj: Any) -> str:
    """Dedupe/cycle key ``subject|relation|object`` in comparison form."""
    return f"{normalize(subject)}|{relation}|{normalize(obj)}"


@dataclass(frozen=True)
class Fact:
    """A stored triple.

    Subject and object are always constants, even when they start with
    ``?``. Facts are owned by the caller; the engine only reads them.
    Extra fields the caller attaches (source, timestamps, ...) travel in
    ``extra`` and are ignored for equality.

    Example:
        Fact("Tweety", "IS_A", "Bird")
        Fact("A", "ANCESTOR_OF", "C", derived_by="ancestor_rec")
    """
    subject: str
    relation: str
    object: str
    derived_by: str | None = field(default=None, compare=False)
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> str:
        return triple_key(self.subject, self.relation, self.object)

    def matches(self, subject: Any, relation: str, obj: Any) -> bool:
        """Case-insensitive comparison against a concrete triple."""
        return (
            self.relation == relation
            and normalize(self.subject) == normalize(subject)
            and normalize(self.object) == normalize(obj)
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Fact:
        try:
            subject = data["subject"]
            relation = data["relation"]
            obj = data["object"]
        except KeyError as e:
            raise ValueError(f"Fact is missing field {e.args[0]!r}: {dict(data)}") from None
        extra = {
            k: v for k, v in data.items()
            if k not in ("subject", "relation", "object", "derived_by", "derivedBy")
        }
        derived_by = data.get("derived_by", data.get("derivedBy"))
        return cls(str(subject), str(relation), str(obj), derived_by=derived_by, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "subject": self.subject,
            "relation": self.relation,
            "object": self.object,
        }
        if self.derived_by:
            data["derived_by"] = self.derived_by
        data.update(self.extra)
        return data

    def __str__(self) -> str:
        return f"{self.subject} {self.relation} {self.object}"


@dataclass(frozen=True)
class Pattern:
    """A triple pattern used in rule heads and bodies.

    Subject and object are either constants or variables; the relation is
    always a constant.

    Example:
        # ?x PARENT_OF ?y
        Pattern("?x", "PARENT_OF", "?y")
    """
    subject: str
    relation: str
    object: str

    def variables(self) -> set[str]:
        """Variable names occurring in the pattern."""
        return {v for v in (self.subject, self.object) if is_variable(v)}

    def is_ground(self) -> bool:
        return not is_variable(self.subject) and not is_variable(self.object)

    def to_fact(self, derived_by: str | None = None) -> Fact:
        """Ground pattern as a Fact."""
        if not self.is_ground():
            raise ValueError(f"Pattern must be ground, got: {self!r}")
        return Fact(self.subject, self.relation, self.object, derived_by=derived_by)

    @property
    def key(self) -> str:
        return triple_key(self.subject, self.relation, self.object)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Pattern:
        try:
            return cls(str(data["subject"]), str(data["relation"]), str(data["object"]))
        except KeyError as e:
            raise ValueError(f"Pattern is missing field {e.args[0]!r}: {dict(data)}") from None

    def to_dict(self) -> dict[str, str]:
        return {"subject": self.subject, "relation": self.relation, "object": self.object}

    def __repr__(self) -> str:
        return f"({self.subject} {self.relation} {self.object})"


FactLike = Fact | Mapping[str, Any]


def as_facts(facts: Iterable[FactLike]) -> tuple[Fact, ...]:
    """Coerce a caller's fact sequence into Facts, preserving order.

    The input is never mutated; Fact instances pass through unchanged.
    """
    return tuple(f if isinstance(f, Fact) else Fact.from_dict(f) for f in facts)
