"""
triple_inference/dsl.py - Fluent API and Inference Commands

Provides a fluent API for building a fact set and the engine's registries,
plus the textual inference commands a DSL host exposes.

Example:
    from triple_inference.dsl import InferenceDSL, X, Y, Z

    r = InferenceDSL()

    # Facts
    r.fact("Alice", "PARENT_OF", "Bob")
    r.fact("Bob", "PARENT_OF", "Carol")

    # Rules
    r.rule("GRANDPARENT_OF", X, Z) \
        .when("PARENT_OF", X, Y) \
        .and_("PARENT_OF", Y, Z) \
        .named("grandparent") \
        .done()

    # Defaults
    r.default("birds_fly").typical("Bird").has("CAN", "fly").unless("Penguin").done()

    # Query
    r.infer("Alice", "GRANDPARENT_OF", "Carol").truth   # TRUE_CERTAIN
    print(r.why("Alice", "GRANDPARENT_OF", "Carol"))

    # Commands
    r.command("INFER Alice GRANDPARENT_OF Carol proof=true")
    r.command("FORWARD_CHAIN maxIterations=10")
"""
from __future__ import annotations

import logging
import shlex
from typing import Any, Dict, List, Optional

from .engine import InferenceEngine
from .proof import InferenceResult, ProofChain, TruthValue
from .rules import DefaultRule, Rule
from .terms import Fact, Pattern

logger = logging.getLogger(__name__)


# Common variables for rule building
X = "?x"
Y = "?y"
Z = "?z"
A = "?a"
B = "?b"
C = "?c"


class RuleBuilder:
    """Fluent builder for composition rules."""

    def __init__(self, dsl: 'InferenceDSL', relation: str, subject: str, obj: str):
        self.dsl = dsl
        self.head = Pattern(subject, relation, obj)
        self.body: List[Pattern] = []
        self._name: Optional[str] = None

    def when(self, relation: str, subject: str, obj: str) -> 'RuleBuilder':
        """Add first condition."""
        self.body.append(Pattern(subject, relation, obj))
        return self

    def and_(self, relation: str, subject: str, obj: str) -> 'RuleBuilder':
        """Add another condition (AND)."""
        self.body.append(Pattern(subject, relation, obj))
        return self

    def named(self, name: str) -> 'RuleBuilder':
        """Set rule name."""
        self._name = name
        return self

    def done(self) -> Rule:
        """Finalize and register the rule."""
        rule = Rule(
            name=self._name or f"{self.head.relation}_rule_{len(self.dsl.engine.rules) + 1}",
            head=self.head,
            body=tuple(self.body),
        )
        return self.dsl.engine.register_rule(rule)


class DefaultBuilder:
    """Fluent builder for default rules."""

    def __init__(self, dsl: 'InferenceDSL', name: str):
        self.dsl = dsl
        self.name = name
        self._typical_type: Optional[str] = None
        self._property: Optional[str] = None
        self._value: Optional[str] = None
        self._exceptions: List[str] = []

    def typical(self, typical_type: str) -> 'DefaultBuilder':
        """Set the type whose typical members have the property."""
        self._typical_type = typical_type
        return self

    def has(self, property: str, value: str) -> 'DefaultBuilder':
        """Set the concluded relation and object."""
        self._property = property
        self._value = value
        return self

    def unless(self, *exceptions: str) -> 'DefaultBuilder':
        """Add exception types."""
        self._exceptions.extend(exceptions)
        return self

    def done(self) -> DefaultRule:
        """Finalize and register the default."""
        if self._typical_type is None or self._property is None or self._value is None:
            raise ValueError(f"Default {self.name!r} needs typical() and has() before done()")
        default = DefaultRule(
            name=self.name,
            typical_type=self._typical_type,
            property=self._property,
            value=self._value,
            exceptions=tuple(self._exceptions),
        )
        return self.dsl.engine.register_default(default)


class InferenceDSL:
    """Facts plus an engine, with a fluent, Pythonic API."""

    def __init__(self, engine: Optional[InferenceEngine] = None):
        """Initialize DSL.

        Args:
            engine: Existing engine (creates new if None)
        """
        self.engine = engine or InferenceEngine()
        self.facts: List[Fact] = []

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def fact(self, subject: str, relation: str, obj: str, **extra: Any) -> Fact:
        """Add a fact; keyword arguments are kept as extra fields."""
        fact = Fact(subject, relation, obj, extra=extra)
        self.facts.append(fact)
        return fact

    def relation(self, name: str, **properties: Any) -> None:
        """Set relation properties, e.g. ``relation("MARRIED_TO", symmetric=True)``."""
        self.engine.set_relation_properties(name, **properties)

    def rule(self, relation: str, subject: str, obj: str) -> RuleBuilder:
        """Start building a rule.

        Example:
            r.rule("ANCESTOR_OF", X, Z).when("PARENT_OF", X, Z).done()
        """
        return RuleBuilder(self, relation, subject, obj)

    def default(self, name: str) -> DefaultBuilder:
        """Start building a default rule."""
        return DefaultBuilder(self, name)

    # -------------------------------------------------------------------------
    # Querying
    # -------------------------------------------------------------------------

    def infer(self, subject: str, relation: str, obj: str, **options: Any) -> InferenceResult:
        return self.engine.infer(subject, relation, obj, self.facts, **options)

    def prove(self, subject: str, relation: str, obj: str, **options: Any) -> Optional[ProofChain]:
        return self.engine.prove(subject, relation, obj, self.facts, **options)

    def holds(self, subject: str, relation: str, obj: str) -> bool:
        """True if the triple is certainly or defeasibly true."""
        truth = self.infer(subject, relation, obj).truth
        return truth in (TruthValue.TRUE_CERTAIN, TruthValue.TRUE_DEFAULT)

    def why(self, subject: str, relation: str, obj: str) -> str:
        """Human-readable explanation of a query."""
        return explain(subject, relation, obj, self.infer(subject, relation, obj))

    def derive_all(self, max_iterations: Optional[int] = None,
                   materialize: bool = False) -> List[Fact]:
        """Run forward chaining.

        Args:
            max_iterations: Maximum iterations (default: settings)
            materialize: Append the derived facts to this DSL's facts

        Returns:
            List of newly derived facts
        """
        derived = self.engine.forward_chain(self.facts, max_iterations)
        if materialize:
            self.facts.extend(derived)
        return derived

    def clear(self) -> None:
        """Drop all facts (registries are kept)."""
        self.facts.clear()

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def command(self, line: str) -> Dict[str, Any]:
        """Run a textual inference command.

        Supported:
            INFER Subject Relation Object [method=M] [maxDepth=N] [proof=true]
            WHY Subject Relation Object
            FORWARD_CHAIN [maxIterations=N]

        Raises:
            ValueError: For unknown verbs or missing arguments
        """
        tokens = shlex.split(line)
        if not tokens:
            raise ValueError("Empty command")

        verb, args = tokens[0].upper(), tokens[1:]
        logger.debug("Command %s %s", verb, args)
        if verb == "INFER":
            return self._cmd_infer(args)
        if verb == "WHY":
            return self._cmd_why(args)
        if verb == "FORWARD_CHAIN":
            return self._cmd_forward_chain(args)
        raise ValueError(f"Unknown command: {tokens[0]}")

    def _cmd_infer(self, args: List[str]) -> Dict[str, Any]:
        if len(args) < 3:
            raise ValueError("INFER expects Subject Relation Object")

        subject, relation = args[0], args[1]
        object_parts: List[str] = []
        options: Dict[str, Any] = {}
        include_proof = False

        for arg in args[2:]:
            if arg.startswith("method="):
                options["methods"] = [arg.split("=", 1)[1]]
            elif arg.startswith("maxDepth="):
                options["max_depth"] = _parse_int(arg)
            elif arg == "proof=true":
                include_proof = True
            else:
                object_parts.append(arg)

        if not object_parts:
            raise ValueError("INFER expects Subject Relation Object")

        obj = " ".join(object_parts)
        result = self.infer(subject, relation, obj, **options)
        response: Dict[str, Any] = {
            "truth": result.truth.value,
            "method": result.method,
            "confidence": result.confidence,
            "query": {"subject": subject, "relation": relation, "object": obj},
        }
        if include_proof:
            response["proof"] = result.proof.to_dict() if result.proof else None
        return response

    def _cmd_why(self, args: List[str]) -> Dict[str, Any]:
        if len(args) < 3:
            raise ValueError("WHY expects Subject Relation Object")

        subject, relation, obj = args[0], args[1], " ".join(args[2:])
        result = self.infer(subject, relation, obj)
        return {
            "explanation": explain(subject, relation, obj, result),
            "truth": result.truth.value,
            "proof": result.proof.to_dict() if result.proof else None,
            "query": {"subject": subject, "relation": relation, "object": obj},
        }

    def _cmd_forward_chain(self, args: List[str]) -> Dict[str, Any]:
        max_iterations = None
        for arg in args:
            if arg.startswith("maxIterations="):
                max_iterations = _parse_int(arg)

        derived = self.engine.forward_chain(self.facts, max_iterations)
        return {
            "derived": [f.to_dict() for f in derived],
            "count": len(derived),
            "original_count": len(self.facts),
        }


def explain(subject: str, relation: str, obj: str, result: InferenceResult) -> str:
    """Explanation text: query, result, reasoning chain, method, confidence."""
    lines = [f"Query: {subject} {relation} {obj}", f"Result: {result.truth.value}"]

    if result.proof is not None and result.proof.steps:
        lines.append("")
        lines.append("Reasoning chain:")
        for step in result.proof.steps:
            lines.append(f"  - {step.describe()}")

    lines.append("")
    lines.append(f"Method: {result.method}")
    lines.append(f"Confidence: {result.confidence * 100:.1f}%")
    return "\n".join(lines)


def _parse_int(arg: str) -> int:
    key, _, value = arg.partition("=")
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} expects an integer, got {value!r}") from None
