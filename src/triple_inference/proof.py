"""
triple_inference/proof.py - Truth Bands, Proof Chains and Results

Every strategy answers with an InferenceResult: a truth band, the method
that produced it, a confidence, and (for decisive answers) a ProofChain.

A ProofChain is an ordered list of typed steps:
- FactStep: a fact justifies the goal (direct match, edge, body match)
- RuleStep: a rule or relation property was applied
- AssumptionStep: a defeasible assumption was made
- ExceptionStep: an exception type blocked a default

TRUE_DEFAULT (and the FALSE of a blocked default) are defeasible: later
evidence may retract them.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from .terms import Fact, Pattern


class TruthValue(Enum):
    """Truth band of an inference result."""

    TRUE_CERTAIN = "TRUE_CERTAIN"
    TRUE_DEFAULT = "TRUE_DEFAULT"
    FALSE = "FALSE"
    UNKNOWN = "UNKNOWN"

    @property
    def is_decisive(self) -> bool:
        """True for every band except UNKNOWN."""
        return self is not TruthValue.UNKNOWN


class StrategyKind(Enum):
    """Derivation strategies, in their default dispatch order."""

    DIRECT = "direct"
    TRANSITIVE = "transitive"
    SYMMETRIC = "symmetric"
    INVERSE = "inverse"
    COMPOSITION = "composition"
    INHERITANCE = "inheritance"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: StrategyKind | str) -> StrategyKind:
        if isinstance(value, StrategyKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            known = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown inference method {value!r} (expected one of: {known})") from None


# Method reported when no strategy was decisive
EXHAUSTED = "exhausted"


# =============================================================================
# PROOF STEPS
# =============================================================================


@dataclass(frozen=True)
class FactStep:
    """A fact used as evidence.

    For composition proofs ``pattern`` is the body pattern the fact
    satisfied, and ``subproof`` the derivation of a fact that was not in
    the store.
    """
    fact: Fact
    justification: str
    pattern: Pattern | None = None
    subproof: ProofChain | None = None

    def describe(self) -> str:
        return f"{self.fact} ({self.justification})"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"fact": self.fact.to_dict(), "justification": self.justification}
        if self.pattern is not None:
            data["pattern"] = self.pattern.to_dict()
        if self.subproof is not None:
            data["subproof"] = self.subproof.to_dict()
        return data


@dataclass(frozen=True)
class RuleStep:
    """A rule, default rule or relation property was applied."""
    rule: str
    justification: str

    def describe(self) -> str:
        return f"Applied rule: {self.rule}"

    def to_dict(self) -> dict[str, Any]:
        return {"rule": self.rule, "justification": self.justification}


@dataclass(frozen=True)
class AssumptionStep:
    """A defeasible assumption the conclusion rests on."""
    assumption: str
    justification: str

    def describe(self) -> str:
        return f"Assumed: {self.assumption}"

    def to_dict(self) -> dict[str, Any]:
        return {"assumption": self.assumption, "justification": self.justification}


@dataclass(frozen=True)
class ExceptionStep:
    """An exception type that blocked a default."""
    exception: str
    justification: str

    def describe(self) -> str:
        return f"Blocked by exception: {self.exception}"

    def to_dict(self) -> dict[str, Any]:
        return {"exception": self.exception, "justification": self.justification}


ProofStep = Union[FactStep, RuleStep, AssumptionStep, ExceptionStep]


@dataclass(frozen=True)
class ProofChain:
    """Ordered justification for a truth-band result.

    ``valid`` means the steps support the reported band; ``defeasible``
    marks conclusions that rest on default assumptions.
    """
    goal: Pattern
    steps: tuple[ProofStep, ...] = ()
    valid: bool = True
    defeasible: bool = False
    rule: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "steps", tuple(self.steps))

    def explain(self, indent: int = 0) -> str:
        """Human-readable rendering, nested for composition subproofs."""
        prefix = "  " * indent
        lines = [f"{prefix}{self.goal.subject} {self.goal.relation} {self.goal.object}"]
        if self.rule:
            lines.append(f"{prefix}  by rule: {self.rule}")
        for step in self.steps:
            lines.append(f"{prefix}  - {step.describe()}")
            if isinstance(step, FactStep) and step.subproof is not None:
                lines.append(step.subproof.explain(indent + 2))
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "goal": self.goal.to_dict(),
            "steps": [step.to_dict() for step in self.steps],
            "valid": self.valid,
            "defeasible": self.defeasible,
        }
        if self.rule:
            data["rule"] = self.rule
        return data


# =============================================================================
# RESULTS
# =============================================================================


@dataclass(frozen=True)
class InferenceResult:
    """Answer of a strategy or of the dispatcher."""
    truth: TruthValue
    method: str
    confidence: float = 0.0
    proof: ProofChain | None = None
    reason: str | None = None
    rule: str | None = None
    inherited_from: str | None = None
    inverse_relation: str | None = None
    exception: str | None = None
    assumptions: tuple[str, ...] = ()

    @property
    def is_decisive(self) -> bool:
        return self.truth.is_decisive

    @classmethod
    def unknown(cls, method: StrategyKind | str, reason: str | None = None) -> InferenceResult:
        name = method.value if isinstance(method, StrategyKind) else method
        return cls(truth=TruthValue.UNKNOWN, method=name, confidence=0.0, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        """Export to a JSON-friendly dictionary, omitting empty fields."""
        data: dict[str, Any] = {
            "truth": self.truth.value,
            "method": self.method,
            "confidence": self.confidence,
        }
        optional = {
            "reason": self.reason,
            "rule": self.rule,
            "inherited_from": self.inherited_from,
            "inverse_relation": self.inverse_relation,
            "exception": self.exception,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.assumptions:
            data["assumptions"] = list(self.assumptions)
        if self.proof is not None:
            data["proof"] = self.proof.to_dict()
        return data
