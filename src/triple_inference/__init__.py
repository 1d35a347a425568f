"""
triple_inference - Multi-Strategy Symbolic Inference Engine

Decides, for any subject-relation-object triple, a truth band plus an
auditable proof:
- Direct lookup
- Transitive closure (BFS with hop-decayed confidence)
- Symmetric and inverse relations
- Composition rules with unification and recursion
- Property inheritance along IS_A
- Non-monotonic defaults with exceptions
- Forward chaining to a fixpoint

Example:
    from triple_inference import InferenceEngine, Fact, Pattern, Rule

    engine = InferenceEngine()
    engine.register_rule(Rule(
        name="grandparent",
        head=Pattern("?x", "GRANDPARENT_OF", "?z"),
        body=(Pattern("?x", "PARENT_OF", "?y"), Pattern("?y", "PARENT_OF", "?z")),
    ))

    facts = [Fact("Alice", "PARENT_OF", "Bob"), Fact("Bob", "PARENT_OF", "Carol")]
    result = engine.infer("Alice", "GRANDPARENT_OF", "Carol", facts)
    print(result.truth, result.proof.explain())
"""

from .config import EngineSettings, get_settings
from .dsl import InferenceDSL
from .engine import InferenceEngine
from .inference import forward_chain, prove_composition
from .proof import (
    AssumptionStep,
    ExceptionStep,
    FactStep,
    InferenceResult,
    ProofChain,
    ProofStep,
    RuleStep,
    StrategyKind,
    TruthValue,
)
from .relations import DEFAULT_RELATION_PROPERTIES, RelationProperties, RelationRegistry
from .rulebook import Rulebook
from .rules import DefaultRule, Rule
from .terms import Fact, Pattern, as_facts, is_variable
from .unification import instantiate, unify

__all__ = [
    # Terms
    "Fact",
    "Pattern",
    "as_facts",
    "is_variable",
    # Unification
    "unify",
    "instantiate",
    # Relations
    "RelationProperties",
    "RelationRegistry",
    "DEFAULT_RELATION_PROPERTIES",
    # Rules
    "Rule",
    "DefaultRule",
    "Rulebook",
    # Proofs and results
    "TruthValue",
    "StrategyKind",
    "FactStep",
    "RuleStep",
    "AssumptionStep",
    "ExceptionStep",
    "ProofStep",
    "ProofChain",
    "InferenceResult",
    # Inference
    "InferenceEngine",
    "prove_composition",
    "forward_chain",
    # DSL
    "InferenceDSL",
    # Config
    "EngineSettings",
    "get_settings",
]
