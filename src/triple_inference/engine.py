"""
triple_inference/engine.py - Multi-Strategy Inference Engine

Decides a truth band plus an auditable proof for a queried triple by
trying interchangeable strategies in order:

    direct -> transitive -> symmetric -> inverse -> composition
           -> inheritance -> default

The first decisive answer (TRUE_CERTAIN, TRUE_DEFAULT or FALSE) wins. When
a default rule with exceptions targets the queried relation, ``default``
runs before ``inheritance`` so the exception is seen before an ancestor
type can re-derive the property.

The engine owns three registries (relation properties, rules, defaults).
Register before or between queries; concurrent queries against a stable
registry are safe, concurrent mutation is not.

Example:
    engine = InferenceEngine()
    engine.register_default(DefaultRule(
        name="birds_fly", typical_type="Bird", property="CAN",
        value="fly", exceptions=("Penguin",),
    ))
    facts = [Fact("Tweety", "IS_A", "Bird")]
    engine.infer("Tweety", "CAN", "fly", facts).truth  # TRUE_DEFAULT
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .config import EngineSettings, get_settings
from .inference import forward_chain, prove_composition
from .proof import (
    EXHAUSTED,
    AssumptionStep,
    ExceptionStep,
    FactStep,
    InferenceResult,
    ProofChain,
    RuleStep,
    StrategyKind,
    TruthValue,
)
from .relations import RelationProperties, RelationRegistry
from .rules import DefaultRule, Rule
from .terms import Fact, FactLike, Pattern, as_facts, normalize

logger = logging.getLogger(__name__)

IS_A = "IS_A"

TRANSITIVE_DECAY = 0.95
INHERITANCE_CONFIDENCE = 0.95
DEFAULT_CONFIDENCE = 0.8

DEFAULT_ORDER: tuple[StrategyKind, ...] = (
    StrategyKind.DIRECT,
    StrategyKind.TRANSITIVE,
    StrategyKind.SYMMETRIC,
    StrategyKind.INVERSE,
    StrategyKind.COMPOSITION,
    StrategyKind.INHERITANCE,
    StrategyKind.DEFAULT,
)

EXCEPTION_AWARE_ORDER: tuple[StrategyKind, ...] = (
    StrategyKind.DIRECT,
    StrategyKind.TRANSITIVE,
    StrategyKind.SYMMETRIC,
    StrategyKind.INVERSE,
    StrategyKind.COMPOSITION,
    StrategyKind.DEFAULT,
    StrategyKind.INHERITANCE,
)

# Type checks inside default reasoning never recurse into defaults
TYPE_CHECK_METHODS = (StrategyKind.DIRECT, StrategyKind.TRANSITIVE)


class InferenceEngine:
    """Symbolic inference over subject-relation-object facts.

    Args:
        relations: Relation property registry to seed from (copied; later
            ``set_relation_properties`` calls are not written back).
            Defaults to the built-in relation table.
        settings: Engine settings (default: environment settings)
    """

    def __init__(
        self,
        relations: RelationRegistry | None = None,
        settings: EngineSettings | None = None,
    ):
        self.settings = settings or get_settings()

        seed = relations if relations is not None else RelationRegistry.default()
        self._relations = RelationRegistry(dict(seed.items()))

        # Composition rules and defaults, in registration order
        self._rules: list[Rule] = []
        self._defaults: list[DefaultRule] = []

        # relation -> dispatch order, invalidated when defaults change
        self._order_cache: dict[str, tuple[StrategyKind, ...]] = {}

    # -------------------------------------------------------------------------
    # Registries
    # -------------------------------------------------------------------------

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(self._rules)

    @property
    def defaults(self) -> tuple[DefaultRule, ...]:
        return tuple(self._defaults)

    @property
    def relations(self) -> RelationRegistry:
        return self._relations

    def register_rule(self, rule: Rule | Mapping[str, Any]) -> Rule:
        """Append a composition rule."""
        if not isinstance(rule, Rule):
            rule = Rule.from_dict(rule)
        self._rules.append(rule)
        logger.debug("Registered rule %r", rule)
        return rule

    def register_default(self, default: DefaultRule | Mapping[str, Any]) -> DefaultRule:
        """Append a default (non-monotonic) rule."""
        if not isinstance(default, DefaultRule):
            default = DefaultRule.from_dict(default)
        self._defaults.append(default)
        self._order_cache.pop(default.property, None)
        logger.debug("Registered default %s (exceptions: %s)", default.name, list(default.exceptions))
        return default

    def set_relation_properties(
        self,
        relation: str,
        properties: RelationProperties | Mapping[str, Any] | None = None,
        **flags: Any,
    ) -> RelationProperties:
        """Merge property overrides into this engine's relation table.

        Example:
            engine.set_relation_properties("MARRIED_TO", symmetric=True)
            engine.set_relation_properties("OWNS", {"inverse": "OWNED_BY"})
        """
        if isinstance(properties, RelationProperties):
            updates = properties.model_dump(exclude_unset=True)
        else:
            updates = dict(properties or {})
        updates.update(flags)

        merged = self._relations.get(relation).merged(**updates)
        self._relations.set(relation, merged)
        return merged

    def relation_properties(self, relation: str) -> RelationProperties:
        return self._relations.get(relation)

    def strategy_order(self, relation: str) -> tuple[StrategyKind, ...]:
        """Dispatch order for a relation.

        ``default`` moves ahead of ``inheritance`` when any registered
        default targeting the relation has exceptions.
        """
        order = self._order_cache.get(relation)
        if order is None:
            exception_aware = any(
                d.property == relation and d.has_exceptions for d in self._defaults
            )
            order = EXCEPTION_AWARE_ORDER if exception_aware else DEFAULT_ORDER
            self._order_cache[relation] = order
        return order

    # -------------------------------------------------------------------------
    # Public surface
    # -------------------------------------------------------------------------

    def infer(
        self,
        subject: str,
        relation: str,
        object: str,
        facts: Iterable[FactLike],
        *,
        methods: Sequence[StrategyKind | str] | None = None,
        max_depth: int | None = None,
    ) -> InferenceResult:
        """Decide the truth band of ``subject relation object``.

        Args:
            subject, relation, object: Queried triple
            facts: Fact snapshot (Facts or mappings; never mutated)
            methods: Explicit strategy list, replacing the computed order;
                unknown names are skipped
            max_depth: Search bound (default: settings.recursion_horizon)

        Returns:
            First decisive strategy result, or UNKNOWN with method
            ``exhausted``
        """
        facts = as_facts(facts)
        depth = self._depth(max_depth)

        if methods is not None:
            order = _known_methods(methods)
        else:
            order = self.strategy_order(relation)

        for kind in order:
            result = self._run(kind, subject, relation, object, facts, depth)
            if result.is_decisive:
                logger.debug(
                    "%s %s %s: %s via %s",
                    subject, relation, object, result.truth.value, result.method
                )
                return result

        return InferenceResult.unknown(EXHAUSTED)

    def prove(
        self,
        subject: str,
        relation: str,
        object: str,
        facts: Iterable[FactLike],
        *,
        methods: Sequence[StrategyKind | str] | None = None,
        max_depth: int | None = None,
    ) -> ProofChain | None:
        """Proof chain behind ``infer``'s answer, or None."""
        return self.infer(
            subject, relation, object, facts, methods=methods, max_depth=max_depth
        ).proof

    def forward_chain(
        self,
        facts: Iterable[FactLike],
        max_iterations: int | None = None,
    ) -> list[Fact]:
        """Derive everything the rules and relation properties entail.

        Returns:
            Only the newly derived facts, tagged with ``derived_by``
        """
        if max_iterations is None:
            max_iterations = self.settings.max_iterations

        new_facts, _ = forward_chain(
            as_facts(facts), self._rules, self._relations.items(), max_iterations
        )
        return new_facts

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def _run(
        self,
        kind: StrategyKind,
        subject: str,
        relation: str,
        obj: str,
        facts: Sequence[Fact],
        depth: int,
    ) -> InferenceResult:
        if kind is StrategyKind.DIRECT:
            return self.infer_direct(subject, relation, obj, facts)
        if kind is StrategyKind.TRANSITIVE:
            return self.infer_transitive(subject, relation, obj, facts, depth)
        if kind is StrategyKind.SYMMETRIC:
            return self.infer_symmetric(subject, relation, obj, facts)
        if kind is StrategyKind.INVERSE:
            return self.infer_inverse(subject, relation, obj, facts)
        if kind is StrategyKind.COMPOSITION:
            return self.infer_composition(subject, relation, obj, facts, depth)
        if kind is StrategyKind.INHERITANCE:
            return self.infer_inheritance(subject, relation, obj, facts, depth)
        return self.infer_default(subject, relation, obj, facts, depth)

    def infer_direct(self, subject: str, relation: str, obj: str,
                     facts: Iterable[FactLike]) -> InferenceResult:
        """Case-insensitive lookup of the exact triple."""
        for fact in as_facts(facts):
            if fact.matches(subject, relation, obj):
                return InferenceResult(
                    truth=TruthValue.TRUE_CERTAIN,
                    method=StrategyKind.DIRECT.value,
                    confidence=1.0,
                    proof=ProofChain(
                        goal=_goal(subject, relation, obj),
                        steps=(FactStep(fact, "direct_match"),),
                    ),
                )
        return InferenceResult.unknown(StrategyKind.DIRECT, "no_match")

    def infer_transitive(self, subject: str, relation: str, obj: str,
                         facts: Iterable[FactLike],
                         max_depth: int | None = None) -> InferenceResult:
        """Breadth-first path search over a transitive relation.

        The shortest path within ``max_depth`` hops wins; confidence decays
        by 0.95 per hop while the truth band stays TRUE_CERTAIN.
        """
        if not self.relation_properties(relation).transitive:
            return InferenceResult.unknown(StrategyKind.TRANSITIVE, "not_transitive")

        depth = self._depth(max_depth)
        edges: dict[str, list[Fact]] = defaultdict(list)
        for fact in as_facts(facts):
            if fact.relation == relation:
                edges[normalize(fact.subject)].append(fact)

        start, target = normalize(subject), normalize(obj)
        visited = {start}
        queue: deque[tuple[str, tuple[Fact, ...]]] = deque([(start, ())])

        while queue:
            node, path = queue.popleft()
            if len(path) >= depth:
                continue

            for edge in edges.get(node, ()):
                hop = normalize(edge.object)
                new_path = (*path, edge)

                if hop == target:
                    return InferenceResult(
                        truth=TruthValue.TRUE_CERTAIN,
                        method=StrategyKind.TRANSITIVE.value,
                        confidence=TRANSITIVE_DECAY ** len(new_path),
                        proof=ProofChain(
                            goal=_goal(subject, relation, obj),
                            steps=tuple(FactStep(e, "transitive_edge") for e in new_path),
                        ),
                    )

                if hop not in visited:
                    visited.add(hop)
                    queue.append((hop, new_path))

        return InferenceResult.unknown(StrategyKind.TRANSITIVE, "no_path")

    def infer_symmetric(self, subject: str, relation: str, obj: str,
                        facts: Iterable[FactLike]) -> InferenceResult:
        """Reverse-fact lookup for a symmetric relation."""
        if not self.relation_properties(relation).symmetric:
            return InferenceResult.unknown(StrategyKind.SYMMETRIC, "not_symmetric")

        for fact in as_facts(facts):
            if fact.matches(obj, relation, subject):
                return InferenceResult(
                    truth=TruthValue.TRUE_CERTAIN,
                    method=StrategyKind.SYMMETRIC.value,
                    confidence=1.0,
                    proof=ProofChain(
                        goal=_goal(subject, relation, obj),
                        steps=(
                            FactStep(fact, "symmetric_match"),
                            RuleStep(f"{relation} is symmetric", "symmetry"),
                        ),
                    ),
                )
        return InferenceResult.unknown(StrategyKind.SYMMETRIC, "no_reverse_fact")

    def infer_inverse(self, subject: str, relation: str, obj: str,
                      facts: Iterable[FactLike]) -> InferenceResult:
        """A R B holds if B R⁻¹ A is stored."""
        inverse = self.relation_properties(relation).inverse
        if not inverse:
            return InferenceResult.unknown(StrategyKind.INVERSE, "no_inverse")

        for fact in as_facts(facts):
            if fact.matches(obj, inverse, subject):
                return InferenceResult(
                    truth=TruthValue.TRUE_CERTAIN,
                    method=StrategyKind.INVERSE.value,
                    confidence=1.0,
                    inverse_relation=inverse,
                    proof=ProofChain(
                        goal=_goal(subject, relation, obj),
                        steps=(
                            FactStep(fact, "inverse_match"),
                            RuleStep(f"{relation} inverse of {inverse}", "inverse_relation"),
                        ),
                    ),
                )
        return InferenceResult.unknown(StrategyKind.INVERSE, "no_inverse_fact")

    def infer_composition(self, subject: str, relation: str, obj: str,
                          facts: Iterable[FactLike],
                          max_depth: int | None = None) -> InferenceResult:
        """Prove the triple through the registered composition rules."""
        return prove_composition(
            _goal(subject, relation, obj), self._rules, as_facts(facts), self._depth(max_depth)
        )

    def infer_inheritance(self, subject: str, relation: str, obj: str,
                          facts: Iterable[FactLike],
                          max_depth: int | None = None) -> InferenceResult:
        """Inherit an allow-listed property from the nearest IS_A ancestor."""
        if relation not in self.settings.inheritable_relations:
            return InferenceResult.unknown(StrategyKind.INHERITANCE, "not_inheritable")

        facts = as_facts(facts)
        for ancestor in self._ancestor_types(subject, facts, self._depth(max_depth)):
            for fact in facts:
                if not fact.matches(ancestor, relation, obj):
                    continue
                return InferenceResult(
                    truth=TruthValue.TRUE_CERTAIN,
                    method=StrategyKind.INHERITANCE.value,
                    confidence=INHERITANCE_CONFIDENCE,
                    inherited_from=ancestor,
                    proof=ProofChain(
                        goal=_goal(subject, relation, obj),
                        steps=(
                            FactStep(Fact(str(subject), IS_A, ancestor), "type_membership"),
                            FactStep(fact, "property_of_type"),
                        ),
                    ),
                )

        return InferenceResult.unknown(StrategyKind.INHERITANCE, "no_ancestor_match")

    def infer_default(self, subject: str, relation: str, obj: str,
                      facts: Iterable[FactLike],
                      max_depth: int | None = None) -> InferenceResult:
        """Non-monotonic default reasoning with exceptions.

        A default applies when the subject IS_A its typical type; an
        exception type that also holds blocks it with a defeasible FALSE.
        Type checks use only direct and transitive lookup.
        """
        facts = as_facts(facts)
        goal = _goal(subject, relation, obj)

        for default in self._defaults:
            if not default.applies_to(relation, obj):
                continue

            if not self._is_a(subject, default.typical_type, facts, max_depth):
                continue

            exception = self._blocking_exception(subject, default, facts, max_depth)
            if exception is not None:
                logger.debug("Default %s blocked for %s by %s", default.name, subject, exception)
                return InferenceResult(
                    truth=TruthValue.FALSE,
                    method=StrategyKind.DEFAULT.value,
                    confidence=DEFAULT_CONFIDENCE,
                    reason="exception_applies",
                    rule=default.name,
                    exception=exception,
                    proof=ProofChain(
                        goal=goal,
                        steps=(
                            RuleStep(default.name, "default_rule"),
                            ExceptionStep(exception, "blocked_by_exception"),
                        ),
                        defeasible=True,
                    ),
                )

            assumption = f"{subject} is a typical {default.typical_type}"
            return InferenceResult(
                truth=TruthValue.TRUE_DEFAULT,
                method=StrategyKind.DEFAULT.value,
                confidence=DEFAULT_CONFIDENCE,
                rule=default.name,
                assumptions=(assumption,),
                proof=ProofChain(
                    goal=goal,
                    steps=(
                        RuleStep(default.name, "default_rule"),
                        AssumptionStep(assumption, "type_check"),
                    ),
                    defeasible=True,
                ),
            )

        return InferenceResult.unknown(StrategyKind.DEFAULT, "no_applicable_default")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _depth(self, max_depth: int | None) -> int:
        return self.settings.recursion_horizon if max_depth is None else max_depth

    def _is_a(self, subject: str, type_name: str, facts: Sequence[Fact],
              max_depth: int | None) -> bool:
        result = self.infer(
            subject, IS_A, type_name, facts, methods=TYPE_CHECK_METHODS, max_depth=max_depth
        )
        return result.truth is TruthValue.TRUE_CERTAIN

    def _blocking_exception(self, subject: str, default: DefaultRule,
                            facts: Sequence[Fact], max_depth: int | None) -> str | None:
        for exception in default.exceptions:
            if self._is_a(subject, exception, facts, max_depth):
                return exception
        return None

    def _ancestor_types(self, subject: str, facts: Sequence[Fact], max_depth: int) -> list[str]:
        """Every type reachable via IS_A within max_depth levels, BFS order."""
        parents: dict[str, list[str]] = defaultdict(list)
        for fact in facts:
            if fact.relation == IS_A:
                parents[normalize(fact.subject)].append(fact.object)

        start = normalize(subject)
        types: dict[str, str] = {}
        frontier = [start]

        for _ in range(max_depth):
            next_frontier = []
            for node in frontier:
                for parent in parents.get(node, ()):
                    key = normalize(parent)
                    if key == start or key in types:
                        continue
                    types[key] = parent
                    next_frontier.append(key)
            if not next_frontier:
                break
            frontier = next_frontier

        return list(types.values())


def _known_methods(methods: Sequence[StrategyKind | str]) -> tuple[StrategyKind, ...]:
    """Parse an explicit strategy list, skipping names no strategy answers to."""
    order = []
    for method in methods:
        try:
            order.append(StrategyKind.parse(method))
        except ValueError:
            logger.debug("Skipping unknown inference method %r", method)
    return tuple(order)


def _goal(subject: Any, relation: str, obj: Any) -> Pattern:
    return Pattern(str(subject), relation, str(obj))
