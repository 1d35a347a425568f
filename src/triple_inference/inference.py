"""
triple_inference/inference.py - Rule Composition and Forward Chaining

Two ways of applying the same composition rules:

COMPOSITION (Goal-Driven, existential):
    Unify a rule head with the queried triple and satisfy the body
    depth-first, backtracking over candidate bindings. Ground body goals
    are looked up directly, then proved recursively through the rules;
    open body goals enumerate matching facts and facts derivable through
    other rules. The first witness wins.

    Use when: You want to know if/how one triple holds.

FORWARD CHAINING (Data-Driven, enumerative):
    Apply every rule to every satisfying binding over the accumulated fact
    set, plus one-hop transitive and symmetric expansion, until a pass adds
    nothing (fixpoint) or the iteration bound is hit.

    Use when: You want everything the rules entail.

Recursion is bounded by ``max_depth``, which decreases on every recursive
rule attempt. Each search branch carries an immutable set of goal keys
already being proved on its path; re-entering one of them fails at once.
Within one search, every sub-search (goal or open pattern, depth, path) is
run once and its result reused.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from .proof import (
    FactStep,
    InferenceResult,
    ProofChain,
    ProofStep,
    RuleStep,
    StrategyKind,
    TruthValue,
)
from .relations import RelationProperties
from .rules import Rule
from .terms import Fact, Pattern, normalize
from .unification import Bindings, find_matches, instantiate, matches, unify

logger = logging.getLogger(__name__)

# Rule-derived facts rank just below direct and transitive hits
COMPOSITION_CONFIDENCE = 0.9

TRANSITIVE_CLOSURE = "transitive_closure"
SYMMETRIC_CLOSURE = "symmetric_closure"


# =============================================================================
# COMPOSITION (BACKWARD, EXISTENTIAL)
# =============================================================================

# (kind, triple, depth, visited) -> result of that sub-search within one call
SearchCache = dict[tuple[str, tuple[str, str, str], int, frozenset[str]], Any]


def prove_composition(
    goal: Pattern,
    rules: Sequence[Rule],
    facts: Sequence[Fact],
    max_depth: int,
    visited: frozenset[str] = frozenset(),
    cache: SearchCache | None = None,
) -> InferenceResult:
    """Prove a ground goal through the composition rules.

    Args:
        goal: Ground triple to prove
        rules: Registered rules, in registration order
        facts: Fact snapshot
        max_depth: Recursion bound
        visited: Goal keys already on the current proof path
        cache: Memo of sub-searches (default: fresh for this call)

    Returns:
        TRUE_CERTAIN with a proof listing every body match, or UNKNOWN
    """
    if cache is None:
        cache = {}

    proof = _prove_goal(goal, rules, facts, max_depth, visited, cache)
    if proof is None:
        return InferenceResult.unknown(StrategyKind.COMPOSITION, "no_rule_matched")

    return InferenceResult(
        truth=TruthValue.TRUE_CERTAIN,
        method=StrategyKind.COMPOSITION.value,
        confidence=COMPOSITION_CONFIDENCE,
        proof=proof,
        rule=proof.rule,
    )


def _prove_goal(
    goal: Pattern,
    rules: Sequence[Rule],
    facts: Sequence[Fact],
    depth: int,
    visited: frozenset[str],
    cache: SearchCache,
) -> ProofChain | None:
    """First rule derivation of a ground goal, or None."""
    if depth <= 0:
        return None

    key = ("goal", _triple(goal), depth, visited)
    if key not in cache:
        cache[key] = _first_derivation(goal, rules, facts, depth, visited, cache)
    return cache[key]


def _first_derivation(
    goal: Pattern,
    rules: Sequence[Rule],
    facts: Sequence[Fact],
    depth: int,
    visited: frozenset[str],
    cache: SearchCache,
) -> ProofChain | None:
    path = visited | {goal.key}
    for rule in rules:
        if rule.relation != goal.relation:
            continue

        theta = unify(rule.head, goal)
        if theta is None:
            continue

        logger.debug("Trying rule %s for %r (depth %d)", rule.name, goal, depth)
        for _, steps in solve_body(rule.body, theta, rules, facts, depth, path, cache):
            return ProofChain(
                goal=goal,
                steps=(*steps, RuleStep(rule.name, "composition_rule")),
                rule=rule.name,
            )

    return None


def solve_body(
    body: Sequence[Pattern],
    theta: Bindings,
    rules: Sequence[Rule],
    facts: Sequence[Fact],
    depth: int,
    visited: frozenset[str],
    cache: SearchCache,
) -> Iterator[tuple[Bindings, list[ProofStep]]]:
    """Lazily generate solutions of a conjunctive body.

    Yields (bindings, steps) depth-first in fact and rule order. Callers
    wanting a single witness take the first solution; the remaining
    alternatives are only explored when a later conjunct fails.

    Sibling conjuncts share ``visited`` (the path above them), never each
    other's sub-goals.
    """
    if not body:
        yield dict(theta), []
        return

    first, rest = body[0], body[1:]
    goal = instantiate(first, theta)

    if goal.is_ground():
        step = _prove_ground(first, goal, rules, facts, depth, visited, cache)
        if step is None:
            return
        for bindings, steps in solve_body(rest, theta, rules, facts, depth, visited, cache):
            yield bindings, [step, *steps]
        return

    for fact, subproof in _candidates(goal, rules, facts, depth, visited, cache):
        extended = unify(first, fact, theta)
        if extended is None:
            continue

        if subproof is None:
            step = FactStep(fact, "body_match", pattern=first)
        else:
            step = FactStep(fact, "derived_match", pattern=first, subproof=subproof)

        for bindings, steps in solve_body(rest, extended, rules, facts, depth, visited, cache):
            yield bindings, [step, *steps]


def _prove_ground(
    pattern: Pattern,
    goal: Pattern,
    rules: Sequence[Rule],
    facts: Sequence[Fact],
    depth: int,
    visited: frozenset[str],
    cache: SearchCache,
) -> FactStep | None:
    """Justify a fully instantiated body goal: direct lookup, then rules."""
    if goal.key in visited:
        logger.debug("Cycle guard: %r already on the proof path", goal)
        return None

    for fact in find_matches(goal, facts):
        return FactStep(fact, "body_match", pattern=pattern)

    subproof = _prove_goal(goal, rules, facts, depth - 1, visited, cache)
    if subproof is None:
        return None
    return FactStep(
        goal.to_fact(derived_by=subproof.rule),
        "derived_match",
        pattern=pattern,
        subproof=subproof,
    )


def _candidates(
    goal: Pattern,
    rules: Sequence[Rule],
    facts: Sequence[Fact],
    depth: int,
    visited: frozenset[str],
    cache: SearchCache,
) -> Iterator[tuple[Fact, ProofChain | None]]:
    """Stored facts matching an open goal, then derivable ones."""
    for fact in find_matches(goal, facts):
        yield fact, None
    yield from derived_matches(goal, rules, facts, depth - 1, visited, cache)


def derived_matches(
    pattern: Pattern,
    rules: Sequence[Rule],
    facts: Sequence[Fact],
    depth: int,
    visited: frozenset[str],
    cache: SearchCache,
) -> list[tuple[Fact, ProofChain]]:
    """Facts matching an open pattern that the rules can derive.

    Lets recursive rules (e.g. ancestor-of) reach triples that are not
    materialized as stored facts. Stored matches and duplicates are
    skipped. Each (pattern, depth, path) is derived once per search.

    Returns:
        (derived_fact, proof) pairs, in rule order then solution order
    """
    if depth <= 0:
        return []

    key = ("derived", _triple(pattern), depth, visited)
    if key not in cache:
        cache[key] = list(_derive(pattern, rules, facts, depth, visited, cache))
    return cache[key]


def _derive(
    pattern: Pattern,
    rules: Sequence[Rule],
    facts: Sequence[Fact],
    depth: int,
    visited: frozenset[str],
    cache: SearchCache,
) -> Iterator[tuple[Fact, ProofChain]]:
    seen = {fact.key for fact in find_matches(pattern, facts)}
    for rule in rules:
        if rule.relation != pattern.relation:
            continue

        theta = unify(rule.head, pattern)
        if theta is None:
            continue

        for bindings, steps in solve_body(rule.body, theta, rules, facts, depth, visited, cache):
            head = instantiate(rule.head, bindings)
            if not head.is_ground() or head.key in seen:
                continue
            derived = head.to_fact(derived_by=rule.name)
            if not matches(pattern, derived):
                continue

            seen.add(head.key)
            yield derived, ProofChain(
                goal=head,
                steps=(*steps, RuleStep(rule.name, "composition_rule")),
                rule=rule.name,
            )


def _triple(pattern: Pattern) -> tuple[str, str, str]:
    return (pattern.subject, pattern.relation, pattern.object)

# =============================================================================
# FORWARD CHAINING (ENUMERATIVE FIXPOINT)
# =============================================================================


def forward_chain(
    facts: Sequence[Fact],
    rules: Sequence[Rule],
    relations: Iterable[tuple[str, RelationProperties]],
    max_iterations: int = 100,
) -> tuple[list[Fact], int]:
    """Forward chaining to a fixpoint.

    Each pass applies every rule to every satisfying binding, joins each
    transitive relation one hop, and adds missing reverse edges of each
    symmetric relation. Facts are deduplicated by their
    ``subject|relation|object`` key.

    Args:
        facts: Initial fact set (not mutated)
        rules: Composition rules, in registration order
        relations: (name, properties) pairs, in registry order
        max_iterations: Maximum passes

    Returns:
        (new_facts, iterations) - facts added beyond the input, each with
        ``derived_by`` provenance, and the number of passes run
    """
    relations = list(relations)
    accumulated: list[Fact] = list(facts)
    index: set[str] = {fact.key for fact in accumulated}
    new_facts: list[Fact] = []

    def emit(fact: Fact) -> None:
        if fact.key not in index:
            index.add(fact.key)
            accumulated.append(fact)
            new_facts.append(fact)

    iterations = 0
    fixpoint = False

    while iterations < max_iterations:
        iterations += 1
        before = len(new_facts)

        by_relation = _index_by_relation(accumulated)
        for rule in rules:
            for conclusion in apply_rule(rule, by_relation):
                emit(conclusion)

        for name, props in relations:
            if props.transitive:
                for fact in expand_transitive_once(name, accumulated):
                    emit(fact)

        for name, props in relations:
            if props.symmetric:
                for fact in expand_symmetric(name, accumulated):
                    emit(fact)

        if len(new_facts) == before:
            fixpoint = True
            break

    if fixpoint:
        logger.info(
            "Forward chaining reached fixpoint after %d iterations (%d new facts)",
            iterations, len(new_facts)
        )
    else:
        logger.warning(
            "Forward chaining stopped at max_iterations=%d before a fixpoint (%d new facts)",
            max_iterations, len(new_facts)
        )

    return new_facts, iterations


def apply_rule(rule: Rule, by_relation: Mapping[str, Sequence[Fact]]) -> list[Fact]:
    """All ground head instances over every satisfying body binding."""
    conclusions = []
    for theta in _match_body(rule.body, {}, by_relation):
        head = instantiate(rule.head, theta)
        if head.is_ground():
            conclusions.append(head.to_fact(derived_by=rule.name))
    return conclusions


def _match_body(
    body: Sequence[Pattern],
    theta: Bindings,
    by_relation: Mapping[str, Sequence[Fact]],
) -> Iterator[Bindings]:
    """Every binding satisfying the body against the fact set (no rules)."""
    if not body:
        yield theta
        return

    first, rest = body[0], body[1:]
    for fact in by_relation.get(first.relation, ()):
        extended = unify(first, fact, theta)
        if extended is not None:
            yield from _match_body(rest, extended, by_relation)


def expand_transitive_once(relation: str, facts: Sequence[Fact]) -> list[Fact]:
    """One-hop join: A R B, B R C => A R C (reflexive results skipped)."""
    edges = [f for f in facts if f.relation == relation]
    by_subject: dict[str, list[Fact]] = defaultdict(list)
    for edge in edges:
        by_subject[normalize(edge.subject)].append(edge)

    new_facts = []
    for first in edges:
        for second in by_subject.get(normalize(first.object), ()):
            if normalize(first.subject) == normalize(second.object):
                continue
            new_facts.append(
                Fact(first.subject, relation, second.object, derived_by=TRANSITIVE_CLOSURE)
            )
    return new_facts


def expand_symmetric(relation: str, facts: Sequence[Fact]) -> list[Fact]:
    """Missing reverse edges: A R B => B R A."""
    edges = [f for f in facts if f.relation == relation]
    present = {(normalize(f.subject), normalize(f.object)) for f in edges}

    return [
        Fact(edge.object, relation, edge.subject, derived_by=SYMMETRIC_CLOSURE)
        for edge in edges
        if (normalize(edge.object), normalize(edge.subject)) not in present
    ]


def _index_by_relation(facts: Iterable[Fact]) -> dict[str, list[Fact]]:
    by_relation: dict[str, list[Fact]] = defaultdict(list)
    for fact in facts:
        by_relation[fact.relation].append(fact)
    return by_relation
