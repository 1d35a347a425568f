"""
triple_inference/unification.py - Pattern Unification

Unification for triple patterns. Patterns are flat (subject, relation,
object), so there is no occurs check and no compound terms: a variable
binds to a constant and every later occurrence must agree with it.

Key operations:
- unify(pattern, target, θ): extend θ so that pattern matches target
- instantiate(pattern, θ): apply θ to a pattern
- find_matches(pattern, facts): facts a pattern matches, in fact order

Bindings are plain dicts that are copied on extension, never mutated in
place, so alternative branches of a search never see each other's
bindings.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from .terms import Fact, Pattern, is_variable, normalize

# Type alias for variable -> constant bindings
Bindings = dict[str, str]


def unify(
    pattern: Pattern,
    target: Pattern | Fact,
    theta: Mapping[str, str] | None = None
) -> Bindings | None:
    """Unify a pattern with a target triple.

    The relation must match exactly. Each constant position of the pattern
    must equal the target's value (case-insensitively); each variable binds
    to the target's value, or must agree with its existing binding.
    Variable positions of a Pattern target place no constraint; a Fact
    target is compared as constants throughout.

    Args:
        pattern: Pattern with variables (rule head or body)
        target: Concrete triple or partially-bound query pattern
        theta: Bindings to extend (default: empty)

    Returns:
        Extended bindings, or None if unification fails

    Example:
        unify(Pattern("?x", "ANCESTOR_OF", "?z"), Pattern("A", "ANCESTOR_OF", "C"))
        # {"?x": "A", "?z": "C"}
    """
    if pattern.relation != target.relation:
        return None

    open_target = isinstance(target, Pattern)
    bindings = dict(theta) if theta else {}
    for term, value in ((pattern.subject, target.subject), (pattern.object, target.object)):
        if open_target and is_variable(value):
            continue
        if is_variable(term):
            bound = bindings.get(term)
            if bound is None:
                bindings[term] = value
            elif normalize(bound) != normalize(value):
                return None
        elif normalize(term) != normalize(value):
            return None
    return bindings


def substitute(term: str, theta: Mapping[str, str]) -> str:
    """Value of a single position under θ."""
    if is_variable(term):
        return theta.get(term, term)
    return term


def instantiate(pattern: Pattern, theta: Mapping[str, str]) -> Pattern:
    """Apply bindings to a pattern."""
    return Pattern(
        substitute(pattern.subject, theta),
        pattern.relation,
        substitute(pattern.object, theta),
    )


def matches(pattern: Pattern, fact: Fact) -> bool:
    """True if the fact is an instance of the pattern."""
    return unify(pattern, fact) is not None


def find_matches(pattern: Pattern, facts: Iterable[Fact]) -> Iterator[Fact]:
    """Facts matching a pattern, in input order."""
    for fact in facts:
        if unify(pattern, fact) is not None:
            yield fact
