"""
Tests for goal-driven rule composition.

Validates:
- Unification of rule heads with the query
- Backtracking over candidate bindings
- Recursive rules through derived body goals
- Termination on cyclic rules
- Sub-searches are memoized within one query
"""

from collections import Counter

import pytest

from triple_inference import (
    Fact,
    FactStep,
    Pattern,
    Rule,
    RuleStep,
    TruthValue,
    prove_composition,
)
from triple_inference import inference


@pytest.fixture
def grandparent_rule() -> Rule:
    return Rule(
        name="grandparent",
        head=Pattern("?x", "GRANDPARENT_OF", "?z"),
        body=(
            Pattern("?x", "PARENT_OF", "?y"),
            Pattern("?y", "PARENT_OF", "?z"),
        ),
    )


class TestComposition:
    """Test suite for non-recursive composition rules."""

    def test_grandparent(self, engine, grandparent_rule):
        engine.register_rule(grandparent_rule)
        facts = [Fact("Alice", "PARENT_OF", "Bob"), Fact("Bob", "PARENT_OF", "Carol")]

        result = engine.infer("Alice", "GRANDPARENT_OF", "Carol", facts)

        assert result.truth is TruthValue.TRUE_CERTAIN
        assert result.method == "composition"
        assert result.rule == "grandparent"
        assert result.confidence == pytest.approx(0.9)

        steps = result.proof.steps
        assert [s.fact for s in steps[:2]] == facts
        assert all(s.justification == "body_match" for s in steps[:2])
        assert steps[-1] == RuleStep("grandparent", "composition_rule")

    def test_backtracks_over_siblings(self, engine, grandparent_rule):
        engine.register_rule(grandparent_rule)
        facts = [
            Fact("Alice", "PARENT_OF", "Bob"),
            Fact("Alice", "PARENT_OF", "Dana"),
            Fact("Dana", "PARENT_OF", "Erin"),
        ]

        result = engine.infer("Alice", "GRANDPARENT_OF", "Erin", facts)

        assert result.truth is TruthValue.TRUE_CERTAIN
        assert result.proof.steps[0].fact.object == "Dana"

    def test_no_rule_matched(self, engine, grandparent_rule):
        engine.register_rule(grandparent_rule)
        facts = [Fact("Alice", "PARENT_OF", "Bob")]

        result = engine.infer_composition("Alice", "GRANDPARENT_OF", "Carol", facts)

        assert result.truth is TruthValue.UNKNOWN
        assert result.reason == "no_rule_matched"

    def test_constant_in_head(self, engine):
        engine.register_rule({
            "name": "italians_like_pizza",
            "head": {"subject": "?x", "relation": "LIKES", "object": "pizza"},
            "body": [{"subject": "?x", "relation": "IS_A", "object": "Italian"}],
        })
        facts = [Fact("Mario", "IS_A", "Italian")]

        assert engine.infer("Mario", "LIKES", "Pizza", facts).truth is TruthValue.TRUE_CERTAIN
        assert engine.infer("Mario", "LIKES", "sushi", facts).truth is TruthValue.UNKNOWN

    def test_inconsistent_head_bindings(self, engine):
        engine.register_rule(Rule(
            name="self_loop",
            head=Pattern("?x", "LOOPS", "?x"),
            body=(Pattern("?x", "IS_A", "node"),),
        ))
        facts = [Fact("a", "IS_A", "node")]

        assert engine.infer("a", "LOOPS", "a", facts).truth is TruthValue.TRUE_CERTAIN
        assert engine.infer("a", "LOOPS", "b", facts).truth is TruthValue.UNKNOWN

    def test_case_insensitive_bindings(self, engine, grandparent_rule):
        engine.register_rule(grandparent_rule)
        facts = [Fact("alice", "PARENT_OF", "BOB"), Fact("Bob", "PARENT_OF", "carol")]

        assert engine.infer("Alice", "GRANDPARENT_OF", "Carol", facts).truth is TruthValue.TRUE_CERTAIN

    def test_empty_body_proves_head(self):
        rule = Rule(name="axiom", head=Pattern("sun", "IS_A", "star"))
        result = prove_composition(Pattern("sun", "IS_A", "star"), [rule], [], max_depth=3)

        assert result.truth is TruthValue.TRUE_CERTAIN
        assert result.proof.steps == (RuleStep("axiom", "composition_rule"),)

    def test_explain_lists_steps(self, engine, grandparent_rule):
        engine.register_rule(grandparent_rule)
        facts = [Fact("Alice", "PARENT_OF", "Bob"), Fact("Bob", "PARENT_OF", "Carol")]

        text = engine.prove("Alice", "GRANDPARENT_OF", "Carol", facts).explain()

        assert "by rule: grandparent" in text
        assert "Alice PARENT_OF Bob (body_match)" in text


class TestRecursiveComposition:
    """Test suite for recursive rules."""

    def test_ancestor(self, family_engine, family_facts):
        result = family_engine.infer("A", "ANCESTOR_OF", "C", family_facts)

        assert result.truth is TruthValue.TRUE_CERTAIN
        assert result.method == "composition"
        assert result.rule == "ancestor_step"

        derived = result.proof.steps[1]
        assert isinstance(derived, FactStep)
        assert derived.justification == "derived_match"
        assert derived.fact == Fact("B", "ANCESTOR_OF", "C")
        assert derived.subproof.rule == "ancestor_base"

    def test_depth_bounds_recursion(self, family_engine):
        facts = [Fact(p, "PARENT_OF", c) for p, c in zip("ABCD", "BCDE")]

        reached = family_engine.infer_composition("A", "ANCESTOR_OF", "E", facts, max_depth=4)
        assert reached.truth is TruthValue.TRUE_CERTAIN

        bounded = family_engine.infer_composition("A", "ANCESTOR_OF", "E", facts, max_depth=3)
        assert bounded.truth is TruthValue.UNKNOWN

    def test_open_goal_uses_derived_facts(self, family_engine, family_facts):
        family_engine.register_rule(Rule(
            name="descends_from_famous",
            head=Pattern("?x", "RELATED_TO_FAMOUS", "yes"),
            body=(
                Pattern("?x", "ANCESTOR_OF", "?y"),
                Pattern("?y", "FAMOUS", "true"),
            ),
        ))
        facts = family_facts + [Fact("C", "FAMOUS", "true")]

        result = family_engine.infer("A", "RELATED_TO_FAMOUS", "yes", facts)

        assert result.truth is TruthValue.TRUE_CERTAIN
        first = result.proof.steps[0]
        assert first.fact == Fact("A", "ANCESTOR_OF", "C")
        assert first.fact.derived_by == "ancestor_step"

    def test_repeated_conjunct_not_treated_as_cycle(self, family_engine, family_facts):
        family_engine.register_rule(Rule(
            name="double_check",
            head=Pattern("?x", "CONFIRMED_ANCESTOR_OF", "?z"),
            body=(
                Pattern("?x", "ANCESTOR_OF", "?z"),
                Pattern("?x", "ANCESTOR_OF", "?z"),
            ),
        ))

        result = family_engine.infer("A", "CONFIRMED_ANCESTOR_OF", "C", family_facts)
        assert result.truth is TruthValue.TRUE_CERTAIN


class TestCycleSafety:
    """Test suite for termination on cyclic rule sets."""

    def test_self_referential_rule(self, engine):
        engine.register_rule(Rule(
            name="mirror",
            head=Pattern("?x", "KNOWS", "?y"),
            body=(Pattern("?y", "KNOWS", "?x"),),
        ))

        result = engine.infer("a", "KNOWS", "b", [])
        assert result.truth is TruthValue.UNKNOWN

    def test_mutually_recursive_rules(self, engine):
        engine.register_rule(Rule(
            name="p_from_q",
            head=Pattern("?x", "P", "?y"),
            body=(Pattern("?x", "Q", "?y"),),
        ))
        engine.register_rule(Rule(
            name="q_from_p",
            head=Pattern("?x", "Q", "?y"),
            body=(Pattern("?x", "P", "?y"),),
        ))

        assert engine.infer("a", "P", "b", []).truth is TruthValue.UNKNOWN
        assert engine.infer("a", "P", "b", [Fact("a", "Q", "b")]).rule == "p_from_q"

    def test_left_recursive_closure(self, engine):
        engine.register_rule(Rule(
            name="reach",
            head=Pattern("?x", "REACHES", "?z"),
            body=(
                Pattern("?x", "REACHES", "?y"),
                Pattern("?y", "REACHES", "?z"),
            ),
        ))
        facts = [Fact("a", "REACHES", "b"), Fact("b", "REACHES", "c")]

        assert engine.infer("a", "REACHES", "c", facts, max_depth=4).truth is TruthValue.TRUE_CERTAIN
        assert engine.infer("a", "REACHES", "d", facts, max_depth=4).truth is TruthValue.UNKNOWN


class TestSearchMemo:
    """Test suite for sub-search reuse within one composition query."""

    @pytest.fixture
    def reach_rule(self) -> Rule:
        return Rule(
            name="reach",
            head=Pattern("?x", "REACHES", "?z"),
            body=(
                Pattern("?x", "REACHES", "?y"),
                Pattern("?y", "REACHES", "?z"),
            ),
        )

    @pytest.fixture
    def chain(self) -> list[Fact]:
        return [Fact(f"n{i}", "REACHES", f"n{i + 1}") for i in range(6)]

    def test_each_open_pattern_derived_once(self, engine, reach_rule, chain, monkeypatch):
        calls = Counter()
        derive = inference._derive

        def counting_derive(pattern, rules, facts, depth, visited, cache):
            calls[(pattern, depth, visited)] += 1
            return derive(pattern, rules, facts, depth, visited, cache)

        monkeypatch.setattr(inference, "_derive", counting_derive)
        engine.register_rule(reach_rule)

        result = engine.infer("n0", "REACHES", "missing", chain, max_depth=6)

        assert result.truth is TruthValue.UNKNOWN
        assert calls
        assert max(calls.values()) == 1

    def test_cache_shared_across_calls(self, reach_rule, chain):
        cache = {}
        goal = Pattern("n0", "REACHES", "n6")

        first = prove_composition(goal, [reach_rule], chain, 6, cache=cache)
        entries = len(cache)
        second = prove_composition(goal, [reach_rule], chain, 6, cache=cache)

        assert first.truth is TruthValue.TRUE_CERTAIN
        assert entries > 0
        assert len(cache) == entries
        assert second == first

    def test_long_chain_false_query_terminates(self, engine, reach_rule):
        engine.register_rule(reach_rule)
        facts = [Fact(f"n{i}", "REACHES", f"n{i + 1}") for i in range(8)]

        assert engine.infer("n0", "REACHES", "n8", facts, max_depth=8).truth is TruthValue.TRUE_CERTAIN
        assert engine.infer("n0", "REACHES", "missing", facts, max_depth=8).truth is TruthValue.UNKNOWN
