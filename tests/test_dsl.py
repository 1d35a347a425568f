"""
Tests for the fluent DSL and textual inference commands.
"""

import pytest

from triple_inference import InferenceDSL, TruthValue
from triple_inference.dsl import X, Y, Z, explain


@pytest.fixture
def dsl(engine) -> InferenceDSL:
    r = InferenceDSL(engine)
    r.fact("Alice", "PARENT_OF", "Bob")
    r.fact("Bob", "PARENT_OF", "Carol")
    r.rule("GRANDPARENT_OF", X, Z) \
        .when("PARENT_OF", X, Y) \
        .and_("PARENT_OF", Y, Z) \
        .named("grandparent") \
        .done()
    return r


# =============================================================================
# BUILDERS
# =============================================================================


class TestBuilders:
    """Test suite for the fluent builders."""

    def test_rule_registered(self, dsl):
        (rule,) = dsl.engine.rules
        assert rule.name == "grandparent"
        assert len(rule.body) == 2

    def test_default_rule_name(self, engine):
        r = InferenceDSL(engine)
        rule = r.rule("ANCESTOR_OF", X, Z).when("PARENT_OF", X, Z).done()
        assert rule.name == "ANCESTOR_OF_rule_1"

    def test_default_builder(self, engine):
        r = InferenceDSL(engine)
        r.fact("Tweety", "IS_A", "Bird")
        r.fact("Pete", "IS_A", "Penguin")
        r.fact("Penguin", "IS_A", "Bird")

        r.default("birds_fly").typical("Bird").has("CAN", "fly").unless("Penguin").done()

        assert r.infer("Tweety", "CAN", "fly").truth is TruthValue.TRUE_DEFAULT
        assert r.infer("Pete", "CAN", "fly").truth is TruthValue.FALSE
        assert r.holds("Tweety", "CAN", "fly")
        assert not r.holds("Pete", "CAN", "fly")

    def test_incomplete_default(self, engine):
        with pytest.raises(ValueError, match="typical"):
            InferenceDSL(engine).default("broken").has("CAN", "fly").done()

    def test_relation_properties(self, engine):
        r = InferenceDSL(engine)
        r.relation("FRIEND_OF", symmetric=True)
        r.fact("Ann", "FRIEND_OF", "Ben")

        assert r.infer("Ben", "FRIEND_OF", "Ann").method == "symmetric"

    def test_fact_extra_fields(self, engine):
        fact = InferenceDSL(engine).fact("a", "R", "b", source="survey")
        assert fact.extra == {"source": "survey"}


# =============================================================================
# QUERIES
# =============================================================================


class TestQueries:
    """Test suite for querying through the DSL."""

    def test_infer_and_prove(self, dsl):
        assert dsl.infer("Alice", "GRANDPARENT_OF", "Carol").truth is TruthValue.TRUE_CERTAIN
        assert dsl.prove("Alice", "GRANDPARENT_OF", "Carol").rule == "grandparent"

    def test_why(self, dsl):
        text = dsl.why("Alice", "GRANDPARENT_OF", "Carol")

        assert text.startswith("Query: Alice GRANDPARENT_OF Carol")
        assert "Result: TRUE_CERTAIN" in text
        assert "Reasoning chain:" in text
        assert "Applied rule: grandparent" in text
        assert "Method: composition" in text
        assert "Confidence: 90.0%" in text

    def test_why_unknown(self, dsl):
        text = dsl.why("Carol", "GRANDPARENT_OF", "Alice")

        assert "Result: UNKNOWN" in text
        assert "Reasoning chain:" not in text
        assert "Method: exhausted" in text

    def test_derive_all(self, dsl):
        derived = dsl.derive_all()

        assert [str(f) for f in derived] == ["Alice GRANDPARENT_OF Carol"]
        assert len(dsl.facts) == 2

        dsl.derive_all(materialize=True)
        assert len(dsl.facts) == 3

    def test_clear_keeps_rules(self, dsl):
        dsl.clear()

        assert dsl.facts == []
        assert len(dsl.engine.rules) == 1

    def test_explain_function(self, dsl):
        result = dsl.infer("Alice", "GRANDPARENT_OF", "Carol")
        assert explain("Alice", "GRANDPARENT_OF", "Carol", result) == dsl.why(
            "Alice", "GRANDPARENT_OF", "Carol"
        )


# =============================================================================
# COMMANDS
# =============================================================================


class TestCommands:
    """Test suite for INFER / WHY / FORWARD_CHAIN."""

    def test_infer(self, dsl):
        response = dsl.command("INFER Alice GRANDPARENT_OF Carol")

        assert response["truth"] == "TRUE_CERTAIN"
        assert response["method"] == "composition"
        assert response["query"] == {
            "subject": "Alice",
            "relation": "GRANDPARENT_OF",
            "object": "Carol",
        }
        assert "proof" not in response

    def test_infer_with_proof(self, dsl):
        response = dsl.command("INFER Alice GRANDPARENT_OF Carol proof=true")
        assert response["proof"]["rule"] == "grandparent"

    def test_infer_with_method(self, dsl):
        response = dsl.command("INFER Alice GRANDPARENT_OF Carol method=direct")
        assert response["truth"] == "UNKNOWN"

    def test_infer_with_unknown_method(self, dsl):
        response = dsl.command("INFER Alice GRANDPARENT_OF Carol method=telepathy")

        assert response["truth"] == "UNKNOWN"
        assert response["method"] == "exhausted"

    def test_infer_with_max_depth(self, engine):
        r = InferenceDSL(engine)
        for i in range(4):
            r.fact(f"n{i}", "IS_A", f"n{i + 1}")

        assert r.command("INFER n0 IS_A n4 maxDepth=2")["truth"] == "UNKNOWN"
        assert r.command("INFER n0 IS_A n4 maxDepth=4")["truth"] == "TRUE_CERTAIN"

    def test_multi_word_object(self, engine):
        r = InferenceDSL(engine)
        r.fact("Bob", "LIKES", "ice cream")

        assert r.command("INFER Bob LIKES ice cream")["truth"] == "TRUE_CERTAIN"
        assert r.command('INFER Bob LIKES "ice cream"')["truth"] == "TRUE_CERTAIN"

    def test_why(self, dsl):
        response = dsl.command("WHY Alice GRANDPARENT_OF Carol")

        assert "Reasoning chain:" in response["explanation"]
        assert response["proof"]["valid"] is True

    def test_forward_chain(self, dsl):
        response = dsl.command("FORWARD_CHAIN maxIterations=10")

        assert response["count"] == 1
        assert response["original_count"] == 2
        assert response["derived"][0]["derived_by"] == "grandparent"

    @pytest.mark.parametrize("line", ["INFER Alice", "WHY Alice PARENT_OF", "TELEPORT a b c", ""])
    def test_invalid_commands(self, dsl, line):
        with pytest.raises(ValueError):
            dsl.command(line)

    def test_non_integer_option(self, dsl):
        with pytest.raises(ValueError, match="maxDepth"):
            dsl.command("INFER Alice GRANDPARENT_OF Carol maxDepth=deep")
