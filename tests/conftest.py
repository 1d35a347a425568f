"""
Pytest fixtures for inference engine tests.

Engines are built with explicit settings so a developer's environment or
.env file never changes test outcomes.
"""

import pytest

from triple_inference import (
    DefaultRule,
    EngineSettings,
    Fact,
    InferenceEngine,
    Pattern,
    Rule,
)

# =============================================================================
# ENGINE FIXTURES
# =============================================================================


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(_env_file=None)


@pytest.fixture
def engine(settings: EngineSettings) -> InferenceEngine:
    """Engine seeded with the built-in relation table."""
    return InferenceEngine(settings=settings)


@pytest.fixture
def ancestor_rules() -> list[Rule]:
    """Base and recursive ancestor-of rules."""
    return [
        Rule(
            name="ancestor_base",
            head=Pattern("?x", "ANCESTOR_OF", "?z"),
            body=(Pattern("?x", "PARENT_OF", "?z"),),
        ),
        Rule(
            name="ancestor_step",
            head=Pattern("?x", "ANCESTOR_OF", "?z"),
            body=(
                Pattern("?x", "PARENT_OF", "?y"),
                Pattern("?y", "ANCESTOR_OF", "?z"),
            ),
        ),
    ]


@pytest.fixture
def family_engine(engine: InferenceEngine, ancestor_rules: list[Rule]) -> InferenceEngine:
    for rule in ancestor_rules:
        engine.register_rule(rule)
    return engine


@pytest.fixture
def birds_fly() -> DefaultRule:
    return DefaultRule(
        name="birds_fly",
        typical_type="Bird",
        property="CAN",
        value="fly",
        exceptions=("Penguin",),
    )


@pytest.fixture
def bird_engine(engine: InferenceEngine, birds_fly: DefaultRule) -> InferenceEngine:
    engine.register_default(birds_fly)
    return engine


# =============================================================================
# FACT FIXTURES
# =============================================================================


@pytest.fixture
def taxonomy_facts() -> list[Fact]:
    return [
        Fact("Dog", "IS_A", "mammal"),
        Fact("mammal", "IS_A", "animal"),
        Fact("animal", "IS_A", "living_thing"),
    ]


@pytest.fixture
def bird_facts() -> list[Fact]:
    return [
        Fact("Tweety", "IS_A", "Bird"),
        Fact("Pete", "IS_A", "Penguin"),
        Fact("Penguin", "IS_A", "Bird"),
    ]


@pytest.fixture
def family_facts() -> list[Fact]:
    return [
        Fact("A", "PARENT_OF", "B"),
        Fact("B", "PARENT_OF", "C"),
    ]
