"""Shared pytest fixtures for tilecollapse tests."""

from __future__ import annotations

import logging

import pytest

from tilecollapse.constants import LOGGER_NAME
from tilecollapse.model.grid import Grid
from tilecollapse.model.rule_set import RuleSet
from tilecollapse.model.wfc import WFC, WFCOptions
from tilecollapse.model.weighting import Weighting


# =============================================================================
# Rules
# =============================================================================


def _same_rule(allowed: list[str]) -> dict[str, list[str]]:
    return {"up": list(allowed), "down": list(allowed), "left": list(allowed), "right": list(allowed)}


@pytest.fixture
def checkerboard_rules() -> dict[str, dict[str, list[str]]]:
    """Two tile types that may only be placed next to the other type."""
    return {"A": _same_rule(["B"]), "B": _same_rule(["A"])}


@pytest.fixture
def terrain_rules() -> dict[str, dict[str, list[str]]]:
    """Water, sand and grass, where sand may touch everything. These rules can never contradict."""
    return {
        "water": _same_rule(["water", "sand"]),
        "sand": _same_rule(["water", "sand", "grass"]),
        "grass": _same_rule(["sand", "grass"]),
    }


@pytest.fixture
def undeclared_rules() -> dict[str, dict[str, list[str]]]:
    """Rules that reference a tile type 'C' which never gets a rule of its own."""
    return {"A": _same_rule(["C"])}


# =============================================================================
# Model objects
# =============================================================================


@pytest.fixture
def rule_set() -> RuleSet:
    return RuleSet()


@pytest.fixture
def weighting(rule_set: RuleSet) -> Weighting:
    return Weighting(rule_set.registry)


@pytest.fixture
def grid() -> Grid:
    """A 3 (wide) x 2 (high) grid."""
    return Grid(3, 2)


@pytest.fixture
def checkerboard_wfc(checkerboard_rules) -> WFC:
    """A 2x2 checkerboard buffer with seed 1, ready to run."""
    wfc = WFC(WFCOptions(width=2, height=2, seed=1))
    wfc.set_rules(checkerboard_rules)
    return wfc


@pytest.fixture
def terrain_wfc(terrain_rules) -> WFC:
    """An 8x6 terrain buffer with seed 42, ready to run."""
    wfc = WFC(WFCOptions(width=8, height=6, seed=42))
    wfc.set_rules(terrain_rules)
    return wfc


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture
def restore_logging():
    """Restores the handlers and level of the 'tilecollapse' logger after a test."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
