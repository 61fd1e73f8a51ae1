"""
Tests for error types and switchable bounds checking.
"""

import pytest
import jax.numpy as jnp

from moment_kinetics.errors import (
    BOUNDSCHECK_ENV_VAR,
    BoundsError,
    ConfigurationError,
    boundscheck_enabled,
    check_bounds,
    check_extent,
)


def test_error_hierarchy():
    """Callers catching the builtin types still see these errors."""
    assert issubclass(BoundsError, IndexError)
    assert issubclass(ConfigurationError, ValueError)


def test_enabled_by_default(monkeypatch):
    monkeypatch.delenv(BOUNDSCHECK_ENV_VAR, raising=False)
    assert boundscheck_enabled()


@pytest.mark.parametrize("value", ["0", "false", "No", "OFF"])
def test_disabled_via_environment(monkeypatch, value):
    monkeypatch.setenv(BOUNDSCHECK_ENV_VAR, value)

    assert not boundscheck_enabled()
    check_bounds(False, "not raised")
    check_extent("f", jnp.zeros(3), 5)


def test_check_bounds(monkeypatch):
    monkeypatch.delenv(BOUNDSCHECK_ENV_VAR, raising=False)

    check_bounds(True, "fine")
    with pytest.raises(BoundsError, match="broken"):
        check_bounds(False, "broken")


def test_check_extent(monkeypatch):
    monkeypatch.delenv(BOUNDSCHECK_ENV_VAR, raising=False)

    check_extent("f", jnp.zeros((3, 4)), 4, axis=1)
    with pytest.raises(BoundsError, match=r"f has shape \(3, 4\), expected 5 entries along axis 0"):
        check_extent("f", jnp.zeros((3, 4)), 5)
    with pytest.raises(BoundsError, match="axis 2"):
        check_extent("f", jnp.zeros((3, 4)), 4, axis=2)
