"""
Unit tests for parameter validation module.

Tests all validation functions including:
- Resolution checks per discretization
- CFL condition validation
- Whole-config validation
- Config dict validation
"""

import pytest

from moment_kinetics.config import (
    AdvectionInput,
    CoordinateInput,
    SimulationConfig,
    TimeIntegrationInput,
    advection_test_config,
)
from moment_kinetics.validation import (
    MAX_RECOMMENDED_NGRID,
    ValidationResult,
    validate_cfl_condition,
    validate_config,
    validate_config_dict,
    validate_resolution,
)


class TestValidationResult:
    """Test ValidationResult dataclass."""

    def test_merge(self):
        a = ValidationResult(True, ["w1"], [], ["s1"])
        b = ValidationResult(False, [], ["e1"], [])

        merged = a.merge(b)

        assert not merged.valid
        assert merged.warnings == ["w1"]
        assert merged.errors == ["e1"]
        assert merged.suggestions == ["s1"]

    def test_print_report_no_crash(self, capsys):
        """Ensure print_report doesn't crash."""
        result = ValidationResult(
            valid=False,
            warnings=["Test warning"],
            errors=["Test error"],
            suggestions=["Test suggestion"]
        )
        result.print_report()
        captured = capsys.readouterr()
        assert "ERRORS" in captured.out
        assert "WARNINGS" in captured.out
        assert "SUGGESTIONS" in captured.out

    def test_print_report_all_valid(self, capsys):
        ValidationResult(True, [], [], []).print_report()
        assert "All parameters valid" in capsys.readouterr().out


class TestResolution:
    """Test resolution checks."""

    def test_typical_chebyshev(self):
        result = validate_resolution(CoordinateInput(ngrid=9, nelement=8))
        assert result.valid
        assert not result.warnings

    def test_single_point_elements(self):
        """ngrid = 1 only works for a single-point coordinate."""
        result = validate_resolution(CoordinateInput(name="vpa", ngrid=1, nelement=2))
        assert not result.valid
        assert "at least 2 points" in result.errors[0]

    def test_single_point_coordinate_warns(self):
        result = validate_resolution(CoordinateInput(name="vpa", ngrid=1, nelement=1))
        assert result.valid
        assert "single point" in result.warnings[0]

    def test_very_high_order(self):
        result = validate_resolution(CoordinateInput(ngrid=MAX_RECOMMENDED_NGRID + 2, nelement=1))

        assert result.valid
        assert len(result.warnings) == 1
        assert "more elements" in result.suggestions[0]

    def test_finite_difference_too_few_points(self):
        result = validate_resolution(
            CoordinateInput(ngrid=2, nelement=1, discretization="finite_difference")
        )
        assert not result.valid

    def test_finite_difference_distributed(self):
        result = validate_resolution(
            CoordinateInput(ngrid=9, nelement=2, nrank=2, discretization="finite_difference")
        )
        assert not result.valid
        assert any("cannot be distributed" in e for e in result.errors)

    def test_periodic_across_ranks(self):
        result = validate_resolution(CoordinateInput(nelement=4, nrank=2))
        assert result.valid
        assert any("communication layer" in s for s in result.suggestions)


class TestCFLValidation:
    """Test CFL condition validation."""

    def test_cfl_safe(self):
        result = validate_cfl_condition(dt=0.001, min_spacing=0.01, max_speed=1.0)
        assert result.valid
        assert len(result.errors) == 0
        assert "safe" in result.suggestions[0]

    def test_cfl_near_limit(self):
        result = validate_cfl_condition(dt=0.009, min_spacing=0.01, max_speed=1.0)
        assert result.valid
        assert len(result.warnings) == 1

    def test_cfl_violated(self):
        result = validate_cfl_condition(dt=0.02, min_spacing=0.01, max_speed=-1.0)
        assert not result.valid
        assert "CFL condition violated" in result.errors[0]
        assert "Reduce dt" in result.suggestions[0]

    def test_zero_speed(self):
        result = validate_cfl_condition(dt=10.0, min_spacing=0.01, max_speed=0.0)
        assert result.valid

    def test_invalid_spacing(self):
        result = validate_cfl_condition(dt=0.001, min_spacing=0.0)
        assert not result.valid


class TestConfigValidation:
    """Test validation of parsed configurations."""

    @pytest.mark.parametrize("discretization", ["chebyshev_pseudospectral", "finite_difference"])
    def test_templates_are_valid(self, discretization):
        result = validate_config(advection_test_config(discretization))
        assert result.valid, result.errors

    def test_large_timestep_rejected(self):
        config = advection_test_config()
        config = config.model_copy(
            update={"time_integration": config.time_integration.model_copy(update={"dt": 0.1})}
        )

        result = validate_config(config)

        assert not result.valid
        assert "CFL" in result.errors[0]

    def test_linear_speed_bound(self):
        """c·(x + L/2) reaches c·L at the upper boundary."""
        z = CoordinateInput(
            ngrid=9, nelement=8, L=10.0,
            advection=AdvectionInput(option="linear", constant_speed=1.0),
        )
        config = SimulationConfig(coordinates=[z], time_integration=TimeIntegrationInput(dt=0.01))

        # smallest cell is ~0.048 and the speed reaches 10, so CFL ~ 2
        assert not validate_config(config).valid

    def test_default_speed_without_vpa(self):
        config = SimulationConfig(coordinates=[CoordinateInput(name="z")])

        result = validate_config(config)

        assert not result.valid
        assert "vpa" in result.errors[0]

    def test_default_speed_with_vpa(self):
        config = SimulationConfig(
            coordinates=[
                CoordinateInput(name="z", ngrid=9, nelement=4),
                CoordinateInput(name="vpa", ngrid=5, nelement=2, L=2.0, bc="zero"),
            ]
        )
        assert validate_config(config).valid

    def test_bad_resolution_stops_early(self):
        config = SimulationConfig(coordinates=[CoordinateInput(ngrid=1, nelement=2)])

        result = validate_config(config)

        assert not result.valid
        assert len(result.errors) == 1


class TestConfigDict:
    """Test validation of raw config dictionaries."""

    def test_valid_dict(self):
        config = {
            "coordinates": [
                {"name": "z", "ngrid": 9, "nelement": 8,
                 "advection": {"option": "constant", "constant_speed": 1.0}},
            ],
            "time_integration": {"dt": 0.001, "nstep": 1000},
        }
        assert validate_config_dict(config).valid

    def test_schema_errors_reported_with_location(self):
        config = {"coordinates": [{"name": "z", "ngrid": 0}]}

        result = validate_config_dict(config)

        assert not result.valid
        assert any(e.startswith("coordinates.0.ngrid") for e in result.errors)

    def test_empty_dict_uses_defaults(self):
        """The default coordinate has the 'default' option and no vpa to stream along."""
        result = validate_config_dict({})
        assert not result.valid
