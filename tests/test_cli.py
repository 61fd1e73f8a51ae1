"""
Integration tests for the command line interface.

Tests all CLI commands:
- validate: Validate config files
- template: Write the advection test config
- advect: Run an advection test
"""

import subprocess
import sys
import tempfile
from pathlib import Path

import pytest
import yaml

from moment_kinetics.config import advection_test_config


def run_cli(*args):
    """Run CLI command and return result."""
    result = subprocess.run(
        [sys.executable, "-m", "moment_kinetics"] + list(args),
        capture_output=True,
        text=True,
    )
    return result


@pytest.fixture
def tmpdir():
    """Create temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdirname:
        yield Path(tmpdirname)


def short_run_config(path, nstep=20):
    config = advection_test_config()
    config = config.model_copy(
        update={"time_integration": config.time_integration.model_copy(
            update={"nstep": nstep, "nwrite": 10}
        )}
    )
    config.to_yaml(path)
    return path


class TestCLIValidate:
    """Test 'validate' command."""

    def test_validate_valid_config(self, tmpdir):
        path = tmpdir / "advection.yaml"
        advection_test_config().to_yaml(path)

        result = run_cli("validate", str(path))

        assert result.returncode == 0
        assert "valid" in result.stdout.lower()

    def test_validate_invalid_config(self, tmpdir):
        config = advection_test_config().model_dump(mode="json")
        config["time_integration"]["dt"] = 1.0
        path = tmpdir / "unstable.yaml"
        path.write_text(yaml.safe_dump(config))

        result = run_cli("validate", str(path))

        assert result.returncode == 1
        assert "error" in result.stdout.lower()

    def test_validate_schema_error(self, tmpdir):
        path = tmpdir / "bad.yaml"
        path.write_text(yaml.safe_dump({"coordinates": [{"name": "z", "bc": "reflecting"}]}))

        result = run_cli("validate", str(path))

        assert result.returncode == 1
        assert "coordinates.0.bc" in result.stdout

    def test_validate_nonexistent_file(self):
        result = run_cli("validate", "nonexistent.yaml")
        assert result.returncode == 1
        assert "not found" in result.stdout


class TestCLITemplate:
    """Test 'template' command."""

    def test_template_to_stdout(self):
        result = run_cli("template")

        assert result.returncode == 0
        config = yaml.safe_load(result.stdout)
        assert config["coordinates"][0]["ngrid"] == 9

    def test_template_to_file(self, tmpdir):
        path = tmpdir / "fd.yaml"

        result = run_cli("template", "--discretization", "finite_difference", "-o", str(path))

        assert result.returncode == 0
        assert path.exists()
        assert yaml.safe_load(path.read_text())["coordinates"][0]["ngrid"] == 129


class TestCLIAdvect:
    """Test 'advect' command."""

    def test_advect_short_run(self, tmpdir):
        path = short_run_config(tmpdir / "advection.yaml")

        result = run_cli("advect", str(path), "--tolerance", "1e-2")

        assert result.returncode == 0, result.stdout + result.stderr
        assert "final max error" in result.stdout

    def test_advect_tolerance_exceeded(self, tmpdir):
        path = short_run_config(tmpdir / "advection.yaml")

        result = run_cli("advect", str(path), "--tolerance", "1e-30")

        assert result.returncode == 1
        assert "exceeds tolerance" in result.stdout

    def test_advect_writes_output_and_plots(self, tmpdir):
        path = short_run_config(tmpdir / "advection.yaml", nstep=10)
        output = tmpdir / "run.dfns.h5"
        prefix = tmpdir / "run"

        result = run_cli("advect", str(path), "-o", str(output), "--plot", str(prefix))

        assert result.returncode == 0, result.stdout + result.stderr
        assert output.exists()
        assert Path(f"{prefix}_f.png").exists()
        assert Path(f"{prefix}_error.png").exists()

    def test_advect_existing_output(self, tmpdir):
        path = short_run_config(tmpdir / "advection.yaml", nstep=10)
        output = tmpdir / "run.dfns.h5"
        output.write_text("")

        result = run_cli("advect", str(path), "-o", str(output))

        assert result.returncode == 1
        assert "exists" in result.stdout

    def test_advect_invalid_config(self, tmpdir):
        path = tmpdir / "bad.yaml"
        path.write_text(yaml.safe_dump({"n_species": 0}))

        result = run_cli("advect", str(path))

        assert result.returncode == 1
        assert "Invalid configuration" in result.stdout

    def test_advect_distributed_finite_difference(self, tmpdir):
        path = tmpdir / "fd.yaml"
        path.write_text(yaml.safe_dump({"coordinates": [{
            "name": "z", "ngrid": 5, "nelement": 4, "nrank": 2,
            "discretization": "finite_difference",
            "advection": {"option": "constant", "constant_speed": 1.0},
        }]}))

        result = run_cli("advect", str(path))

        assert result.returncode == 1
        assert "❌" in result.stdout
        assert "cannot be distributed" in result.stdout
        assert "Traceback" not in result.stderr

    def test_advect_default_speed_without_vpa(self, tmpdir):
        path = tmpdir / "default.yaml"
        path.write_text(yaml.safe_dump({"coordinates": [{"name": "z"}]}))

        result = run_cli("advect", str(path))

        assert result.returncode == 1
        assert "vpa" in result.stdout


def test_no_command_prints_help():
    result = run_cli()
    assert result.returncode == 1
    assert "usage" in result.stdout.lower()
