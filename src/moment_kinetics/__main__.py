"""
CLI interface for moment_kinetics tools.

Usage:
    python -m moment_kinetics validate <config.yaml>
    python -m moment_kinetics template --discretization chebyshev_pseudospectral -o advection.yaml
    python -m moment_kinetics advect <config.yaml>
"""

import argparse
import math
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import SimulationConfig, advection_test_config
from .errors import BoundsError, ConfigurationError
from .validation import validate_config_dict


def cmd_validate(args):
    """Validate parameters from a config file."""
    config_path = Path(args.config)

    if not config_path.exists():
        print(f"❌ Config file not found: {config_path}")
        return 1

    print(f"Validating {config_path}...")
    print("=" * 70)

    # Load config
    with open(config_path) as f:
        config = yaml.safe_load(f) or {}

    # Validate
    result = validate_config_dict(config)

    # Print report
    result.print_report()

    print("=" * 70)

    if result.valid:
        print("✓ Configuration is valid")
        return 0
    else:
        print("❌ Configuration has errors (see above)")
        return 1


def cmd_template(args):
    """Write the advection test configuration."""
    config = advection_test_config(args.discretization)
    text = config.to_yaml(args.output)
    if args.output:
        print(f"✓ Wrote {args.output}")
    else:
        print(text, end="")
    return 0


def _plot_run(run, config, prefix):
    from .calculus import setup_discretization
    from .diagnostics import plot_error_history, plot_line
    from .time_advance import exact_periodic_solution

    coord = run.coords[config.advected.name]
    fields = run.fields[0]
    exact = None
    if coord.periodic and coord.advection.option == "constant":
        exact = exact_periodic_solution(
            coord, config.initial_condition, coord.advection.constant_speed,
            fields.time, fields.f.shape[1:],
        )
    plot_line(
        fields.f, coord, setup_discretization(coord), exact=exact, t=fields.time,
        line=(0,) * (fields.f.ndim - 1), filename=f"{prefix}_f.png", show=False,
    )
    print(f"✓ Wrote {prefix}_f.png")
    if exact is not None:
        plot_error_history(run.times, run.max_errors, filename=f"{prefix}_error.png", show=False)
        print(f"✓ Wrote {prefix}_error.png")


def cmd_advect(args):
    """Run the advection test described by a config file."""
    from .time_advance import run_advection

    config_path = Path(args.config)
    if not config_path.exists():
        print(f"❌ Config file not found: {config_path}")
        return 1

    try:
        config = SimulationConfig.from_yaml(config_path)
    except ValidationError as e:
        print(f"❌ Invalid configuration:\n{e}")
        return 1

    print("=" * 70)
    try:
        run = run_advection(config, verbose=True, output=args.output, overwrite=args.overwrite)
    except (ConfigurationError, BoundsError, FileExistsError) as e:
        print(f"❌ {e}")
        return 1
    print("=" * 70)

    if args.output:
        print(f"✓ Wrote {args.output}")
    if args.plot:
        _plot_run(run, config, args.plot)

    final_error = run.max_errors[-1]
    if math.isnan(final_error):
        print(f"✓ Advection finished at t = {run.times[-1]:.4f}")
        return 0
    if args.tolerance is not None and final_error > args.tolerance:
        print(f"❌ Final max error {final_error:.3e} exceeds tolerance {args.tolerance:.3e}")
        return 1
    print(f"✓ Advection finished at t = {run.times[-1]:.4f}, final max error {final_error:.3e}")
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="moment_kinetics advection tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Write the advection test config and validate it
  python -m moment_kinetics template -o advection.yaml
  python -m moment_kinetics validate advection.yaml

  # Advect a Gaussian once around the periodic box
  python -m moment_kinetics advect advection.yaml --tolerance 1e-3
"""
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Validate command
    parser_validate = subparsers.add_parser(
        "validate",
        help="Validate parameters from a config file"
    )
    parser_validate.add_argument(
        "config",
        help="Path to YAML config file"
    )

    # Template command
    parser_template = subparsers.add_parser(
        "template",
        help="Print (or write) the advection test config"
    )
    parser_template.add_argument(
        "--discretization",
        choices=["chebyshev_pseudospectral", "finite_difference"],
        default="chebyshev_pseudospectral",
        help="Discretization of the advected coordinate (default: chebyshev_pseudospectral)"
    )
    parser_template.add_argument(
        "-o", "--output",
        help="Write the config to this path instead of stdout"
    )

    # Advect command
    parser_advect = subparsers.add_parser(
        "advect",
        help="Run the advection described by a config file"
    )
    parser_advect.add_argument(
        "config",
        help="Path to YAML config file"
    )
    parser_advect.add_argument(
        "--tolerance",
        type=float,
        help="Fail if the final max error against the exact solution exceeds this"
    )
    parser_advect.add_argument(
        "-o", "--output",
        help="Write f at every output time to this HDF5 file"
    )
    parser_advect.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace an existing output file"
    )
    parser_advect.add_argument(
        "--plot",
        metavar="PREFIX",
        help="Save plots of the final state (and error history) as PREFIX_*.png"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "validate":
        return cmd_validate(args)
    elif args.command == "template":
        return cmd_template(args)
    elif args.command == "advect":
        return cmd_advect(args)


if __name__ == "__main__":
    sys.exit(main())
