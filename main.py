#!/usr/bin/env python3
"""
Propagation benchmark harness - CLI Entry Point

Usage:
    python main.py info
    python main.py validate CONFIG_PATH
    python main.py count CONFIG_PATH
    python main.py run CONFIG_PATH [--force] [--output PATH] [--cache-dir DIR]
    python main.py show RESULT_PATH [--html]
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))


def cmd_info(args):
    """Print information about the benchmark machine."""
    from utils.environment import info

    info()
    return 0


def cmd_validate(args):
    """Validate a sweep configuration YAML."""
    from sweep.sweep_config import load_sweep_config, run_arguments
    from utils.errors import ConfigurationError

    config_path = Path(args.config)
    try:
        config = load_sweep_config(config_path)
        # Resolve every function and parameter reference
        run_arguments(config)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1
    except ConfigurationError as e:
        print(f"Validation error: {e}")
        return 1

    print(f"Config validated successfully: {config_path}")
    print(f"\nSweep: {config['name']}")
    if config.get('description'):
        print(f"Description: {config['description']}")
    print(f"Benchmark: {config['benchmark']['function']}")
    return 0


def cmd_count(args):
    """Show how many systems and benchmarks a sweep expands to."""
    from sweep.params import format_params
    from sweep.sweep_config import count_benchmarks, load_sweep_config, parameters_from_config
    from utils.errors import ConfigurationError

    try:
        config = load_sweep_config(args.config)
        counts = count_benchmarks(config)
    except (FileNotFoundError, ConfigurationError) as e:
        print(f"Error: {e}")
        return 1

    for section in ('system', 'exact_solution', 'benchmark'):
        parameters = parameters_from_config((config.get(section) or {}).get('parameters'))
        if parameters:
            print(f"{section}: {format_params(parameters)}")
    print(f"\nSystems: {counts['systems']}")
    print(f"Benchmarks: {counts['benchmarks']}")
    return 0


def cmd_run(args):
    """Run a sweep and print the collected table."""
    from sweep.sweep_config import load_sweep_config, run_sweep
    from utils.errors import ConfigurationError

    try:
        config = load_sweep_config(args.config)
    except (FileNotFoundError, ConfigurationError) as e:
        print(f"Error: {e}")
        return 1

    print(f"Running sweep: {config['name']}")
    results = run_sweep(
        config,
        cache_dir=args.cache_dir,
        output=args.output,
        force=args.force,
    )
    print(f"\n{results}")
    return 0


def cmd_show(args):
    """Print a stored result table."""
    from data.caches import load_result

    try:
        results = load_result(args.result)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1

    print(results.render('html' if args.html else 'text'))
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Propagation benchmark harness",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # info
    subparsers.add_parser("info", help="Show machine and library information")

    # validate
    p_validate = subparsers.add_parser("validate", help="Validate sweep config")
    p_validate.add_argument("config", help="Path to sweep YAML")

    # count
    p_count = subparsers.add_parser("count", help="Count benchmarks in a sweep")
    p_count.add_argument("config", help="Path to sweep YAML")

    # run
    p_run = subparsers.add_parser("run", help="Run a sweep")
    p_run.add_argument("config", help="Path to sweep YAML")
    p_run.add_argument("--force", action="store_true", help="Ignore a stored result")
    p_run.add_argument("--output", help="Path of the stored result table")
    p_run.add_argument("--cache-dir", help="Directory for stage caches")

    # show
    p_show = subparsers.add_parser("show", help="Show a stored result table")
    p_show.add_argument("result", help="Path to stored result")
    p_show.add_argument("--html", action="store_true", help="Render as HTML")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    # Dispatch to command handler
    handlers = {
        "info": cmd_info,
        "validate": cmd_validate,
        "count": cmd_count,
        "run": cmd_run,
        "show": cmd_show,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
