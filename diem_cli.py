#!/usr/bin/env python3
"""
Schedule solver CLI - Minimal entry point.

Solves a scheduling problem described in YAML under the generation and
time budgets given in a run configuration file.

Usage:
    python3 diem_cli.py run_config.yaml
    python3 diem_cli.py --config run_config.yaml
    python3 diem_cli.py --verbose run_config.yaml
    python3 diem_cli.py --help

Examples:
    # Solve the sample week
    python3 diem_cli.py examples/week_run.yaml
"""

import logging
import sys
from pathlib import Path

# Add project root to path if needed
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def main():
    """Main entry point for the solver CLI."""
    args = sys.argv[1:]

    if not args or args[0] in ['-h', '--help', 'help']:
        print(__doc__)
        sys.exit(0 if args else 1)

    verbose = False
    if args[0] in ['-v', '--verbose']:
        verbose = True
        args = args[1:]
        if not args:
            print("Error: missing run configuration path")
            print(__doc__)
            sys.exit(1)

    config_path = args[0]

    if config_path.startswith('--config='):
        config_path = config_path.split('=', 1)[1]
    elif config_path == '--config':
        if len(args) < 2:
            print("Error: --config requires an argument")
            print(__doc__)
            sys.exit(1)
        config_path = args[1]

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        from diem_ga.cli import run_from_config
        run_from_config(config_path)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
