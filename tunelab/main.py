#!/usr/bin/env python
"""
tunelab - Main Entry Point
Runs the configured hyperparameter tuning workflows: auto-tuning with
held-out scoring, nested resampling, benchmarking and SVM exploration.
"""
import sys
import logging
import argparse
import traceback
from pathlib import Path

from tunelab.config_manager import ConfigurationManager
from tunelab.experiment_runner import ExperimentRunner, MODES
from tunelab.logging_config import LoggingConfigurator
from tunelab.utils.exceptions import TuneLabException
from tunelab.utils import constants


def parse_arguments(argv=None):
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        description="tunelab - Hyperparameter Tuning & SVM Exploration Workbench",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config/config.json",
        help="Path to the configuration JSON file"
    )

    parser.add_argument(
        "--schema",
        type=str,
        default="config/schema.json",
        help="Path to the configuration JSON schema"
    )

    parser.add_argument(
        "--mode",
        choices=MODES,
        default="all",
        help="Workflow to run ('all' runs every workflow enabled in the config)"
    )

    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Optional run identifier (defaults to timestamp if not provided)"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and setup without running any workflow"
    )

    return parser.parse_args(argv)


def setup_run_directory(config: dict, run_id: str, logger: logging.Logger = None) -> Path:
    """
    Create the run directory `<base_results_dir>/<run_id>` with its numbered
    result folders.
    """
    base_results_dir = config.get('outputs', {}).get('base_results_dir', 'results')
    run_dir = (Path(base_results_dir) / run_id).absolute()
    run_dir.mkdir(parents=True, exist_ok=True)
    for name in constants.TOP_LEVEL_RESULT_DIRS:
        (run_dir / name).mkdir(exist_ok=True)
    if logger:
        logger.info(f"Created run directory: {run_dir}")
    return run_dir


def main(argv=None):
    """
    Main orchestration function.

    Handles configuration loading, logging setup and execution of the
    requested workflow.

    Returns:
        int: Exit code (0 for success, 1 for errors, 130 when interrupted)
    """
    logger = None

    try:
        args = parse_arguments(argv)

        print("\n" + "=" * 80)
        print("    TUNELAB - HYPERPARAMETER TUNING WORKBENCH")
        print("=" * 80 + "\n")

        # 1. Load and validate configuration
        config_manager = ConfigurationManager(config_path=args.config, schema_path=args.schema)
        config = config_manager.load_and_validate()

        # Override config settings from CLI if provided
        if args.verbose:
            config.setdefault('logging', {})['level'] = 'DEBUG'

        # 2. Setup logging
        logging_configurator = LoggingConfigurator(config)
        logging_configurator.setup()
        logger = logging_configurator.get_logger('tunelab')

        logger.info(f"Configuration loaded from: {args.config}")

        # 3. Setup run directory
        run_id = args.run_id or config_manager.generate_run_id()
        config_manager.run_id = run_id
        run_dir = setup_run_directory(config, run_id, logger=logger)
        config['outputs']['base_results_dir'] = str(run_dir)

        # 4. Save configuration artifacts
        config_manager.save_artifacts(str(run_dir))

        logger.info(f"Run ID: {run_id}")
        logger.info(f"Mode: {args.mode}")
        logger.info(f"Output Directory: {run_dir}")

        # Dry run mode: exit after validation
        if args.dry_run:
            logger.info("Dry run mode: validation complete. Exiting without running any workflow.")
            print("\n[SUCCESS] Configuration validated successfully.")
            return 0

        # 5. Run workflows
        runner = ExperimentRunner(config, logger)
        runner.run(args.mode)

        logger.info("\n" + "-" * 60)
        logger.info("RUN COMPLETED SUCCESSFULLY")
        logger.info(f"Run ID: {run_id}")
        logger.info(f"Output Directory: {run_dir}")
        logger.info("-" * 60 + "\n")

        print(f"\n[SUCCESS] Run completed. Results saved to: {run_dir}")
        return 0

    except TuneLabException as e:
        # Known workbench errors
        msg = f"Run Error: {str(e)}"
        print(f"\n[ERROR] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1

    except KeyboardInterrupt:
        print("\n[INTERRUPTED] Run interrupted by user.")
        if logger:
            logger.warning("Run interrupted by user (Ctrl+C)")
        return 130

    except Exception as e:
        # Unexpected errors
        msg = f"Unexpected Error: {str(e)}"
        print(f"\n[CRITICAL] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
