"""
Logging utilities for consistent logging across all analyses.

This module provides a centralized logging setup to ensure consistent log
formatting, file output, and console output across all scripts.

Usage
-----
>>> from intersubcorr.logging_utils import setup_logging
>>> logger = setup_logging(output_dir / "analysis.log")
>>> logger.info("Starting analysis...")

Or use the all-in-one setup:
>>> from intersubcorr.logging_utils import setup_analysis
>>> config, output_dir, logger = setup_analysis("isc_cluster", Path("results"), __file__)
"""

import logging
import sys
import os
import warnings
import numpy as np
from pathlib import Path
from datetime import datetime
from .io_utils import copy_script_to_results

LOGGER_NAME = 'intersubcorr'


def _get_log_level_from_env():
    """
    Get logging level from ISC_LOG_LEVEL environment variable.

    Returns
    -------
    int
        logging.DEBUG, logging.INFO, logging.WARNING, or logging.ERROR
        Defaults to logging.INFO if not set or invalid

    Examples
    --------
    export ISC_LOG_LEVEL=DEBUG    # Verbose config dumps
    export ISC_LOG_LEVEL=INFO     # Normal operation (default)
    export ISC_LOG_LEVEL=WARNING  # Quiet mode
    """
    level_str = os.environ.get('ISC_LOG_LEVEL', 'INFO').upper()
    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
    }
    return level_map.get(level_str, logging.INFO)


def setup_logging(log_file=None, level=None, console=True):
    """
    Set up logging with consistent formatting for file and console output.

    The returned logger is the package root logger ('intersubcorr'), so
    messages emitted by library modules through ``logging.getLogger(__name__)``
    end up in the same file and console stream.

    Parameters
    ----------
    log_file : str or Path, optional
        Path to log file. If None, only console logging is used.
    level : int, optional
        Logging level. If None, reads from ISC_LOG_LEVEL (default: INFO)
    console : bool, default=True
        Whether to also log to console (in addition to file)

    Returns
    -------
    logging.Logger
        Configured logger instance

    Notes
    -----
    - Log format: "YYYY-MM-DD HH:MM:SS - LEVEL - message"
    - Creates parent directories for log_file if they don't exist
    """
    if level is None:
        level = _get_log_level_from_env()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # Prevent propagation to root logger (avoids duplicate messages)
    logger.propagate = False

    return logger


def log_script_start(logger, script_path, config_dict=None):
    """
    Log the start of a script with configuration information.

    Logs a concise header at INFO level. Full configuration is logged at DEBUG
    level; use ISC_LOG_LEVEL=DEBUG to see complete config dumps.
    """
    logger.info("=" * 80)
    logger.info(f"{Path(script_path).name}")
    logger.info("=" * 80)

    if config_dict is not None:
        seed = config_dict.get('RANDOM_SEED', 'N/A')
        logger.debug(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.debug(f"Random seed: {seed}")
        logger.debug("-" * 80)
        logger.debug("Full configuration:")
        for key, value in config_dict.items():
            logger.debug(f"  {key}: {value}")
        logger.debug("-" * 80)


def log_script_end(logger):
    """Log the end of a script."""
    logger.info("=" * 80)
    logger.info(f"Completed: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 80)


def _build_config(output_dir: Path, extra_config: dict = None) -> dict:
    from .constants import CONFIG

    # Convert Path objects to strings for better logging/serialization
    config = {}
    for key, value in CONFIG.items():
        if isinstance(value, Path):
            config[key] = str(value)
        else:
            config[key] = value

    config['OUTPUT_DIR'] = str(output_dir)
    if extra_config is not None:
        config.update(extra_config)
    return config


def _start_run(run_dir: Path, script_file: str, extra_config: dict,
               suppress_warnings: bool, log_name: str) -> tuple:
    """Log to ``run_dir``, seed numpy, copy the script and log the resolved config."""
    from .constants import CONFIG

    run_dir.mkdir(parents=True, exist_ok=True)
    logger = setup_logging(run_dir / log_name)

    if suppress_warnings:
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning)

    np.random.seed(CONFIG['RANDOM_SEED'])
    copy_script_to_results(Path(script_file), run_dir, logger)

    config = _build_config(run_dir, extra_config)
    log_script_start(logger, script_file, config)
    return config, logger


def setup_analysis(
    analysis_name: str,
    results_base: Path,
    script_file: str,
    extra_config: dict = None,
    suppress_warnings: bool = True
) -> tuple:
    """
    All-in-one setup for analysis scripts.

    This function handles all common initialization tasks:
    1. Creates or reuses a stable output directory results/<analysis_name>
    2. Sets up logging (file + console)
    3. Suppresses warnings
    4. Sets random seed
    5. Copies script to output directory
    6. Builds complete configuration dictionary
    7. Logs script start with configuration

    Parameters
    ----------
    analysis_name : str
        Name of the analysis (e.g., "fiducial_realign", "isc_cluster")
    results_base : Path
        Base directory for results; created if it doesn't exist
    script_file : str
        Path to the script being run (use __file__)
    extra_config : dict, optional
        Additional configuration parameters, merged over CONFIG
    suppress_warnings : bool, default=True
        Whether to suppress FutureWarning and UserWarning

    Returns
    -------
    config : dict
        Complete configuration dictionary (all constants + extra_config)
    output_dir : Path
        Output directory path
    logger : logging.Logger
        Configured logger instance
    """
    # Stable directory without timestamp; overwrite on reruns is allowed
    output_dir = Path(results_base) / analysis_name
    config, logger = _start_run(output_dir, script_file, extra_config, suppress_warnings, "analysis.log")
    return config, output_dir, logger


def setup_analysis_in_dir(
    results_dir: Path,
    script_file: str,
    extra_config: dict = None,
    suppress_warnings: bool = True,
    log_name: str = "analysis.log",
) -> tuple:
    """
    Set up logging and config for a script that writes into an existing directory.

    Mirrors setup_analysis (steps 2-7) but reuses ``results_dir`` as is.
    Returns ``(config, results_dir, logger)``.
    """
    results_dir = Path(results_dir)
    config, logger = _start_run(results_dir, script_file, extra_config, suppress_warnings, log_name)
    return config, results_dir, logger


__all__ = [
    'LOGGER_NAME',
    'setup_logging',
    'log_script_start',
    'log_script_end',
    'setup_analysis',
    'setup_analysis_in_dir',
]
