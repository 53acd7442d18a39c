#!/usr/bin/env python3
"""
Script utilities for plotting/table scripts that read existing results.

Strict behavior: no silent fallbacks. If require_results=True and a results
directory is not found, an informative exception is raised.
"""

from __future__ import annotations

from pathlib import Path
from typing import Tuple, List, Dict, Optional
import logging

from .logging_utils import setup_analysis_in_dir
from .io_utils import find_latest_results_directory


def setup_script(
    script_file: str,
    results_pattern: str,
    output_subdirs: Optional[List[str]] = None,
    log_name: Optional[str] = None,
    require_results: bool = True,
) -> Tuple[Path, logging.Logger, Dict[str, Path]]:
    """
    Standard setup for scripts that READ from existing results.

    Parameters
    ----------
    script_file : str
        Pass __file__ from the calling script.
    results_pattern : str
        Results directory name under 'results/', e.g., 'isc_cluster'.
    output_subdirs : list of str, optional
        Subdirectories to create in the results directory (e.g., ['figures']).
    log_name : str, optional
        Log file name inside the results directory. Defaults to '<script>.log'.
    require_results : bool, default=True
        If True, raise if the results directory is not found.

    Returns
    -------
    results_dir : Path
    logger : logging.Logger
    output_dirs : dict[str, Path]
        Requested output subdirectories (created if missing)
    """
    script_path = Path(script_file).resolve()
    results_base = script_path.parent / 'results'

    results_dir = find_latest_results_directory(
        results_base,
        pattern=results_pattern,
        create_subdirs=output_subdirs or [],
        require_exists=require_results,
    )
    if results_dir is None:
        raise FileNotFoundError(f"No results directory '{results_pattern}' under {results_base}")

    if log_name is None:
        log_name = f"{script_path.stem}.log"

    _, _, logger = setup_analysis_in_dir(
        results_dir=results_dir,
        script_file=str(script_path),
        extra_config={"RESULTS_DIR": str(results_dir)},
        suppress_warnings=True,
        log_name=log_name,
    )
    logger.info(f"Using results directory: {results_dir}")

    output_dirs: Dict[str, Path] = {sub: results_dir / sub for sub in (output_subdirs or [])}
    return results_dir, logger, output_dirs


__all__ = [
    'setup_script',
]
