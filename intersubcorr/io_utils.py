"""
Input/output utilities for locating inputs and managing results directories.

Functions work with the stable results directory structure used by the
analysis scripts: <analysis-dir>/results/<analysis_name>/
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, List
import shutil
import logging


def find_latest_results_directory(
    results_base: Path,
    pattern: str = "*",
    create_subdirs: Optional[List[str]] = None,
    require_exists: bool = True,
    logger: Optional[logging.Logger] = None
) -> Optional[Path]:
    """
    Find the most recent results directory matching a pattern.

    Parameters
    ----------
    results_base : Path
        Base directory containing result folders
    pattern : str, default='*'
        Glob pattern to match directories (e.g., 'isc_cluster')
    create_subdirs : list of str, optional
        Subdirectories to create within the results directory (e.g., ['figures'])
    require_exists : bool, default=True
        If True, raises FileNotFoundError if no directory is found
    logger : logging.Logger, optional
        Logger used to report the resolved directory

    Returns
    -------
    Path or None
        Path to the results directory, or None when nothing matched and
        ``require_exists`` is False

    Raises
    ------
    FileNotFoundError
        If directory not found and require_exists=True
    """
    results_base = Path(results_base)

    if not results_base.exists():
        if require_exists:
            raise FileNotFoundError(f"Results base directory not found: {results_base}")
        return None

    # Names sort alphanumerically; most recent (or last) first
    matching_dirs = sorted(
        [d for d in results_base.glob(pattern) if d.is_dir()],
        key=lambda x: x.name,
        reverse=True,
    )

    if len(matching_dirs) == 0:
        if require_exists:
            raise FileNotFoundError(
                f"No matching results directories found in {results_base} with pattern '{pattern}'"
            )
        return None

    results_dir = matching_dirs[0]
    if logger:
        logger.info(f"Using results directory: {results_dir.name}")

    if create_subdirs is not None:
        for subdir_name in create_subdirs:
            (results_dir / subdir_name).mkdir(parents=True, exist_ok=True)

    return results_dir


def copy_script_to_results(
    script_path: Path,
    results_dir: Path,
    logger: Optional[logging.Logger] = None
) -> Optional[Path]:
    """
    Copy the executing script to the results directory for reproducibility.

    If the script file doesn't exist a warning is logged and None is returned.
    Existing copies are overwritten.
    """
    script_path = Path(script_path)
    results_dir = Path(results_dir)

    if not script_path.exists():
        msg = f"Script file not found: {script_path}"
        if logger:
            logger.warning(msg)
        else:
            import warnings
            warnings.warn(msg)
        return None

    results_dir.mkdir(parents=True, exist_ok=True)

    dest_path = results_dir / script_path.name
    shutil.copy(script_path, dest_path)

    if logger:
        logger.info(f"Copied script to: {dest_path}")

    return dest_path


def find_nifti_files(data_dir: Path | str, pattern: str | None = None) -> List[Path]:
    """
    Recursively find .nii or .nii.gz files under `data_dir` optionally matching a substring.
    """
    root = Path(data_dir)
    if not root.exists():
        raise FileNotFoundError(f"Data directory not found: {root}")
    matches: List[Path] = []
    for p in root.rglob('*'):
        if p.is_file() and (p.suffix == '.nii' or p.name.endswith('.nii.gz')):
            if pattern is None or (pattern in p.name):
                matches.append(p)
    return sorted(matches)


__all__ = [
    'find_latest_results_directory',
    'copy_script_to_results',
    'find_nifti_files',
]
