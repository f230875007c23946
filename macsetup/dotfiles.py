import datetime
import filecmp
import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def trees_match(source, target):
    """True when target holds exactly the files and contents of source."""
    source, target = Path(source), Path(target)
    if not source.is_dir() or not target.is_dir():
        return False

    comparison = filecmp.dircmp(source, target)
    return _dircmp_clean(comparison)


def _dircmp_clean(comparison):
    if (comparison.left_only or comparison.right_only
            or comparison.common_funny or comparison.funny_files):
        return False
    # dircmp compares shallowly (stat signatures); re-check contents
    _, mismatch, errors = filecmp.cmpfiles(
        comparison.left, comparison.right, comparison.common_files, shallow=False
    )
    if mismatch or errors:
        return False
    return all(_dircmp_clean(sub) for sub in comparison.subdirs.values())


def backup_path_for(target, now=None):
    """<target>.backup.YYYYmmdd_HHMMSS, with _N appended if that name is taken."""
    target = Path(target)
    now = now or datetime.datetime.now()
    base = target.with_name(f"{target.name}.backup.{now.strftime('%Y%m%d_%H%M%S')}")
    candidate = base
    counter = 1
    while candidate.exists() or candidate.is_symlink():
        candidate = base.with_name(f"{base.name}_{counter}")
        counter += 1
    return candidate


def install_tree(source, target, now=None):
    """
    Copies source into target. Anything already at target is moved aside
    to a timestamped backup first. Returns the backup path or None.
    """
    source, target = Path(source), Path(target)
    if not source.is_dir():
        raise FileNotFoundError(f"{source} directory not found")

    backup = None
    if target.exists() or target.is_symlink():
        backup = backup_path_for(target, now=now)
        logger.info(f"Backing up existing {target} to {backup}")
        target.rename(backup)

    logger.info(f"Copying {source} to {target}")
    shutil.copytree(source, target, symlinks=True)
    return backup
