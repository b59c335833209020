"""Version probing for database migration scripts left by an older installation."""

import logging
import os
import stat
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

# Range shipped with the installer: scripts 200005To200006.sql .. 200259To200260.sql
DEFAULT_LOW_VERSION = 200006
DEFAULT_HIGH_VERSION_EXCLUSIVE = 200261

_SEPARATORS = {"\\", "/", os.sep}


class MigrationRange(BaseModel):
    """
    Closed-open interval of migration versions to probe.

    Version ``low`` is the first candidate; ``high_exclusive`` is never probed.
    """

    model_config = ConfigDict(frozen=True)

    low: int = Field(default=DEFAULT_LOW_VERSION, ge=1)
    high_exclusive: int = Field(default=DEFAULT_HIGH_VERSION_EXCLUSIVE, ge=2)

    @model_validator(mode="after")
    def check_bounds(self) -> "MigrationRange":
        """Ensure the range holds at least one candidate."""
        if self.high_exclusive <= self.low:
            raise ValueError(
                f"high_exclusive ({self.high_exclusive}) must be greater than low ({self.low})"
            )
        return self

    def versions(self) -> range:
        """Candidate versions in ascending order."""
        return range(self.low, self.high_exclusive)

    def __len__(self) -> int:
        return self.high_exclusive - self.low


@dataclass(frozen=True)
class NoPriorInstall:
    """No older installation was detected; nothing was probed."""


@dataclass(frozen=True)
class Found:
    """Highest version with an unbroken chain of scripts below the first gap."""

    version: int


@dataclass(frozen=True)
class ProbeFailed:
    """Probing failed unexpectedly."""

    reason: str


@dataclass(frozen=True)
class RangeExhausted:
    """
    Every candidate in the range had a script, so no gap was found.

    Reported separately from ``Found`` so the caller decides what to publish.
    """

    last_version: int


ProbeResult = NoPriorInstall | Found | ProbeFailed | RangeExhausted


def script_name(version: int) -> str:
    """
    Build the file name of the script that migrates to ``version``.

    Args:
        version: Target migration version

    Returns:
        File name such as ``200005To200006.sql``
    """
    return f"{version - 1}To{version}.sql"


def normalize_directory(path: str) -> str:
    """
    Strip exactly one trailing path separator, if present.

    Args:
        path: Directory path as given by the installer

    Returns:
        Path without its final separator
    """
    if path and path[-1] in _SEPARATORS:
        return path[:-1]
    return path


def script_path(directory: str, version: int) -> str:
    """
    Join a directory and the script name for ``version`` with one separator.

    Args:
        directory: Migration script directory
        version: Target migration version

    Returns:
        Full path to the expected script
    """
    return f"{normalize_directory(directory)}{os.sep}{script_name(version)}"


def script_exists(path: str) -> bool:
    """
    Check that ``path`` is an existing regular file.

    Args:
        path: File path to check

    Returns:
        True if a regular file exists at path

    Raises:
        OSError: For failures other than a missing file or directory,
            e.g. PermissionError on an inaccessible directory
    """
    try:
        mode = os.stat(path).st_mode
    except (FileNotFoundError, NotADirectoryError):
        return False
    return stat.S_ISREG(mode)


def probe(
    base_directory: str | os.PathLike[str] | None,
    migration_range: MigrationRange,
    exists: Callable[[str], bool] | None = None,
) -> ProbeResult:
    """
    Find the highest migration version already present in ``base_directory``.

    Candidates are checked in ascending order starting at ``migration_range.low``.
    Scanning stops at the first missing script ``v`` and reports ``v - 1``.

    Args:
        base_directory: Data-migration directory of the older installation,
            or None/empty when no older installation was detected
        migration_range: Versions to probe
        exists: File existence check, called once per probed script path
            (default: script_exists)

    Returns:
        The probe outcome. This function never raises.
    """
    if not base_directory:
        return NoPriorInstall()

    if exists is None:
        exists = script_exists

    try:
        directory = normalize_directory(os.fspath(base_directory))

        for version in migration_range.versions():
            path = script_path(directory, version)
            if not exists(path):
                logger.debug(f"Missing migration script {path}")
                return Found(version - 1)

        logger.debug(
            f"All {len(migration_range)} migration scripts up to "
            f"{migration_range.high_exclusive - 1} present in {directory}"
        )
        return RangeExhausted(migration_range.high_exclusive - 1)
    except Exception as e:
        logger.warning(f"Could not probe migration scripts in {base_directory}: {e}")
        return ProbeFailed(str(e) or type(e).__name__)
