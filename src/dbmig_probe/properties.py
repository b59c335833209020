"""Installer property store adapter for the migration version probe."""

import logging
from json import JSONDecodeError
from pathlib import Path
from typing import Protocol

from tinydb import TinyDB

from .config import Config
from .probe import Found, NoPriorInstall, ProbeFailed, ProbeResult, RangeExhausted, probe
from .utils import ensure_dir

logger = logging.getLogger(__name__)

OLDER_INSTALL_PATH_PROPERTY = "OLDER_FW_INSTALL_PATH"
MIGRATION_DIR_PROPERTY = "OLDDATAMIGRATIONDIR"
MAX_VERSION_PROPERTY = "MAX_DBMIG_VER"

PROPERTIES_TABLE = "properties"


class PropertyStoreError(Exception):
    """
    Raised when the installer property store cannot be read or written.

    Covers unreadable or corrupt store files and filesystem errors while
    persisting a property.
    """

    pass


class PropertyStore(Protocol):
    """Key/value access to installer properties. Names are case-insensitive."""

    def get(self, name: str) -> str:
        """Return the property value, or an empty string if unset."""
        ...

    def set(self, name: str, value: str) -> None:
        """Set a property value."""
        ...


class MemoryPropertyStore:
    """In-memory property store."""

    def __init__(self, properties: dict[str, str] | None = None):
        self._properties: dict[str, str] = {}
        for name, value in (properties or {}).items():
            self.set(name, value)

    def get(self, name: str) -> str:
        return self._properties.get(name.upper(), "")

    def set(self, name: str, value: str) -> None:
        self._properties[name.upper()] = value


class FilePropertyStore:
    """Property store persisted as a TinyDB JSON document."""

    def __init__(self, path: Path):
        """
        Initialize file-backed property store.

        Args:
            path: Path to the JSON properties file

        Raises:
            PropertyStoreError: If the file is unreadable or not in store layout
        """
        self.path = path
        ensure_dir(path.parent)
        # All properties live in a single document with doc_id=1.
        self.db = TinyDB(path)
        self.table = self.db.table(PROPERTIES_TABLE)
        try:
            self._check_layout()
        except PropertyStoreError:
            self.db.close()
            raise

    def _check_layout(self) -> None:
        """Reject files whose top level is not the properties table."""
        try:
            data = self.db.storage.read()
        except (JSONDecodeError, OSError) as e:
            raise PropertyStoreError(f"Failed to read properties from {self.path}: {e}") from e
        if not data:
            return
        if not isinstance(data, dict) or set(data) != {PROPERTIES_TABLE}:
            raise PropertyStoreError(
                f"{self.path} is not a properties file: expected only a top-level "
                f'"{PROPERTIES_TABLE}" table'
            )

    def _read(self) -> dict[str, str]:
        try:
            document = self.table.get(doc_id=1)
        except (JSONDecodeError, OSError) as e:
            raise PropertyStoreError(f"Failed to read properties from {self.path}: {e}") from e
        if document and isinstance(document, dict):
            return {str(k).upper(): str(v) for k, v in document.items()}
        return {}

    def get(self, name: str) -> str:
        """
        Get a property value.

        Args:
            name: Property name (case-insensitive)

        Returns:
            Property value, or an empty string if unset

        Raises:
            PropertyStoreError: If the store file cannot be read
        """
        return self._read().get(name.upper(), "")

    def set(self, name: str, value: str) -> None:
        """
        Set a property value.

        Args:
            name: Property name (case-insensitive)
            value: Property value

        Raises:
            PropertyStoreError: If the store file cannot be read or written
        """
        properties = self._read()
        properties[name.upper()] = value
        try:
            if self.table.get(doc_id=1):
                self.table.update(properties, doc_ids=[1])
            else:
                self.table.insert(properties)
        except OSError as e:
            raise PropertyStoreError(f"Failed to write properties to {self.path}: {e}") from e

    def close(self) -> None:
        self.db.close()


def to_property_value(result: ProbeResult, config: Config) -> str:
    """
    Convert a probe result to the decimal string stored in MAX_DBMIG_VER.

    Args:
        result: Probe outcome
        config: Configuration holding the sentinel values

    Returns:
        Decimal string for the installer
    """
    if isinstance(result, NoPriorInstall):
        return str(config.no_prior_install_sentinel)
    if isinstance(result, Found):
        return str(result.version)
    if isinstance(result, RangeExhausted):
        # No gap found. Reported as a failure unless configured otherwise.
        if config.report_top_of_range:
            return str(result.last_version)
        return str(config.failure_sentinel)
    return str(config.failure_sentinel)


def get_highest_db_migration_version(store: PropertyStore, config: Config) -> ProbeResult:
    """
    Detect the highest installed migration version and publish it to the installer.

    Reads OLDER_FW_INSTALL_PATH and OLDDATAMIGRATIONDIR, probes the migration
    directory and writes the outcome to MAX_DBMIG_VER.

    Args:
        store: Installer property store
        config: Probe configuration

    Returns:
        The probe outcome. Errors are logged, never raised.
    """
    try:
        older_install = store.get(OLDER_INSTALL_PATH_PROPERTY)
        if not older_install:
            result: ProbeResult = NoPriorInstall()
        else:
            migration_dir = store.get(MIGRATION_DIR_PROPERTY)
            if not migration_dir:
                result = ProbeFailed(f"{MIGRATION_DIR_PROPERTY} is not set")
            else:
                result = probe(migration_dir, config.migration_range)
    except Exception as e:
        logger.warning(f"Could not read installer properties: {e}")
        result = ProbeFailed(str(e) or type(e).__name__)

    value = to_property_value(result, config)
    logger.info(f"Setting {MAX_VERSION_PROPERTY}={value} ({type(result).__name__})")
    try:
        store.set(MAX_VERSION_PROPERTY, value)
    except Exception as e:
        logger.error(f"Could not set {MAX_VERSION_PROPERTY}: {e}")

    return result
