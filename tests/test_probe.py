"""Tests for probe module."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from dbmig_probe.probe import (
    Found,
    MigrationRange,
    NoPriorInstall,
    ProbeFailed,
    RangeExhausted,
    normalize_directory,
    probe,
    script_exists,
    script_name,
    script_path,
)

DEFAULT_RANGE = MigrationRange(low=200006, high_exclusive=200261)


def create_scripts(directory: Path, first: int, last: int) -> None:
    """Create migration scripts for versions first..last inclusive."""
    for version in range(first, last + 1):
        (directory / script_name(version)).write_text("-- migration\n")


class RecordingExists:
    """Existence check that records every probed path."""

    def __init__(self, present: set[str]):
        self.present = present
        self.calls: list[str] = []

    def __call__(self, path: str) -> bool:
        self.calls.append(path)
        return Path(path).name in self.present


class TestScriptName:
    """Tests for script_name function."""

    def test_first_default_version(self) -> None:
        """Test file name for the first version of the default range."""
        assert script_name(200006) == "200005To200006.sql"

    def test_exact_format(self) -> None:
        """Test file name is plain decimal with To and .sql."""
        name = script_name(200007)

        assert name == "200006To200007.sql"
        assert len(name) == 18

    def test_small_versions(self) -> None:
        """Test no zero padding is applied."""
        assert script_name(10) == "9To10.sql"


class TestNormalizeDirectory:
    """Tests for normalize_directory function."""

    def test_strips_trailing_backslash(self) -> None:
        """Test one trailing backslash is removed."""
        assert normalize_directory("C:\\dir\\") == "C:\\dir"

    def test_without_separator_unchanged(self) -> None:
        """Test path without trailing separator is left alone."""
        assert normalize_directory("C:\\dir") == "C:\\dir"

    def test_idempotent(self) -> None:
        """Test normalizing twice equals normalizing once."""
        once = normalize_directory("C:\\dir\\")

        assert normalize_directory(once) == once

    def test_strips_only_one_separator(self) -> None:
        """Test only a single trailing separator is removed."""
        assert normalize_directory("C:\\dir\\\\") == "C:\\dir\\"
        assert normalize_directory("/data/dir//") == "/data/dir/"

    def test_strips_trailing_slash(self) -> None:
        """Test forward slash is treated as a separator."""
        assert normalize_directory("/data/dir/") == "/data/dir"

    def test_empty(self) -> None:
        """Test empty string stays empty."""
        assert normalize_directory("") == ""


class TestScriptPath:
    """Tests for script_path function."""

    def test_joins_with_single_separator(self, tmp_path: Path) -> None:
        """Test trailing separator does not produce a doubled separator."""
        with_sep = script_path(f"{tmp_path}/", 200006)
        without_sep = script_path(str(tmp_path), 200006)

        assert with_sep == without_sep
        assert Path(with_sep) == tmp_path / "200005To200006.sql"


class TestScriptExists:
    """Tests for script_exists function."""

    def test_existing_file(self, tmp_path: Path) -> None:
        """Test regular file is reported as existing."""
        path = tmp_path / "200005To200006.sql"
        path.write_text("")

        assert script_exists(str(path)) is True

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test missing file is reported as absent."""
        assert script_exists(str(tmp_path / "200005To200006.sql")) is False

    def test_missing_directory(self, tmp_path: Path) -> None:
        """Test file in a missing directory is reported as absent."""
        assert script_exists(str(tmp_path / "missing" / "200005To200006.sql")) is False

    def test_directory_is_not_a_script(self, tmp_path: Path) -> None:
        """Test a directory with a script name does not count."""
        (tmp_path / "200005To200006.sql").mkdir()

        assert script_exists(str(tmp_path / "200005To200006.sql")) is False


class TestMigrationRange:
    """Tests for MigrationRange model."""

    def test_defaults(self) -> None:
        """Test default range matches the installer's scripts."""
        migration_range = MigrationRange()

        assert migration_range.low == 200006
        assert migration_range.high_exclusive == 200261
        assert len(migration_range) == 255

    def test_iterates_ascending(self) -> None:
        """Test iteration yields each version once in ascending order."""
        assert list(MigrationRange(low=5, high_exclusive=9).versions()) == [5, 6, 7, 8]

    def test_rejects_empty_range(self) -> None:
        """Test range without candidates is rejected."""
        with pytest.raises(ValidationError):
            MigrationRange(low=10, high_exclusive=10)

    def test_is_immutable(self) -> None:
        """Test range cannot be modified after creation."""
        migration_range = MigrationRange(low=5, high_exclusive=9)

        with pytest.raises(ValidationError):
            migration_range.low = 1


class TestProbe:
    """Tests for probe function."""

    @pytest.mark.parametrize("base_directory", [None, ""])
    def test_no_prior_install(self, base_directory: str | None) -> None:
        """Test absent directory short-circuits without touching the filesystem."""

        def fail_exists(path: str) -> bool:
            raise AssertionError(f"unexpected existence check: {path}")

        result = probe(base_directory, DEFAULT_RANGE, exists=fail_exists)

        assert result == NoPriorInstall()

    def test_first_script_missing(self, tmp_path: Path) -> None:
        """Test empty directory reports the version before the range."""
        result = probe(str(tmp_path), DEFAULT_RANGE)

        assert result == Found(200005)

    def test_only_first_script(self, tmp_path: Path) -> None:
        """Test directory with the first script reports the first version."""
        create_scripts(tmp_path, 200006, 200006)

        result = probe(f"{tmp_path}/", DEFAULT_RANGE)

        assert result == Found(200006)

    def test_contiguous_chain(self, tmp_path: Path) -> None:
        """Test result is the last version before the first gap."""
        create_scripts(tmp_path, 200006, 200042)

        result = probe(tmp_path, DEFAULT_RANGE)

        assert result == Found(200042)

    def test_stops_at_first_gap(self, tmp_path: Path) -> None:
        """Test scripts after a gap are ignored."""
        create_scripts(tmp_path, 200006, 200010)
        create_scripts(tmp_path, 200012, 200020)

        result = probe(str(tmp_path), DEFAULT_RANGE)

        assert result == Found(200010)

    def test_missing_directory(self, tmp_path: Path) -> None:
        """Test missing directory behaves like an empty one."""
        result = probe(str(tmp_path / "missing"), DEFAULT_RANGE)

        assert result == Found(200005)

    def test_scan_order_and_stop(self) -> None:
        """Test candidates are checked ascending and nothing past the gap."""
        exists = RecordingExists({script_name(v) for v in (200006, 200007, 200008, 200010)})

        result = probe("C:\\Migrations\\", DEFAULT_RANGE, exists=exists)

        assert result == Found(200008)
        assert [Path(p).name for p in exists.calls] == [
            "200005To200006.sql",
            "200006To200007.sql",
            "200007To200008.sql",
            "200008To200009.sql",
        ]

    def test_range_exhausted(self, tmp_path: Path) -> None:
        """Test all scripts present is reported as its own outcome."""
        migration_range = MigrationRange(low=200006, high_exclusive=200010)
        create_scripts(tmp_path, 200006, 200009)

        result = probe(str(tmp_path), migration_range)

        assert result == RangeExhausted(200009)

    def test_range_exhausted_checks_each_candidate_once(self) -> None:
        """Test exhausted scan probes exactly the range."""
        migration_range = MigrationRange(low=1, high_exclusive=4)
        exists = RecordingExists({script_name(v) for v in range(1, 10)})

        probe("/data", migration_range, exists=exists)

        assert len(exists.calls) == 3

    def test_permission_error(self) -> None:
        """Test inaccessible directory is reported as a failure."""

        def denied(path: str) -> bool:
            raise PermissionError(13, "Permission denied", path)

        result = probe("/restricted/DataMigration", DEFAULT_RANGE, exists=denied)

        assert isinstance(result, ProbeFailed)
        assert "Permission denied" in result.reason

    def test_unexpected_error_does_not_propagate(self) -> None:
        """Test any exception maps to a failure."""

        def broken(path: str) -> bool:
            raise RuntimeError("boom")

        result = probe("/data", DEFAULT_RANGE, exists=broken)

        assert result == ProbeFailed("boom")
