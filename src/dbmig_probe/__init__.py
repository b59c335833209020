"""dbmig-probe: detect already-installed database migration scripts before an upgrade."""

__version__ = "0.1.0"
