"""dbprofile - column statistics for relational tables without writing SQL."""

__version__ = "0.1.0"
