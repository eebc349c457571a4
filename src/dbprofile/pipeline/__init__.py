"""Multi-table analysis runs."""

from dbprofile.pipeline.runner import TableScheduler, run_analysis

__all__ = ["TableScheduler", "run_analysis"]
