"""
fetchbench - timing ORM-style fetch strategies against one flat PostgreSQL table.

Compares interchangeable ways of reading the same rows:

- Projection and exclusion fetches returning live records whose missing
  columns are refetched per row on access
- Dict-valued and flat-list-valued fetches with no refetch path
- DISTINCT pushed into the database versus deduplication in Python
- Chunked keyset iteration with bounded client memory

Every run reports wall-clock time and the number of database round-trips,
split into primary and secondary (refetch) trips. Filters compose as boolean
expression trees and in-place updates are evaluated by the database.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from fetchbench.config import Settings, get_settings
from fetchbench.executor import ExecutionReport, Executor, UpdateReport
from fetchbench.orchestrator import available_strategies, run_strategies
from fetchbench.strategies.abstract import (
    AbstractFetchStrategy,
    FetchStrategy,
    StrategyResult,
)
from fetchbench.utils.logging import configure_logging, get_logger
from fetchbench.utils.profiler import ProfileStats, profile_block

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Execution
    "ExecutionReport",
    "Executor",
    "UpdateReport",
    # Orchestration
    "available_strategies",
    "run_strategies",
    # Strategy abstractions
    "AbstractFetchStrategy",
    "FetchStrategy",
    "StrategyResult",
    # Logging
    "configure_logging",
    "get_logger",
    # Profiling
    "ProfileStats",
    "profile_block",
]
