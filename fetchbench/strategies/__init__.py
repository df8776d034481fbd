"""
Strategies package for fetchbench.

Re-exports the abstract interfaces and the concrete fetch strategies so
downstream code can import from `fetchbench.strategies` directly.
"""

from fetchbench.strategies.abstract import (
    AbstractFetchStrategy,
    FetchStrategy,
    StrategyResult,
)
from fetchbench.strategies.chunked import ChunkedIterationStrategy
from fetchbench.strategies.flat_list import (
    ClientDistinctFetchStrategy,
    DatabaseDistinctFetchStrategy,
    FlatListFetchStrategy,
)
from fetchbench.strategies.mapping import MappingFetchStrategy
from fetchbench.strategies.projection import ExclusionFetchStrategy, ProjectionFetchStrategy

__all__ = [
    # Abstracts
    "AbstractFetchStrategy",
    "FetchStrategy",
    "StrategyResult",
    # Concrete strategies
    "ChunkedIterationStrategy",
    "ClientDistinctFetchStrategy",
    "DatabaseDistinctFetchStrategy",
    "ExclusionFetchStrategy",
    "FlatListFetchStrategy",
    "MappingFetchStrategy",
    "ProjectionFetchStrategy",
]
