"""Record fetching over the store collaborator."""

from fanin.engine.fetcher import AggregatingFetcher

__all__ = ["AggregatingFetcher"]
