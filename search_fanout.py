"""
search_fanout.py — one catalog search per detected item, all in parallel.

Every search runs as its own task and the fan-out waits for all of them
(full join). A failed or timed-out search only empties its own group; the
assembled list keeps the detected-item order regardless of which search
finished first.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

import config
from catalog_search import CatalogSearch
from models import DetectedItem, ResultGroup, SearchQuery
from ranking import rank_group

logger = logging.getLogger(__name__)


class SearchFanout:

    def __init__(
        self,
        catalog: CatalogSearch,
        result_limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._catalog = catalog
        self._result_limit = result_limit
        self._timeout = timeout

    async def search_all(self, items: Sequence[DetectedItem]) -> list[ResultGroup]:
        limit = self._result_limit or config.DEFAULT_RESULT_LIMIT
        queries = [SearchQuery.for_item(item, limit) for item in items]
        if not queries:
            return []
        # gather() returns results in argument order: slot i belongs to item i
        groups = await asyncio.gather(*[self._search_one(q) for q in queries])
        failed = sum(1 for g in groups if not g.products)
        logger.info("Fan-out: %d searches, %d empty", len(groups), failed)
        return list(groups)

    async def _search_one(self, query: SearchQuery) -> ResultGroup:
        timeout = self._timeout if self._timeout is not None else config.SEARCH_TIMEOUT_SECS
        try:
            result = await asyncio.wait_for(
                self._catalog.search(query.query_text, query.result_limit),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Search for '%s' timed out after %.0fs", query.query_text, timeout)
            return ResultGroup(query=query)
        except Exception as exc:
            logger.warning("Search for '%s' failed: %s", query.query_text, exc)
            return ResultGroup(query=query)
        return ResultGroup(query=query, products=tuple(rank_group(result.products)))
