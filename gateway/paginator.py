"""
Offset paginator over a gateway-backed page fetcher.
"""
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from gateway.errors import FatalError, ForbiddenError, GatewayError, UnauthorizedError
from utils import setup_logger


logger = setup_logger(__name__)

T = TypeVar('T')

# (offset, limit) -> one page of items
PageFetcher = Callable[[int, int], Awaitable[Sequence[T]]]


@dataclass
class PagedResult(Generic[T]):
    """Items collected from a paged or chunked fetch, flagged when incomplete."""
    items: List[T] = field(default_factory=list)
    partial: bool = False
    skipped: List[Any] = field(default_factory=list)


class Paginator(Generic[T]):
    """
    Materializes a collection page by page, sequentially.

    Iteration stops when:
    (a) a page comes back empty
    (b) a page comes back shorter than ``page_size`` (last page)
    (c) ``max_items`` items have been produced
    (d) more than ``max_consecutive_failures`` page requests failed in a row;
        what was accumulated so far is kept and ``partial`` is set

    A FORBIDDEN first page means the whole collection is inaccessible: it is
    skipped after that one request. A later FORBIDDEN page is skipped (the
    offset moves on) and counts towards the failure budget. UNAUTHORIZED and
    FATAL errors propagate.

    A Paginator can be iterated once.
    """

    def __init__(
        self,
        page_fetcher: PageFetcher,
        page_size: int,
        max_items: Optional[int] = None,
        max_consecutive_failures: int = 3,
        label: str = 'collection'
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.page_fetcher = page_fetcher
        self.page_size = page_size
        self.max_items = max_items
        self.max_consecutive_failures = max_consecutive_failures
        self.label = label

        self.pages = 0
        self.items = 0
        self.failures = 0
        self.skipped_pages: List[int] = []
        self.partial = False
        self._started = False

    def __aiter__(self) -> AsyncIterator[T]:
        if self._started:
            raise RuntimeError("Paginator can only be iterated once")
        self._started = True
        return self._iterate()

    def _remaining(self) -> Optional[int]:
        if self.max_items is None:
            return None
        return self.max_items - self.items

    async def _iterate(self) -> AsyncIterator[T]:
        offset = 0
        consecutive_failures = 0

        while self._remaining() is None or self._remaining() > 0:
            try:
                page = await self.page_fetcher(offset, self.page_size)
            except (UnauthorizedError, FatalError):
                raise
            except ForbiddenError as e:
                consecutive_failures += 1
                self.failures += 1
                self.skipped_pages.append(offset)
                if offset == 0:
                    # The collection itself is inaccessible
                    logger.warning(f"Skipping forbidden {self.label}: {e}")
                    self.partial = True
                    break
                logger.warning(f"Skipping forbidden {self.label} page at offset {offset}: {e}")
                if consecutive_failures > self.max_consecutive_failures:
                    self.partial = True
                    break
                offset += self.page_size
                continue
            except GatewayError as e:
                consecutive_failures += 1
                self.failures += 1
                logger.warning(
                    f"Failed to fetch {self.label} page at offset {offset} "
                    f"({consecutive_failures}/{self.max_consecutive_failures}): {e}"
                )
                if consecutive_failures > self.max_consecutive_failures:
                    logger.warning(
                        f"⚠️  Giving up on {self.label} after {consecutive_failures} failed pages, "
                        f"keeping {self.items} items"
                    )
                    self.partial = True
                    break
                continue

            consecutive_failures = 0
            self.pages += 1

            if not page:
                break

            remaining = self._remaining()
            batch = list(page) if remaining is None else list(page)[:remaining]
            for item in batch:
                self.items += 1
                yield item

            logger.debug(f"{self.label}: page {self.pages} ({len(page)} items, total {self.items})")

            if len(page) < self.page_size:
                break
            offset += self.page_size

    async def fetch_all(self) -> List[T]:
        """Drain the paginator into a list."""
        return [item async for item in self]

    async def collect(self, transform: Optional[Callable[[Any], Any]] = None) -> PagedResult:
        """
        Drain the paginator into a PagedResult.

        Args:
            transform: Applied to every item; items mapped to None are dropped

        Returns:
            PagedResult with ``partial`` set when pages were lost
        """
        items = []
        async for item in self:
            if transform is not None:
                item = transform(item)
                if item is None:
                    continue
            items.append(item)
        return PagedResult(
            items=items,
            partial=self.partial or bool(self.skipped_pages),
            skipped=list(self.skipped_pages)
        )
