"""Pagination driver.

A fresh query (start 0) asks for a single item, which is cheap and tells the
client how long the list is. After each reply the driver decides whether the
rest of the list must be ordered, repeating the query's sticky parameters
with a new window, or whether the query is done.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .protocol.aggregator import ListResponse
from .protocol.query import CORRELATION_KEY, ListQuery

DEFAULT_PAGE_SIZE = 20
# A page of 1 puts every reply on a page boundary, so nothing past the first item is ordered
MIN_PAGE_SIZE = 2


@dataclass(frozen=True)
class PageWindow:
    """Where one reply sits in its logical list."""

    start: int
    requested: int
    actual: int
    total: int
    max_total: int

    @property
    def end(self) -> int:
        return self.start + self.requested


@dataclass(frozen=True)
class InitialWindow:
    start: int
    count: int
    full_list: bool


class PaginationDriver:
    """Decides the next page of a list query."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < MIN_PAGE_SIZE:
            raise ValueError(f"page_size must be at least {MIN_PAGE_SIZE}, got {page_size}")
        self.page_size = page_size

    def initial_window(self, start: int) -> InitialWindow:
        """Window of the first request for a query starting at ``start``.

        A negative start asks for the whole list: it is sent from 0 with the
        full-list marker and a full page.
        """
        if start < 0:
            return InitialWindow(start=0, count=self.page_size, full_list=True)
        return InitialWindow(start=start, count=1 if start == 0 else self.page_size, full_list=False)

    def window(self, response: ListResponse, total: int, max_total: int) -> PageWindow:
        return PageWindow(
            start=response.start,
            requested=response.count,
            actual=response.item_count,
            total=total,
            max_total=max_total,
        )

    def next_query(self, query: ListQuery, response: ListResponse, max_total: int) -> ListQuery | None:
        """The follow-up request for ``query``, or ``None`` when it is done.

        Sticky parameters come from the reply (the server echoes them) and
        are repeated verbatim; the correlation id stays the same.
        """
        if query.full_list:
            # The server may or may not honour the marker; advance by what
            # actually arrived in the longest list.
            received = max((len(batch.records) for batch in response.batches), default=0)
            end = response.start + received
            more = received > 0 and end < max_total
        else:
            end = response.start + response.count
            more = end % self.page_size != 0 and end < max_total
        if not more:
            return None

        count = min(self.page_size, max_total - end)
        sticky = tuple(token for key, token in response.sticky.items() if key != CORRELATION_KEY)
        return replace(
            query.next_page(start=end, count=count, parameters=sticky),
            player_id=response.player_id,
            prefix=response.prefix,
        )
