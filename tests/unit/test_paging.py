"""Unit tests for the pagination driver."""

import pytest

from squeeze_client.paging import PaginationDriver
from squeeze_client.protocol.aggregator import ItemBatch, ListResponse
from squeeze_client.protocol.catalog import DEFAULT_CATALOG
from squeeze_client.protocol.codec import make_token
from squeeze_client.protocol.query import ListQuery

ALBUMS = DEFAULT_CATALOG.lookup("albums")


def response(start: int, count: int, items: int = 0, **kwargs) -> ListResponse:
    batch = ItemBatch(ALBUMS.parsers[0], [{"id": str(i)} for i in range(items)])
    return ListResponse(command="albums", start=start, count=count, batches=[batch], **kwargs)


class TestInitialWindow:
    """Test the first request of a query."""

    def test_fresh_query_asks_for_one_item(self):
        window = PaginationDriver(20).initial_window(0)

        assert (window.start, window.count, window.full_list) == (0, 1, False)

    def test_later_start_asks_for_a_page(self):
        window = PaginationDriver(20).initial_window(40)

        assert (window.start, window.count, window.full_list) == (40, 20, False)

    def test_negative_start_asks_for_full_list(self):
        window = PaginationDriver(20).initial_window(-1)

        assert (window.start, window.count, window.full_list) == (0, 20, True)

    @pytest.mark.parametrize("page_size", [-1, 0, 1])
    def test_page_size_below_two_is_rejected(self, page_size):
        with pytest.raises(ValueError, match="at least 2"):
            PaginationDriver(page_size)


class TestNextQuery:
    """Test follow-up decisions."""

    def test_first_reply_orders_next_page(self):
        driver = PaginationDriver(20)
        query = ListQuery("albums", 0, 1, 5, parameters=(make_token("tags", "l"),))
        reply = response(
            0,
            1,
            items=1,
            sticky={"tags": make_token("tags", "l"), "correlationid": make_token("correlationid", "5")},
        )

        follow_up = driver.next_query(query, reply, max_total=47)

        assert (follow_up.start, follow_up.count) == (1, 20)
        assert follow_up.correlation_id == 5
        assert [p.key for p in follow_up.parameters] == ["tags"]

    def test_last_page_is_clamped(self):
        driver = PaginationDriver(20)
        query = ListQuery("albums", 21, 20, 5)

        follow_up = driver.next_query(query, response(21, 20, items=20), max_total=47)

        assert (follow_up.start, follow_up.count) == (41, 6)

    def test_stops_at_total(self):
        driver = PaginationDriver(20)
        query = ListQuery("albums", 41, 6, 5)

        assert driver.next_query(query, response(41, 6, items=6), max_total=47) is None

    def test_stops_on_page_boundary(self):
        """A window ending on a page boundary was an explicit one-page request."""
        driver = PaginationDriver(20)
        query = ListQuery("albums", 20, 20, 5)

        assert driver.next_query(query, response(20, 20, items=20), max_total=100) is None

    def test_empty_list(self):
        driver = PaginationDriver(20)
        query = ListQuery("albums", 0, 1, 5)

        assert driver.next_query(query, response(0, 1), max_total=0) is None

    def test_sticky_parameters_come_from_reply(self):
        driver = PaginationDriver(20)
        query = ListQuery("albums", 0, 1, 5, parameters=(make_token("tags", "l"),))
        reply = response(0, 1, items=1, sticky={"artist_id": make_token("artist_id", "3")})

        follow_up = driver.next_query(query, reply, max_total=10)

        assert [p.raw for p in follow_up.parameters] == ["artist_id%3A3"]

    def test_player_and_prefix_come_from_reply(self):
        driver = PaginationDriver(20)
        query = ListQuery("items", 0, 1, 5, player_id="p1", prefix="favorites")
        reply = response(0, 1, items=1, player_id="p1", prefix="favorites")

        follow_up = driver.next_query(query, reply, max_total=10)

        assert follow_up.player_id == "p1"
        assert follow_up.prefix == "favorites"


class TestFullList:
    """Test whole-list queries."""

    def test_server_honoured_marker(self):
        driver = PaginationDriver(20)
        query = ListQuery("albums", 0, 20, 5, full_list=True)

        assert driver.next_query(query, response(0, 20, items=47), max_total=47) is None

    def test_server_ignored_marker(self):
        driver = PaginationDriver(20)
        query = ListQuery("albums", 0, 20, 5, full_list=True)

        follow_up = driver.next_query(query, response(0, 20, items=20), max_total=47)

        assert (follow_up.start, follow_up.count) == (20, 20)
        assert follow_up.full_list
        assert "full_list%3A1" in follow_up.to_line()

    def test_empty_reply_stops(self):
        driver = PaginationDriver(20)
        query = ListQuery("albums", 0, 20, 5, full_list=True)

        assert driver.next_query(query, response(0, 20, items=0), max_total=47) is None


class TestWindow:
    """Test the debug window summary."""

    def test_window(self):
        window = PaginationDriver(20).window(response(1, 20, items=19), total=47, max_total=48)

        assert (window.start, window.requested, window.actual) == (1, 20, 19)
        assert window.end == 21
        assert (window.total, window.max_total) == (47, 48)
