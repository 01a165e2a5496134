"""Unit tests for ListQuery rendering."""

from squeeze_client.protocol.codec import make_token
from squeeze_client.protocol.query import ListQuery


class TestToLine:
    """Test rendering for the line protocol."""

    def test_plain_command(self):
        query = ListQuery("albums", 0, 1, 5, parameters=(make_token("tags", "la"),))

        assert query.to_line() == "albums 0 1 tags%3Ala correlationid:5"

    def test_multi_word_command(self):
        query = ListQuery("playlists tracks", 0, 1, 1, parameters=(make_token("playlist_id", "7"),))

        assert query.to_line() == "playlists tracks 0 1 playlist_id%3A7 correlationid:1"

    def test_player_and_prefix_are_encoded(self):
        query = ListQuery(
            "items", 0, 20, 3, player_id="00:04:20:aa:bb:cc", prefix="favorites"
        )

        assert query.to_line() == "00%3A04%3A20%3Aaa%3Abb%3Acc favorites items 0 20 correlationid:3"

    def test_full_list_marker(self):
        query = ListQuery("artists", 0, 20, 2, full_list=True)

        assert query.to_line() == "artists 0 20 full_list%3A1 correlationid:2"

    def test_full_list_marker_not_duplicated(self):
        query = ListQuery("artists", 0, 20, 2, parameters=(make_token("full_list", "1"),), full_list=True)

        assert query.to_line().count("full_list") == 1

    def test_echoed_correlation_id_is_not_repeated(self):
        query = ListQuery(
            "albums",
            1,
            20,
            9,
            parameters=(make_token("correlationid", "9"), make_token("tags", "l")),
        )

        assert query.to_line() == "albums 1 20 tags%3Al correlationid:9"


class TestRequestArray:
    """Test rendering for Comet requests."""

    def test_decoded_parameters(self):
        query = ListQuery("playlists tracks", 0, 1, 1, parameters=(make_token("search", "a b"),))

        assert query.to_request_array() == [
            "playlists",
            "tracks",
            "0",
            "1",
            "search:a b",
            "correlationid:1",
        ]

    def test_prefix_first(self):
        query = ListQuery("items", 0, 10, 4, player_id="p1", prefix="favorites")

        assert query.to_request_array() == ["favorites", "items", "0", "10", "correlationid:4"]


class TestNextPage:
    """Test windowing of follow-up pages."""

    def test_keeps_identity(self):
        query = ListQuery("albums", 0, 1, 5, player_id=None, parameters=(make_token("tags", "l"),))

        page = query.next_page(start=1, count=20)

        assert page.correlation_id == 5
        assert page.parameters == query.parameters
        assert (page.start, page.count, page.end) == (1, 20, 21)

    def test_replaces_parameters(self):
        query = ListQuery("albums", 0, 1, 5, parameters=(make_token("tags", "l"),))

        page = query.next_page(start=1, count=20, parameters=())

        assert page.parameters == ()
