"""
Unit tests for the RAWG gateway.

HTTP is served by httpx.MockTransport, so every test can assert on exactly
which requests went out (or that none did).
"""

import httpx
import pytest

from gamesage.config.settings import RAWGSettings
from gamesage.tools.errors import ConfigurationError, InvalidArgument, UpstreamError
from gamesage.tools.rawg import FETCH_GAME_DATA_TOOL, RAWGGateway, fetch_game_data, strip_tags

SEARCH_BODY = {
    "count": 1,
    "results": [
        {
            "id": 3498,
            "name": "Grand Theft Auto V",
            "rating": 4.47,
            "tags": [{"id": 31, "name": "Singleplayer"}],
            "genres": [{"id": 4, "name": "Action", "tags": ["nested"]}],
        }
    ],
}


class RecordingTransport:
    """Collects requests and answers them with a canned response."""

    def __init__(self, status_code: int = 200, body=None):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.body = SEARCH_BODY if body is None else body

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)


def _gateway(transport, api_key: str = "test-key", **kwargs) -> RAWGGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
    return RAWGGateway(api_key=api_key, base_url="https://rawg.test/api", http_client=client, **kwargs)


class TestStripTags:
    """Tests for strip_tags."""

    def test_removes_tags_at_every_depth(self):
        stripped = strip_tags(SEARCH_BODY)
        game = stripped["results"][0]
        assert "tags" not in game
        assert "tags" not in game["genres"][0]
        assert game["name"] == "Grand Theft Auto V"

    def test_idempotent(self):
        once = strip_tags(SEARCH_BODY)
        assert strip_tags(once) == once

    def test_does_not_mutate_input(self):
        body = {"tags": [1], "name": "x"}
        strip_tags(body)
        assert body == {"tags": [1], "name": "x"}

    def test_scalars_pass_through(self):
        assert strip_tags(7) == 7
        assert strip_tags(None) is None
        assert strip_tags("tags") == "tags"


class TestPageSize:
    """Tests for page-size defaulting and clamping."""

    def test_default_when_absent(self):
        assert _gateway(RecordingTransport()).clamp_page_size(None) == 10

    def test_clamped_to_max(self):
        assert _gateway(RecordingTransport()).clamp_page_size(100) == 40

    def test_within_range_unchanged(self):
        assert _gateway(RecordingTransport()).clamp_page_size(25) == 25

    @pytest.mark.asyncio
    async def test_search_sends_clamped_page_size(self):
        transport = RecordingTransport()
        gateway = _gateway(transport)

        await gateway.search_games(search="zelda", page_size=100)

        assert transport.requests[0].url.params["page_size"] == "40"


class TestSearchGames:
    """Tests for the search action."""

    @pytest.mark.asyncio
    async def test_sends_key_and_filters(self):
        transport = RecordingTransport()
        gateway = _gateway(transport)

        await gateway.search_games(
            search="rpg",
            ordering="-rating",
            dates="2023-01-01,2023-12-31",
            platforms="4, 187",
            genres="5",
        )

        request = transport.requests[0]
        assert request.url.path == "/api/games"
        params = request.url.params
        assert params["key"] == "test-key"
        assert params["search"] == "rpg"
        assert params["ordering"] == "-rating"
        assert params["dates"] == "2023-01-01,2023-12-31"
        assert params["platforms"] == "4,187"
        assert params["genres"] == "5"

    @pytest.mark.asyncio
    async def test_omits_unset_filters(self):
        transport = RecordingTransport()
        gateway = _gateway(transport)

        await gateway.search_games()

        params = transport.requests[0].url.params
        assert "search" not in params
        assert "ordering" not in params
        assert params["page_size"] == "10"

    @pytest.mark.asyncio
    async def test_response_tags_stripped(self):
        gateway = _gateway(RecordingTransport())
        result = await gateway.search_games(search="gta")
        assert "tags" not in result["results"][0]

    @pytest.mark.asyncio
    async def test_bad_date_range_rejected_before_request(self):
        transport = RecordingTransport()
        gateway = _gateway(transport)

        with pytest.raises(InvalidArgument) as exc_info:
            await gateway.search_games(dates="2023")

        assert exc_info.value.field == "dates"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_bad_platform_list_rejected(self):
        gateway = _gateway(RecordingTransport())
        with pytest.raises(InvalidArgument, match="platforms"):
            await gateway.search_games(platforms="pc,ps5")


class TestGameDetails:
    """Tests for the details action."""

    @pytest.mark.asyncio
    async def test_fetches_by_id(self):
        transport = RecordingTransport(body={"id": 3498, "name": "GTA V", "tags": []})
        gateway = _gateway(transport)

        result = await gateway.get_game_details(3498)

        assert transport.requests[0].url.path == "/api/games/3498"
        assert result == {"id": 3498, "name": "GTA V"}

    @pytest.mark.asyncio
    async def test_missing_game_id_makes_no_request(self):
        transport = RecordingTransport()
        gateway = _gateway(transport)

        with pytest.raises(InvalidArgument, match="game_id is required for details action"):
            await fetch_game_data(gateway, {"action": "details"})

        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_fractional_game_id_rejected(self):
        gateway = _gateway(RecordingTransport())
        with pytest.raises(InvalidArgument, match="positive integer"):
            await gateway.get_game_details(12.5)


class TestGatewayFailures:
    """Tests for configuration and upstream failures."""

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_before_network(self):
        transport = RecordingTransport()
        gateway = _gateway(transport, api_key="")

        with pytest.raises(ConfigurationError, match="RAWG API key not configured"):
            await gateway.get_genres()

        assert transport.requests == []
        assert gateway.is_configured is False

    @pytest.mark.asyncio
    async def test_http_error_status_becomes_upstream_error(self):
        gateway = _gateway(RecordingTransport(status_code=500, body={"detail": "boom"}))

        with pytest.raises(UpstreamError) as exc_info:
            await gateway.get_platforms()

        assert exc_info.value.status_code == 500
        assert "boom" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error_becomes_upstream_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = _gateway(refuse)

        with pytest.raises(UpstreamError, match="RAWG request failed"):
            await gateway.get_genres()


class TestFetchGameDataRouting:
    """Tests for the fetch_game_data tool entry point."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action,path",
        [("search", "/api/games"), ("genres", "/api/genres"), ("platforms", "/api/platforms")],
    )
    async def test_routes_action_to_endpoint(self, action, path):
        transport = RecordingTransport()
        gateway = _gateway(transport)

        await fetch_game_data(gateway, {"action": action})

        assert transport.requests[0].url.path == path

    @pytest.mark.asyncio
    async def test_unknown_action_rejected(self):
        gateway = _gateway(RecordingTransport())
        with pytest.raises(InvalidArgument, match="Unknown action"):
            await fetch_game_data(gateway, {"action": "reviews"})

    def test_schema_requires_action(self):
        assert FETCH_GAME_DATA_TOOL.required_parameters == ["action"]
        assert FETCH_GAME_DATA_TOOL.parameters["action"].enum == [
            "search", "details", "genres", "platforms",
        ]


class TestGatewayLifecycle:
    """Tests for construction from settings and client ownership."""

    def test_from_settings(self):
        settings = RAWGSettings(api_key="abc", default_page_size=20, max_page_size=30)
        gateway = RAWGGateway.from_settings(settings)
        assert gateway.is_configured
        assert gateway.clamp_page_size(None) == 20
        assert gateway.clamp_page_size(99) == 30

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(RecordingTransport()))
        async with RAWGGateway(api_key="k", http_client=client):
            pass
        assert client.is_closed is False
        await client.aclose()
