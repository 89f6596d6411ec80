"""
RAWG game-data gateway.

Translates a validated fetch_game_data argument bag into one GET request
against the RAWG REST API (https://rawg.io/apidocs) and shrinks the
response before it is handed to the model.

Every request carries the configured API key as the ``key`` query parameter.
The key is fixed when the gateway is constructed; a missing key fails with
ConfigurationError before any network call is attempted. Failures are not
retried.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from gamesage.config.settings import RAWGSettings
from gamesage.tools.errors import ConfigurationError, InvalidArgument, UpstreamError
from gamesage.tools.models import ToolParameter, ToolSchema

logger = logging.getLogger(__name__)

ACTIONS = ("search", "details", "genres", "platforms")
ORDERINGS = ("-rating", "-released", "-added", "-created", "-updated", "rating", "released")

_DATES_RE = re.compile(r"^\d{4}-\d{2}-\d{2},\d{4}-\d{2}-\d{2}$")
_ID_LIST_RE = re.compile(r"^\d+(,\d+)*$")

FETCH_GAME_DATA_TOOL = ToolSchema(
    name="fetch_game_data",
    description=(
        "Fetch video game data from the RAWG API. Use this tool when users ask about games, "
        "ratings, platforms, genres, or any gaming statistics. 'action' is required and must be "
        "one of: search, details, genres, platforms. "
        "search: optional search, ordering, dates, platforms, genres, page, page_size. "
        "details: requires game_id (positive integer). genres and platforms take no parameters. "
        "page_size defaults to 10 and is capped at 40. The API rate limit is low: prefer one "
        "large page over many small queries."
    ),
    parameters={
        "action": ToolParameter(
            type="string",
            required=True,
            enum=list(ACTIONS),
            description="The action to perform: search for games, get game details, "
                        "list genres, or list platforms",
        ),
        "search": ToolParameter(
            type="string",
            description="Search query for game names (used with action: search)",
        ),
        "game_id": ToolParameter(
            type="number",
            minimum=1,
            description="Game ID for getting details (required for action: details)",
        ),
        "page": ToolParameter(
            type="integer",
            minimum=1,
            description="Result page number, starting at 1 (used with action: search)",
        ),
        "page_size": ToolParameter(
            type="number",
            minimum=1,
            description="Number of results to return (default: 10, max: 40)",
        ),
        "ordering": ToolParameter(
            type="string",
            enum=list(ORDERINGS),
            description="Sort order: -rating (highest rated), -released (newest), "
                        "rating (lowest rated), released (oldest)",
        ),
        "dates": ToolParameter(
            type="string",
            description='Date range filter in format YYYY-MM-DD,YYYY-MM-DD '
                        '(e.g., "2023-01-01,2023-12-31")',
        ),
        "platforms": ToolParameter(
            type="string",
            description='Platform IDs to filter by (comma-separated, e.g., "4,187" for PC and '
                        'PlayStation 5)',
        ),
        "genres": ToolParameter(
            type="string",
            description="Genre IDs to filter by (comma-separated)",
        ),
    },
)


def strip_tags(data: Any, field: str = "tags") -> Any:
    """
    Recursively drop ``field`` from every object in a JSON structure.

    RAWG attaches long tag lists to every game; they cost a lot of tokens
    and rarely help answer a question. Returns a new structure and never
    mutates the input, so strip_tags(strip_tags(x)) == strip_tags(x).
    """
    if isinstance(data, list):
        return [strip_tags(item, field) for item in data]
    if isinstance(data, dict):
        return {
            key: strip_tags(value, field)
            for key, value in data.items()
            if key != field
        }
    return data


def _normalize_id_list(value: str | None, field: str) -> str | None:
    if value is None:
        return None
    compact = "".join(str(value).split())
    if not _ID_LIST_RE.match(compact):
        raise InvalidArgument(
            f"{field} must be a comma-separated list of numeric ids, got {value!r}", field=field
        )
    return compact


class RAWGGateway:
    """
    Thin async client for the RAWG API.

    Owns an httpx.AsyncClient unless one is injected (tests pass a client
    backed by httpx.MockTransport). Use as an async context manager, or call
    initialize()/shutdown() explicitly; the client is also created lazily on
    first use.

    Args:
        api_key: RAWG API key; empty means "not configured"
        base_url: RAWG API root
        timeout: Per-request timeout in seconds
        default_page_size: Page size used when a search gives none
        max_page_size: Upper bound requested page sizes are clamped to
        http_client: Optional pre-built client (not closed by shutdown())
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.rawg.io/api",
        timeout: float = 15.0,
        default_page_size: int = 10,
        max_page_size: int = 40,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_settings(
        cls, settings: RAWGSettings, http_client: httpx.AsyncClient | None = None
    ) -> RAWGGateway:
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout,
            default_page_size=settings.default_page_size,
            max_page_size=settings.max_page_size,
            http_client=http_client,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def initialize(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True

    async def shutdown(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> RAWGGateway:
        await self.initialize()
        return self

    async def __aexit__(self, *_args) -> None:
        await self.shutdown()

    def clamp_page_size(self, page_size: float | None) -> int:
        """Default when absent, cap at the API maximum."""
        if page_size is None:
            return self._default_page_size
        return max(1, min(int(page_size), self._max_page_size))

    async def search_games(
        self,
        search: str | None = None,
        page: int | None = None,
        page_size: float | None = None,
        ordering: str | None = None,
        dates: str | None = None,
        platforms: str | None = None,
        genres: str | None = None,
    ) -> Any:
        """Search games; tags are stripped from the response."""
        if ordering is not None and ordering not in ORDERINGS:
            raise InvalidArgument(
                f"ordering must be one of {', '.join(ORDERINGS)}, got {ordering!r}",
                field="ordering",
            )
        if dates is not None and not _DATES_RE.match(dates.strip()):
            raise InvalidArgument(
                f"dates must look like YYYY-MM-DD,YYYY-MM-DD, got {dates!r}", field="dates"
            )

        params = {
            "search": search,
            "page": int(page) if page is not None else None,
            "page_size": self.clamp_page_size(page_size),
            "ordering": ordering,
            "dates": dates.strip() if dates is not None else None,
            "platforms": _normalize_id_list(platforms, "platforms"),
            "genres": _normalize_id_list(genres, "genres"),
        }
        return strip_tags(await self._get("/games", params))

    async def get_game_details(self, game_id: float | None) -> Any:
        """Fetch one game by RAWG id; tags are stripped from the response."""
        if game_id is None or isinstance(game_id, bool) or not isinstance(game_id, (int, float)):
            raise InvalidArgument("game_id is required for details action", field="game_id")
        if game_id < 1 or int(game_id) != game_id:
            raise InvalidArgument(
                f"game_id must be a positive integer, got {game_id!r}", field="game_id"
            )
        return strip_tags(await self._get(f"/games/{int(game_id)}"))

    async def get_genres(self) -> Any:
        return await self._get("/genres")

    async def get_platforms(self) -> Any:
        return await self._get("/platforms")

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        if not self._api_key:
            raise ConfigurationError(
                "RAWG API key not configured. Set RAWG_API_KEY in your environment."
            )
        await self.initialize()

        query = {"key": self._api_key}
        query.update({k: v for k, v in (params or {}).items() if v is not None})

        url = f"{self._base_url}{path}"
        redacted = {k: v for k, v in query.items() if k != "key"}
        logger.debug(f"GET {url} params={redacted}")

        try:
            response = await self._client.get(url, params=query)
        except httpx.HTTPError as e:
            logger.error(f"RAWG request to {path} failed: {e}")
            raise UpstreamError(f"RAWG request failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error(f"RAWG returned {response.status_code} for {path}: {message}")
            raise UpstreamError(
                f"RAWG API returned {response.status_code}: {message}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"RAWG returned a non-JSON body for {path}", status_code=response.status_code
            ) from e


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)


async def fetch_game_data(gateway: RAWGGateway, arguments: dict[str, Any]) -> Any:
    """Tool entry point: route ``arguments["action"]`` to the matching gateway call."""
    action = arguments.get("action")

    if action == "search":
        return await gateway.search_games(
            search=arguments.get("search"),
            page=arguments.get("page"),
            page_size=arguments.get("page_size"),
            ordering=arguments.get("ordering"),
            dates=arguments.get("dates"),
            platforms=arguments.get("platforms"),
            genres=arguments.get("genres"),
        )
    if action == "details":
        return await gateway.get_game_details(arguments.get("game_id"))
    if action == "genres":
        return await gateway.get_genres()
    if action == "platforms":
        return await gateway.get_platforms()

    raise InvalidArgument(f"Unknown action: {action}", field="action")
