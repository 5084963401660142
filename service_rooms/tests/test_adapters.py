"""
Unit tests for the backend and TMDB clients.
"""

import json

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from service_rooms.app.adapters.backend_client import BackendClient
from service_rooms.app.adapters.tmdb_client import TMDBClient, backdrop_url, image_url
from shared.errors import BackendError, MetadataServiceError, NotFoundError


def _response(status_code, body, url="http://backend.local"):
    return httpx.Response(
        status_code=status_code,
        content=json.dumps(body),
        request=httpx.Request("GET", url),
    )


class TestBackendClient:
    """Test cases for BackendClient."""

    @pytest.fixture
    def backend_client(self):
        return BackendClient("http://backend.local/", api_key="anon-key")

    @pytest.mark.asyncio
    async def test_select_builds_postgrest_query(self, backend_client):
        rows = [{"id": "r1"}, {"id": "r2"}]

        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(return_value=_response(200, rows))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            result = await backend_client.select(
                "rooms",
                filters={"id": "in.(r1,r2)"},
                order="created_at.desc",
                limit=5,
            )

        assert result == rows
        args, kwargs = mock_get.call_args
        assert args[0] == "http://backend.local/rest/v1/rooms"
        assert kwargs["params"] == {
            "select": "*",
            "id": "in.(r1,r2)",
            "order": "created_at.desc",
            "limit": "5",
        }
        assert kwargs["headers"]["apikey"] == "anon-key"
        assert kwargs["headers"]["Authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_select_non_200_raises_backend_error(self, backend_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(500, {"message": "boom"})
            )

            with pytest.raises(BackendError) as exc_info:
                await backend_client.select("rooms")

        assert exc_info.value.status_code == 502
        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_select_retries_transport_errors(self, backend_client):
        with patch('httpx.AsyncClient') as mock_client, \
             patch('shared.retry.calculate_delay', return_value=0):
            mock_get = AsyncMock(side_effect=httpx.ConnectError("Connection refused"))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            with pytest.raises(BackendError):
                await backend_client.select("rooms")

        assert mock_get.await_count == 3

    @pytest.mark.asyncio
    async def test_select_recovers_after_transient_error(self, backend_client):
        with patch('httpx.AsyncClient') as mock_client, \
             patch('shared.retry.calculate_delay', return_value=0):
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                side_effect=[httpx.ConnectError("Connection refused"), _response(200, [])]
            )

            assert await backend_client.select("rooms") == []

    @pytest.mark.asyncio
    async def test_select_one_missing_row(self, backend_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(200, [])
            )

            with pytest.raises(NotFoundError):
                await backend_client.select_one("rooms", filters={"id": "eq.missing"})


class TestTMDBClient:
    """Test cases for TMDBClient."""

    @pytest.fixture
    def tmdb_client(self):
        return TMDBClient("https://tmdb.local/3", access_token="token", language="en-US")

    @pytest.mark.asyncio
    async def test_get_merges_language(self, tmdb_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(return_value=_response(200, {"id": 550}))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            result = await tmdb_client.get("/movie/550", {"append_to_response": "credits"})

        assert result == {"id": 550}
        args, kwargs = mock_get.call_args
        assert args[0] == "https://tmdb.local/3/movie/550"
        assert kwargs["params"] == {"language": "en-US", "append_to_response": "credits"}
        assert kwargs["headers"]["Authorization"] == "Bearer token"

    @pytest.mark.asyncio
    async def test_get_404_raises_not_found(self, tmdb_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(404, {"status_message": "not found"})
            )

            with pytest.raises(NotFoundError):
                await tmdb_client.get("/movie/0")

    @pytest.mark.asyncio
    async def test_get_server_error_raises_metadata_error(self, tmdb_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(503, {})
            )

            with pytest.raises(MetadataServiceError) as exc_info:
                await tmdb_client.get("/trending/movie/day")

        assert exc_info.value.service == "tmdb"

    @pytest.mark.asyncio
    async def test_get_timeout_raises_metadata_error(self, tmdb_client):
        with patch('httpx.AsyncClient') as mock_client, \
             patch('shared.retry.calculate_delay', return_value=0):
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                side_effect=httpx.ReadTimeout("timed out")
            )

            with pytest.raises(MetadataServiceError):
                await tmdb_client.get("/movie/550")


def test_image_urls():
    assert image_url("/abc.jpg") == "https://image.tmdb.org/t/p/w500/abc.jpg"
    assert backdrop_url("/abc.jpg") == "https://image.tmdb.org/t/p/w1280/abc.jpg"
    assert image_url("/abc.jpg", size="original") == "https://image.tmdb.org/t/p/original/abc.jpg"
