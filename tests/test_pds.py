"""
Unit tests for social.graze.pdsls.atproto.pds
"""

import pytest
from unittest.mock import AsyncMock, patch
from aiohttp import ClientConnectionError, ClientResponse, ClientSession

from social.graze.pdsls.atproto.pds import known_pds_hosts

STATE_URL = "https://example.com/state.json"


def mock_state_session(status: int, body) -> AsyncMock:
    mock_session = AsyncMock(spec=ClientSession)
    mock_response = AsyncMock(spec=ClientResponse)
    mock_response.status = status
    mock_response.json.return_value = body
    mock_session.get.return_value.__aenter__.return_value = mock_response
    return mock_session


class TestKnownPdsHosts:
    """Test suite for the known PDS list."""

    @pytest.mark.asyncio
    async def test_filters_errored_hosts(self):
        mock_session = mock_state_session(
            200,
            {
                "pdses": {
                    "https://pds.bsky.mom/": {"version": "0.4.0"},
                    "https://down.example.com/": {"errorAt": 1700000000000},
                    "https://pds.example.com/": {},
                }
            },
        )

        hosts = await known_pds_hosts(mock_session, STATE_URL)

        assert hosts == ["pds.bsky.mom", "pds.example.com"]
        mock_session.get.assert_called_once_with(STATE_URL)

    @pytest.mark.asyncio
    async def test_http_error(self):
        assert await known_pds_hosts(mock_state_session(500, None), STATE_URL) == []

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        assert await known_pds_hosts(mock_state_session(200, ["x"]), STATE_URL) == []

    @pytest.mark.asyncio
    @patch("social.graze.pdsls.atproto.pds.sentry_sdk")
    async def test_connection_error(self, mock_sentry):
        mock_session = AsyncMock(spec=ClientSession)
        mock_session.get.side_effect = ClientConnectionError("refused")

        assert await known_pds_hosts(mock_session, STATE_URL) == []
        mock_sentry.capture_exception.assert_called_once()
