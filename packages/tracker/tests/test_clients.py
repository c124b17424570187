"""Tests for the data store, chat and identity HTTP clients."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from commission_tracker.clients.identity import IdentityDirectory, identity_from_user
from commission_tracker.clients.slack import SlackAPIError, SlackClient
from commission_tracker.clients.supabase import SupabaseClient, encode_filter
from commission_tracker.errors import UpstreamUnavailable


def make_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else []
    response.content = b"content" if payload is not None else b""
    return response


@pytest.fixture
def db():
    return SupabaseClient(base_url="http://db.test/", service_key="secret", max_retries=1)


@pytest.fixture
def no_sleep():
    with patch("commission_tracker.clients.base.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestEncodeFilter:
    """Tests for PostgREST filter encoding."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("user_1", "eq.user_1"),
            (5, "eq.5"),
            (True, "eq.true"),
            (("is", None), "is.null"),
            (("gte", "2025-07-16"), "gte.2025-07-16"),
        ],
    )
    def test_encode(self, value, expected):
        assert encode_filter(value) == expected


class TestSupabaseClient:
    """Tests for SupabaseClient requests and retry policy."""

    def test_init_builds_rest_url(self, db):
        assert db.base_url == "http://db.test/rest/v1"

    def test_auth_headers(self, db):
        headers = db._default_headers()
        assert headers["apikey"] == "secret"
        assert headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_select_sends_filters(self, db, mock_httpx_client):
        mock_httpx_client.request.return_value = make_response(payload=[{"id": 1}])

        with patch.object(db, "_get_client", AsyncMock(return_value=mock_httpx_client)):
            rows = await db.select("policies", {"user_id": "u1"}, order="created_at.desc")

        assert rows == [{"id": 1}]
        kwargs = mock_httpx_client.request.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == "/policies"
        assert kwargs["params"] == {
            "user_id": "eq.u1",
            "select": "*",
            "order": "created_at.desc",
        }

    @pytest.mark.asyncio
    async def test_upsert_ignore_duplicates(self, db, mock_httpx_client):
        mock_httpx_client.request.return_value = make_response(status_code=201, payload=[])

        with patch.object(db, "_get_client", AsyncMock(return_value=mock_httpx_client)):
            await db.upsert("contact_attempts", {"policy_id": 1}, "policy_id", ignore_duplicates=True)

        kwargs = mock_httpx_client.request.call_args.kwargs
        assert kwargs["params"] == {"on_conflict": "policy_id"}
        assert kwargs["headers"]["Prefer"] == "resolution=ignore-duplicates,return=representation"

    @pytest.mark.asyncio
    async def test_retries_once_on_server_error(self, db, mock_httpx_client, no_sleep):
        mock_httpx_client.request.side_effect = [
            make_response(status_code=503, payload={"message": "busy"}),
            make_response(payload=[{"id": 2}]),
        ]

        with patch.object(db, "_get_client", AsyncMock(return_value=mock_httpx_client)):
            rows = await db.select("policies")

        assert rows == [{"id": 2}]
        assert mock_httpx_client.request.call_count == 2
        no_sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_budget(self, db, mock_httpx_client, no_sleep):
        mock_httpx_client.request.return_value = make_response(status_code=502, payload={})

        with patch.object(db, "_get_client", AsyncMock(return_value=mock_httpx_client)):
            with pytest.raises(UpstreamUnavailable) as exc_info:
                await db.select("policies")

        assert exc_info.value.status_code == 502
        assert exc_info.value.retryable is True
        assert mock_httpx_client.request.call_count == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, db, mock_httpx_client, no_sleep):
        mock_httpx_client.request.return_value = make_response(
            status_code=400, payload={"message": "column does not exist"}
        )

        with patch.object(db, "_get_client", AsyncMock(return_value=mock_httpx_client)):
            with pytest.raises(UpstreamUnavailable) as exc_info:
                await db.select("policies")

        assert exc_info.value.retryable is False
        assert exc_info.value.details == {"message": "column does not exist"}
        assert mock_httpx_client.request.call_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transport_error_retried(self, db, mock_httpx_client, no_sleep):
        mock_httpx_client.request.side_effect = [
            httpx.ConnectError("connection refused"),
            make_response(payload=[]),
        ]

        with patch.object(db, "_get_client", AsyncMock(return_value=mock_httpx_client)):
            assert await db.select("policies") == []

        assert mock_httpx_client.request.call_count == 2

    @pytest.mark.asyncio
    async def test_unfiltered_update_refused(self, db):
        with pytest.raises(ValueError):
            await db.update("policies", {"policy_status": "Active"}, {})

    @pytest.mark.asyncio
    async def test_close(self, db, mock_httpx_client):
        db._client = mock_httpx_client
        await db.close()
        mock_httpx_client.aclose.assert_awaited_once()
        assert db._client is None


class TestSlackClient:
    """Tests for SlackClient."""

    @pytest.mark.asyncio
    async def test_post_message(self, mock_httpx_client):
        client = SlackClient(token="xoxb-1")
        mock_httpx_client.request.return_value = make_response(payload={"ok": True, "ts": "1.0"})

        with patch.object(client, "_get_client", AsyncMock(return_value=mock_httpx_client)):
            data = await client.post_message("C1", "hello", blocks=[{"type": "section"}])

        assert data["ts"] == "1.0"
        kwargs = mock_httpx_client.request.call_args.kwargs
        assert kwargs["url"] == "/chat.postMessage"
        assert kwargs["json"] == {"channel": "C1", "text": "hello", "blocks": [{"type": "section"}]}
        assert kwargs["headers"]["Authorization"] == "Bearer xoxb-1"

    @pytest.mark.asyncio
    async def test_ok_false_raises(self, mock_httpx_client):
        client = SlackClient(token="xoxb-1")
        mock_httpx_client.request.return_value = make_response(
            payload={"ok": False, "error": "channel_not_found"}
        )

        with patch.object(client, "_get_client", AsyncMock(return_value=mock_httpx_client)):
            with pytest.raises(SlackAPIError) as exc_info:
                await client.post_message("C404", "hello")

        assert exc_info.value.error == "channel_not_found"
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_conversation_info_uses_get(self, mock_httpx_client):
        client = SlackClient(token="xoxb-1")
        mock_httpx_client.request.return_value = make_response(
            payload={"ok": True, "channel": {"name": "general"}}
        )

        with patch.object(client, "_get_client", AsyncMock(return_value=mock_httpx_client)):
            await client.conversation_info("C1")

        kwargs = mock_httpx_client.request.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["params"] == {"channel": "C1"}

    @pytest.mark.asyncio
    async def test_missing_token(self):
        client = SlackClient(token="")
        assert client.configured is False
        with pytest.raises(UpstreamUnavailable):
            await client.auth_test()


class TestIdentityDirectory:
    """Tests for IdentityDirectory."""

    def test_identity_from_user_prefers_primary_email(self):
        identity = identity_from_user(
            {
                "id": "user_1",
                "first_name": "Jane",
                "last_name": "Agent",
                "image_url": "https://img.example.com/1.png",
                "primary_email_address_id": "e2",
                "email_addresses": [
                    {"id": "e1", "email_address": "old@example.com"},
                    {"id": "e2", "email_address": "jane@example.com"},
                ],
            }
        )
        assert identity.email == "jane@example.com"
        assert identity.best_display_name() == "Jane Agent"

    @pytest.mark.asyncio
    async def test_list_users_pages(self, mock_httpx_client):
        directory = IdentityDirectory(secret_key="sk_1")
        mock_httpx_client.request.side_effect = [
            make_response(payload=[{"id": "u1"}, {"id": "u2"}]),
            make_response(payload=[{"id": "u3"}]),
        ]

        with patch.object(directory, "_get_client", AsyncMock(return_value=mock_httpx_client)):
            users = await directory.list_users(page_size=2)

        assert [user.user_id for user in users] == ["u1", "u2", "u3"]
        second_call = mock_httpx_client.request.call_args_list[1].kwargs
        assert second_call["params"] == {"limit": 2, "offset": 2}

    @pytest.mark.asyncio
    async def test_missing_key(self):
        directory = IdentityDirectory(secret_key="")
        with pytest.raises(UpstreamUnavailable):
            await directory.list_users()
