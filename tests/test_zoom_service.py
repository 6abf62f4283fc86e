import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from jose import jwt

from cvup import oauth_token
from cvup.exceptions import ZoomApiError, ZoomAuthError, ZoomRateLimitError
from cvup.services import zoom_service


def test_encode_meeting_id_plain_and_double_encoded():
    assert zoom_service.encode_meeting_id(85746065432) == "85746065432"
    assert zoom_service.encode_meeting_id("abc+def==") == "abc%2Bdef%3D%3D"
    # UUIDs starting with '/' or containing '//' are encoded twice
    assert zoom_service.encode_meeting_id("/abc") == "%252Fabc"
    assert zoom_service.encode_meeting_id("ab//cd") == "ab%252F%252Fcd"


def test_parse_zoom_response_success_and_empty():
    assert zoom_service.parse_zoom_response(200, "application/json", '{"id": 1}') == {"id": 1}
    assert zoom_service.parse_zoom_response(204, "", "") is None
    assert zoom_service.parse_zoom_response(200, "text/plain", "ok") == "ok"


def test_parse_zoom_response_error_carries_status_and_code():
    with pytest.raises(ZoomApiError) as exc:
        zoom_service.parse_zoom_response(
            404, "application/json;charset=UTF-8", '{"code": 3001, "message": "Meeting does not exist"}'
        )
    assert exc.value.status == 404
    assert exc.value.code == 3001
    assert exc.value.is_client_error
    assert "Meeting does not exist" in str(exc.value)


def test_parse_zoom_response_rate_limit_is_not_a_client_error():
    with pytest.raises(ZoomRateLimitError) as exc:
        zoom_service.parse_zoom_response(429, "application/json", "{}", retry_after="30")
    assert exc.value.status == 429
    assert exc.value.retry_after == "30"
    assert not exc.value.is_client_error


@pytest.mark.asyncio
async def test_fetch_all_pages_follows_next_page_token():
    pages = [
        {"participants": [{"id": "a"}, {"id": "b"}], "next_page_token": "tok2"},
        {"participants": [{"id": "c"}], "next_page_token": ""},
    ]
    seen = []

    async def fake_request(method, endpoint, params=None, body=None):
        seen.append(dict(params))
        return pages[len(seen) - 1]

    with patch.object(zoom_service, "zoom_api_request", side_effect=fake_request):
        results = await zoom_service.fetch_all_pages("/report/meetings/1/participants")

    assert [r["id"] for r in results] == ["a", "b", "c"]
    assert len(seen) == 2
    assert seen[0]["page_size"] == 300
    assert "next_page_token" not in seen[0]
    assert seen[1]["next_page_token"] == "tok2"


@pytest.mark.asyncio
async def test_get_participants_missing_report_gives_empty_list():
    err = ZoomApiError(404, {"code": 3001, "message": "Meeting does not exist"}, 3001)
    with patch.object(zoom_service, "fetch_all_pages", AsyncMock(side_effect=err)):
        assert await zoom_service.get_participants("123") == []


@pytest.mark.asyncio
async def test_get_participants_maps_fields():
    raw = [{"id": "u1", "name": "Ana", "user_email": "ana@example.com", "duration": 60, "extra": "x"}]
    with patch.object(zoom_service, "fetch_all_pages", AsyncMock(return_value=raw)):
        participants = await zoom_service.get_participants("123")
    assert participants[0]["id"] == "u1"
    assert participants[0]["user_email"] == "ana@example.com"
    assert participants[0]["leave_time"] is None
    assert "extra" not in participants[0]


@pytest.mark.asyncio
async def test_end_meeting_already_ended_counts_as_success():
    err = ZoomApiError(400, {"code": 3063, "message": "Meeting already ended"}, 3063)
    with patch.object(zoom_service, "zoom_api_request", AsyncMock(side_effect=err)):
        assert await zoom_service.end_meeting("123") is True


@pytest.mark.asyncio
async def test_get_registrants_registration_disabled():
    err = ZoomApiError(400, {"code": 300, "message": "Registration has not been enabled"}, 300)
    with patch.object(zoom_service, "fetch_all_pages", AsyncMock(side_effect=err)):
        assert await zoom_service.get_registrants("123") == []


@pytest.mark.asyncio
async def test_generate_meeting_report_averages_duration():
    with patch.object(zoom_service, "get_meeting", AsyncMock(return_value={"id": 1})), \
            patch.object(zoom_service, "get_participants", AsyncMock(return_value=[{"duration": 100}, {"duration": 300}])), \
            patch.object(zoom_service, "get_recordings", AsyncMock(return_value=None)):
        report = await zoom_service.generate_meeting_report("1")
    assert report["total_participants"] == 2
    assert report["average_duration"] == 200
    assert report["recordings"] == []


def _settings(**kwargs):
    defaults = {"has_s2s_credentials": False, "has_jwt_credentials": False,
                "zoom_api_key": "", "zoom_api_secret": ""}
    defaults.update(kwargs)
    return MagicMock(**defaults)


@pytest.mark.asyncio
async def test_token_is_cached_until_refresh_buffer():
    fetch = AsyncMock(side_effect=[("tok1", 3600), ("tok2", 3600)])
    with patch.object(oauth_token, "get_settings", return_value=_settings(has_s2s_credentials=True)), \
            patch.object(oauth_token, "_request_s2s_token", fetch):
        assert await oauth_token.get_zoom_oauth_token() == "tok1"
        assert await oauth_token.get_zoom_oauth_token() == "tok1"
        assert fetch.await_count == 1

        # inside the five-minute buffer the token is refreshed
        oauth_token._expires_at = time.time() + 200
        assert await oauth_token.get_zoom_oauth_token() == "tok2"
        assert fetch.await_count == 2


@pytest.mark.asyncio
async def test_jwt_fallback_when_s2s_fails():
    settings = _settings(has_s2s_credentials=True, has_jwt_credentials=True,
                         zoom_api_key="key", zoom_api_secret="secret")
    with patch.object(oauth_token, "get_settings", return_value=settings), \
            patch.object(oauth_token, "_request_s2s_token", AsyncMock(side_effect=ZoomAuthError("bad"))):
        token = await oauth_token.get_zoom_oauth_token()
    claims = jwt.decode(token, "secret", algorithms=["HS256"])
    assert claims["iss"] == "key"


@pytest.mark.asyncio
async def test_missing_credentials_raise():
    with patch.object(oauth_token, "get_settings", return_value=_settings()):
        with pytest.raises(ZoomAuthError):
            await oauth_token.get_zoom_oauth_token()
