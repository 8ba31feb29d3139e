import asyncio
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
import requests

from player.client import HlsAssetClient, PlaybackTokenClient, TokenGrant
from player.errors import AssetFetchError, FailureReason, TokenFetchError
from player.session import Failed, PlayerSessionController, RefreshScheduled


def _response(status_code, body=None, content=b""):
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    if body is None:
        response.json.side_effect = ValueError("no json")
        response.text = "<html>Bad Gateway</html>"
    else:
        response.json.return_value = body
    return response


class TestPlaybackTokenClient:

    def test_success(self):
        session = MagicMock()
        session.post.return_value = _response(200, {
            "success": True, "token": "abc.def", "expiresIn": 300, "access": {"type": "free"},
        })
        client = PlaybackTokenClient("https://api.coursemarket.test/", "session-key", session=session)

        grant = client.fetch("lesson-1")

        assert grant == TokenGrant("abc.def", 300, {"type": "free"})
        session.post.assert_called_once_with(
            "https://api.coursemarket.test/api/videos/token/lesson-1",
            headers={"Authorization": "Bearer session-key"},
            timeout=10.0,
        )

    @pytest.mark.parametrize("status, code, reason", [
        (403, "NOT_PURCHASED", FailureReason.NOT_PURCHASED),
        (403, "ACCESS_EXPIRED", FailureReason.ACCESS_EXPIRED),
        (401, "UNAUTHENTICATED", FailureReason.SESSION_EXPIRED),
        (404, "NOT_FOUND", FailureReason.NOT_FOUND),
        (503, "UPSTREAM_UNAVAILABLE", FailureReason.UPSTREAM_UNAVAILABLE),
        (500, None, FailureReason.UNKNOWN),
    ])
    def test_error_codes(self, status, code, reason):
        session = MagicMock()
        session.post.return_value = _response(status, {"success": False, "code": code, "error": "denied"})

        with pytest.raises(TokenFetchError) as excinfo:
            PlaybackTokenClient("http://x", "k", session=session).fetch("lesson-1")

        assert excinfo.value.reason == reason
        assert excinfo.value.status == status

    def test_non_json_gateway_error(self):
        session = MagicMock()
        session.post.return_value = _response(503)

        with pytest.raises(TokenFetchError) as excinfo:
            PlaybackTokenClient("http://x", "k", session=session).fetch("lesson-1")
        assert excinfo.value.reason == FailureReason.UPSTREAM_UNAVAILABLE

    @pytest.mark.parametrize("body", [
        None,
        {"success": True},
        {"token": "t", "expiresIn": "soon"},
        ["not", "a", "dict"],
    ])
    def test_malformed_success_body(self, body):
        session = MagicMock()
        session.post.return_value = _response(200, body)

        with pytest.raises(TokenFetchError) as excinfo:
            PlaybackTokenClient("http://x", "k", session=session).fetch("lesson-1")

        assert excinfo.value.reason == FailureReason.UNKNOWN
        assert excinfo.value.status == 200

    @pytest.mark.parametrize("error, reason", [
        (requests.exceptions.ReadTimeout("slow"), FailureReason.TIMEOUT),
        (requests.exceptions.ConnectionError("refused"), FailureReason.NETWORK_ERROR),
    ])
    def test_transport_errors(self, error, reason):
        session = MagicMock()
        session.post.side_effect = error

        with pytest.raises(TokenFetchError) as excinfo:
            PlaybackTokenClient("http://x", "k", session=session).fetch("lesson-1")
        assert excinfo.value.reason == reason

    @pytest.mark.asyncio
    async def test_awaitable(self):
        session = MagicMock()
        session.post.return_value = _response(200, {"token": "t", "expiresIn": 120})

        grant = await PlaybackTokenClient("http://x", "k", session=session)("lesson-1")
        assert grant.expires_in == 120


@pytest_asyncio.fixture
async def controller():
    minted = []

    async def fetch_token(video_id):
        minted.append(video_id)
        return TokenGrant(f"t{len(minted)}", 300)

    controller = PlayerSessionController(fetch_token)
    await controller.select("lesson-1")
    yield controller
    await controller.close()


class TestHlsAssetClient:

    @pytest.mark.asyncio
    async def test_sends_current_token(self, controller):
        session = MagicMock()
        session.get.return_value = _response(200, content=b"#EXTM3U")
        client = HlsAssetClient("http://x", controller, session=session)

        assert await client.manifest("lesson-1") == b"#EXTM3U"
        session.get.assert_called_once_with(
            "http://x/api/videos/hls/lesson-1/index.m3u8",
            headers={"Authorization": "Bearer t1"},
            timeout=10.0,
        )

    @pytest.mark.asyncio
    async def test_unauthorized_refetches_token_and_retries_once(self, controller):
        session = MagicMock()
        session.get.side_effect = [_response(401, {"code": "TOKEN_EXPIRED"}), _response(200, content=b"\x47")]
        client = HlsAssetClient("http://x", controller, session=session)

        assert await client.segment("lesson-1", "360p_004.ts") == b"\x47"
        retry_headers = session.get.call_args_list[1].kwargs["headers"]
        assert retry_headers == {"Authorization": "Bearer t2"}
        assert isinstance(controller.state, RefreshScheduled)

    @pytest.mark.asyncio
    async def test_concurrent_rejections_share_one_refetch(self):
        minted = []

        async def fetch_token(video_id):
            minted.append(video_id)
            await asyncio.sleep(0.01)
            return TokenGrant(f"t{len(minted)}", 300)

        controller = PlayerSessionController(fetch_token)
        await controller.select("lesson-1")

        def get(url, headers, timeout):
            if headers["Authorization"] == "Bearer t1":
                return _response(401, {"code": "TOKEN_EXPIRED"})
            return _response(200, content=url.encode())

        session = MagicMock()
        session.get.side_effect = get
        client = HlsAssetClient("http://x", controller, session=session)

        segments = await asyncio.gather(*(client.segment("lesson-1", f"360p_00{i}.ts") for i in range(4)))

        assert len(segments) == 4
        assert len(minted) == 2
        assert controller.auth_headers("lesson-1") == {"Authorization": "Bearer t2"}
        await controller.close()

    @pytest.mark.asyncio
    async def test_repeated_rejection_fails_session(self, controller):
        session = MagicMock()
        session.get.return_value = _response(401, {"code": "TOKEN_EXPIRED"})
        client = HlsAssetClient("http://x", controller, session=session)

        with pytest.raises(AssetFetchError) as excinfo:
            await client.key("lesson-1")

        assert excinfo.value.reason == FailureReason.PLAYBACK_REJECTED
        assert session.get.call_count == 2
        assert isinstance(controller.state, Failed)
        assert controller.state.reason == FailureReason.PLAYBACK_REJECTED

    @pytest.mark.asyncio
    async def test_forbidden_is_not_retried(self, controller):
        session = MagicMock()
        session.get.return_value = _response(403, {"code": "TOKEN_SCOPE_MISMATCH"})
        client = HlsAssetClient("http://x", controller, session=session)

        with pytest.raises(AssetFetchError):
            await client.playlist("lesson-1", "360p")
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_missing_asset_keeps_session(self, controller):
        session = MagicMock()
        session.get.return_value = _response(404, {"code": "NOT_FOUND"})
        client = HlsAssetClient("http://x", controller, session=session)

        with pytest.raises(AssetFetchError) as excinfo:
            await client.segment("lesson-1", "720p_999.ts")
        assert excinfo.value.reason == FailureReason.NOT_FOUND
        assert isinstance(controller.state, RefreshScheduled)
