"""
HTTP transport for the player: token endpoint and HLS gateway.

Blocking ``requests`` calls run in a worker thread so the session
controller's event loop stays responsive.
"""

import asyncio
import logging
from dataclasses import dataclass, field

import requests

from .errors import AssetFetchError, FailureReason, TokenFetchError, reason_for_response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class TokenGrant:
    token: str
    expires_in: int
    access: dict = field(default_factory=dict)


def _error_body(response):
    try:
        data = response.json()
    except ValueError:
        return None, response.text[:200]
    if not isinstance(data, dict):
        return None, ''
    return data.get('code'), data.get('error', '')


class PlaybackTokenClient:
    """
    Calls ``POST /api/videos/token/<video_id>`` with the user's session token.

    Instances are awaitable fetchers: ``await client(video_id)``.
    """

    def __init__(self, base_url, session_token, timeout=DEFAULT_TIMEOUT, session=None):
        self.base_url = base_url.rstrip('/')
        self.session_token = session_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, video_id):
        url = f"{self.base_url}/api/videos/token/{video_id}"

        try:
            response = self.session.post(
                url,
                headers={'Authorization': f'Bearer {self.session_token}'},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise TokenFetchError(FailureReason.TIMEOUT, detail=str(e)) from e
        except requests.exceptions.RequestException as e:
            raise TokenFetchError(FailureReason.NETWORK_ERROR, detail=str(e)) from e

        if response.status_code == 200:
            try:
                data = response.json()
                return TokenGrant(
                    token=data['token'],
                    expires_in=int(data['expiresIn']),
                    access=data.get('access') or {},
                )
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Malformed token response | video=%s: %s", video_id, e)
                raise TokenFetchError(FailureReason.UNKNOWN, status=200, detail='Malformed token response') from e

        code, detail = _error_body(response)
        logger.info("Token request rejected | video=%s status=%s code=%s", video_id, response.status_code, code)
        raise TokenFetchError(
            reason_for_response(response.status_code, code),
            status=response.status_code,
            detail=detail,
        )

    async def __call__(self, video_id):
        return await asyncio.to_thread(self.fetch, video_id)


class HlsAssetClient:
    """
    Fetches manifest, playlists, segments and the key through the gateway,
    attaching the controller's current token to every request.

    A 401 triggers one token re-fetch (shared by concurrent requests) and
    one retry before the failure is surfaced on the controller.
    """

    def __init__(self, base_url, controller, timeout=DEFAULT_TIMEOUT, session=None):
        self.base_url = base_url.rstrip('/')
        self.controller = controller
        self.timeout = timeout
        self.session = session or requests.Session()

    def url_for(self, video_id, asset):
        return f"{self.base_url}/api/videos/hls/{video_id}/{asset}"

    def _get(self, url, headers):
        try:
            return self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise AssetFetchError(FailureReason.TIMEOUT, detail=str(e)) from e
        except requests.exceptions.RequestException as e:
            raise AssetFetchError(FailureReason.NETWORK_ERROR, detail=str(e)) from e

    async def fetch(self, video_id, asset):
        url = self.url_for(video_id, asset)
        headers = self.controller.auth_headers(video_id)
        response = await asyncio.to_thread(self._get, url, headers)

        if response.status_code == 401:
            rejected_token = headers['Authorization'].partition(' ')[2]
            if await self.controller.recover_unauthorized(video_id, rejected_token=rejected_token):
                response = await asyncio.to_thread(self._get, url, self.controller.auth_headers(video_id))

        if response.status_code in (401, 403):
            code, detail = _error_body(response)
            self.controller.report_failure(video_id, FailureReason.PLAYBACK_REJECTED)
            raise AssetFetchError(FailureReason.PLAYBACK_REJECTED, status=response.status_code, detail=code or detail)

        if response.status_code == 404:
            raise AssetFetchError(FailureReason.NOT_FOUND, status=404, detail=asset)

        if response.status_code != 200:
            raise AssetFetchError(FailureReason.UNKNOWN, status=response.status_code, detail=asset)

        return response.content

    async def manifest(self, video_id):
        return await self.fetch(video_id, 'index.m3u8')

    async def playlist(self, video_id, variant):
        return await self.fetch(video_id, f'{variant}.m3u8')

    async def segment(self, video_id, name):
        return await self.fetch(video_id, name)

    async def key(self, video_id):
        return await self.fetch(video_id, 'key')
