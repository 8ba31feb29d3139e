"""
Player session controller: keeps one playback token per active video and
refreshes it in the background before it expires.

States::

    Idle -> FetchingToken -> Playing -> RefreshScheduled -> (Playing | Failed)

A single ``_token`` slot is authoritative for every manifest, segment and
key request. Each ``select()`` bumps a generation counter; fetch results
from an older generation are dropped, so a stale token is never applied to
a newly selected video.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from .errors import FailureReason, NoPlaybackToken, TokenFetchError, user_message

logger = logging.getLogger(__name__)

REFRESH_MARGIN_SECONDS = 60
MIN_REFRESH_DELAY_SECONDS = 30
FETCH_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class FetchingToken:
    video_id: str


@dataclass(frozen=True)
class Playing:
    video_id: str
    expires_in: int


@dataclass(frozen=True)
class RefreshScheduled:
    video_id: str
    expires_in: int
    refresh_in: float


@dataclass(frozen=True)
class Failed:
    video_id: str
    reason: FailureReason
    message: str
    during_refresh: bool = False


@dataclass
class _CurrentToken:
    video_id: str
    token: str
    expires_in: int
    access: dict = field(default_factory=dict)


class PlayerSessionController:

    def __init__(
        self,
        fetch_token,
        *,
        fetch_timeout=FETCH_TIMEOUT_SECONDS,
        refresh_margin=REFRESH_MARGIN_SECONDS,
        min_refresh_delay=MIN_REFRESH_DELAY_SECONDS,
        on_state_change=None,
    ):
        """
        Args:
            fetch_token: coroutine function ``(video_id) -> TokenGrant``;
                raises TokenFetchError on a rejected request.
            fetch_timeout: seconds before a hung token request counts as failed.
            on_state_change: optional callable invoked with each new state.
        """
        self._fetch_token = fetch_token
        self.fetch_timeout = fetch_timeout
        self.refresh_margin = refresh_margin
        self.min_refresh_delay = min_refresh_delay
        self._on_state_change = on_state_change

        self.state = Idle()
        self._token: Optional[_CurrentToken] = None
        self._generation = 0
        self._fetch_task = None
        self._refresh_task = None
        self._recovery_task = None

    # ---------------------------------
    # Public API
    # ---------------------------------
    @property
    def video_id(self):
        return self._token.video_id if self._token else None

    def refresh_delay(self, expires_in):
        return max(expires_in - self.refresh_margin, self.min_refresh_delay)

    async def select(self, video_id):
        """Start a session for ``video_id``, replacing any current one."""
        self._cancel_pending()
        self._generation += 1
        generation = self._generation
        self._token = None
        self._set_state(FetchingToken(video_id))

        grant = await self._fetch(video_id, generation, during_refresh=False)
        if grant is not None:
            self._install(video_id, grant)
        return self.state

    def auth_headers(self, video_id):
        """Per-request header hook for manifest, segment and key fetches."""
        current = self._token
        if current is None or current.video_id != video_id:
            raise NoPlaybackToken(video_id)
        return {'Authorization': f'Bearer {current.token}'}

    async def recover_unauthorized(self, video_id, rejected_token=None):
        """
        Re-fetch a token after the gateway rejected one mid-download.
        Returns True when a fresh token is in place.

        Concurrent callers share one in-flight re-fetch. A caller whose
        ``rejected_token`` has already been replaced gets True straight away.
        """
        current = self._token
        if current is None or current.video_id != video_id:
            return False
        if rejected_token is not None and rejected_token != current.token:
            return True

        task = self._recovery_task
        if task is None or task.done():
            task = asyncio.ensure_future(self._recover(video_id, self._generation))
            self._recovery_task = task

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return False
            raise

    def report_failure(self, video_id, reason):
        """Surface a failure detected outside the token fetch (e.g. a rejected segment)."""
        if self.video_id != video_id:
            return
        self._cancel_pending()
        self._fail(video_id, FailureReason(reason), during_refresh=True)

    async def close(self):
        """Cancel timers and in-flight requests, e.g. on unmount."""
        self._cancel_pending()
        self._generation += 1
        self._token = None
        self._set_state(Idle())

    # ---------------------------------
    # Internals
    # ---------------------------------
    def _set_state(self, state):
        self.state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _cancel_pending(self):
        current = asyncio.current_task()
        for task in (self._fetch_task, self._refresh_task, self._recovery_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._fetch_task = None
        self._refresh_task = None
        self._recovery_task = None

    def _fail(self, video_id, reason, during_refresh):
        self._token = None
        message = user_message(reason)
        logger.warning(
            "Playback session failed | video=%s reason=%s refresh=%s",
            video_id,
            reason.value,
            during_refresh,
        )
        self._set_state(Failed(video_id, reason, message, during_refresh))

    async def _fetch(self, video_id, generation, during_refresh):
        task = asyncio.ensure_future(
            asyncio.wait_for(self._fetch_token(video_id), timeout=self.fetch_timeout)
        )
        self._fetch_task = task

        try:
            grant = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                return None
            raise
        except asyncio.TimeoutError:
            reason = FailureReason.TIMEOUT
        except TokenFetchError as exc:
            reason = exc.reason
        except Exception:
            logger.exception("Unexpected error fetching playback token | video=%s", video_id)
            reason = FailureReason.UNKNOWN
        else:
            if generation != self._generation:
                return None
            return grant
        finally:
            if self._fetch_task is task:
                self._fetch_task = None

        if generation == self._generation:
            self._fail(video_id, reason, during_refresh)
        return None

    def _install(self, video_id, grant):
        self._token = _CurrentToken(video_id, grant.token, grant.expires_in, dict(grant.access))
        self._set_state(Playing(video_id, grant.expires_in))

        previous = self._refresh_task
        if previous is not None and previous is not asyncio.current_task() and not previous.done():
            previous.cancel()

        delay = self.refresh_delay(grant.expires_in)
        self._refresh_task = asyncio.ensure_future(self._refresh_after(video_id, delay, self._generation))
        self._set_state(RefreshScheduled(video_id, grant.expires_in, delay))

    async def _recover(self, video_id, generation):
        logger.info("Playback token rejected mid-stream, re-fetching | video=%s", video_id)
        grant = await self._fetch(video_id, generation, during_refresh=True)
        if grant is None:
            return False
        self._install(video_id, grant)
        return True

    async def _refresh_after(self, video_id, delay, generation):
        await asyncio.sleep(delay)
        if generation != self._generation:
            return

        grant = await self._fetch(video_id, generation, during_refresh=True)
        if grant is not None:
            self._install(video_id, grant)
