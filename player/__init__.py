"""Client-side playback session: token lifecycle and gateway requests."""

from .client import HlsAssetClient, PlaybackTokenClient, TokenGrant
from .errors import AssetFetchError, FailureReason, NoPlaybackToken, TokenFetchError
from .session import (
    Failed,
    FetchingToken,
    Idle,
    PlayerSessionController,
    Playing,
    RefreshScheduled,
)

__all__ = [
    'AssetFetchError',
    'Failed',
    'FailureReason',
    'FetchingToken',
    'HlsAssetClient',
    'Idle',
    'NoPlaybackToken',
    'PlaybackTokenClient',
    'PlayerSessionController',
    'Playing',
    'RefreshScheduled',
    'TokenFetchError',
    'TokenGrant',
]
