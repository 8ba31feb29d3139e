from enum import Enum


class FailureReason(str, Enum):
    NOT_PURCHASED = 'NOT_PURCHASED'
    ACCESS_EXPIRED = 'ACCESS_EXPIRED'
    SESSION_EXPIRED = 'SESSION_EXPIRED'
    NOT_FOUND = 'NOT_FOUND'
    UPSTREAM_UNAVAILABLE = 'UPSTREAM_UNAVAILABLE'
    PLAYBACK_REJECTED = 'PLAYBACK_REJECTED'
    TIMEOUT = 'TIMEOUT'
    NETWORK_ERROR = 'NETWORK_ERROR'
    UNKNOWN = 'UNKNOWN'


GENERIC_MESSAGE = 'The video could not be loaded. Please try again.'

MESSAGES = {
    FailureReason.NOT_PURCHASED: 'This course has not been purchased yet. Purchase it to start watching.',
    FailureReason.ACCESS_EXPIRED: 'Your access to this course has expired. Renew it to keep watching.',
    FailureReason.SESSION_EXPIRED: 'Your session has expired. Please log in again.',
    FailureReason.NOT_FOUND: 'This video is not available.',
}


def user_message(reason):
    return MESSAGES.get(reason, GENERIC_MESSAGE)


# Token endpoint error codes -> client reasons
SERVER_CODES = {
    'NOT_PURCHASED': FailureReason.NOT_PURCHASED,
    'ACCESS_EXPIRED': FailureReason.ACCESS_EXPIRED,
    'UNAUTHENTICATED': FailureReason.SESSION_EXPIRED,
    'NOT_FOUND': FailureReason.NOT_FOUND,
    'UPSTREAM_UNAVAILABLE': FailureReason.UPSTREAM_UNAVAILABLE,
}


def reason_for_response(status_code, code=None):
    if code in SERVER_CODES:
        return SERVER_CODES[code]
    if status_code == 401:
        return FailureReason.SESSION_EXPIRED
    if status_code == 404:
        return FailureReason.NOT_FOUND
    if status_code == 503:
        return FailureReason.UPSTREAM_UNAVAILABLE
    return FailureReason.UNKNOWN


class PlayerError(Exception):
    pass


class TokenFetchError(PlayerError):
    """Token request failed; ``reason`` picks the message shown to the user."""

    def __init__(self, reason, status=None, detail=''):
        self.reason = FailureReason(reason)
        self.status = status
        self.detail = detail
        super().__init__(detail or self.reason.value)


class AssetFetchError(PlayerError):
    def __init__(self, reason, status=None, detail=''):
        self.reason = FailureReason(reason)
        self.status = status
        self.detail = detail
        super().__init__(detail or self.reason.value)


class NoPlaybackToken(PlayerError):
    """No live token for the requested video."""
