"""
Error taxonomy for video access and streaming.

Every failure carries a machine-readable ``code`` so clients can tell a
purchase prompt from a renewal prompt, a re-login prompt or a plain retry.
"""

import logging

from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, AuthenticationFailed
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class StreamingError(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Access denied'
    default_code = 'ACCESS_DENIED'

    @property
    def code(self):
        return self.default_code


# ---------------------------------
# Entitlement / issuance
# ---------------------------------
class Unauthenticated(StreamingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication required'
    default_code = 'UNAUTHENTICATED'


class NotPurchased(StreamingError):
    default_detail = 'Course not purchased'
    default_code = 'NOT_PURCHASED'


class AccessExpired(StreamingError):
    default_detail = 'Course access has expired'
    default_code = 'ACCESS_EXPIRED'


class ContentNotFound(StreamingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Video not found'
    default_code = 'NOT_FOUND'


class TransientUpstreamFailure(StreamingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Entitlement store unavailable, try again'
    default_code = 'UPSTREAM_UNAVAILABLE'


# ---------------------------------
# Gateway
# ---------------------------------
class TokenInvalidOrExpired(StreamingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Invalid or expired token'
    default_code = 'TOKEN_INVALID'


class TokenMissing(TokenInvalidOrExpired):
    default_detail = 'Access token required'
    default_code = 'TOKEN_MISSING'


class TokenExpired(TokenInvalidOrExpired):
    default_detail = 'Access token expired'
    default_code = 'TOKEN_EXPIRED'


class TokenScopeMismatch(TokenInvalidOrExpired):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Token not valid for this video'
    default_code = 'TOKEN_SCOPE_MISMATCH'


class DomainNotAllowed(TokenInvalidOrExpired):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Domain not allowed'
    default_code = 'DOMAIN_NOT_ALLOWED'


DENIAL_EXCEPTIONS = {
    NotPurchased.default_code: NotPurchased,
    AccessExpired.default_code: AccessExpired,
    ContentNotFound.default_code: ContentNotFound,
}


def error_payload(exc):
    return {
        'success': False,
        'code': exc.code,
        'error': str(exc.detail),
    }


def api_exception_handler(exc, context):
    """
    DRF EXCEPTION_HANDLER: render streaming errors as {success, code, error}.
    DRF's own auth failures are folded into UNAUTHENTICATED.
    """
    if isinstance(exc, (NotAuthenticated, AuthenticationFailed)):
        auth_header = getattr(exc, 'auth_header', None)
        exc = Unauthenticated(detail=exc.detail)
        exc.auth_header = auth_header

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, StreamingError):
        response.data = error_payload(exc)
        if exc.status_code >= 500:
            logger.warning("Streaming upstream failure: %s", exc.detail)
    return response
