import logging
from functools import wraps
from urllib.parse import urlparse

from django.conf import settings
from django.http import JsonResponse

from .exceptions import DomainNotAllowed, TokenInvalidOrExpired, TokenMissing, error_payload
from .tokens import verify_token

logger = logging.getLogger(__name__)


def extract_playback_token(request):
    """Bearer header first, then ?token= for players that cannot set headers."""
    auth_header = request.META.get('HTTP_AUTHORIZATION', '')
    scheme, _, value = auth_header.partition(' ')
    if scheme.lower() == 'bearer' and value.strip():
        return value.strip()
    return request.GET.get('token') or None


def check_stream_domain(request):
    if not getattr(settings, 'STREAM_ENFORCE_DOMAINS', False):
        return

    source = request.META.get('HTTP_REFERER') or request.META.get('HTTP_ORIGIN')
    if not source:
        return

    host = (urlparse(source).hostname or '').lower()
    allowed = [d.strip().lower() for d in getattr(settings, 'STREAM_ALLOWED_DOMAINS', []) if d.strip()]
    if not any(host == domain or host.endswith(f'.{domain}') for domain in allowed):
        logger.warning("Stream request blocked for host=%s", host)
        raise DomainNotAllowed()


def playback_token_required(view_func):
    """
    Authorize every HLS request on its own: manifest, variant playlist,
    segment, key and status alike. No trust carries over between requests.

    The wrapped view receives the verified claims as ``request.playback_claims``.
    """
    @wraps(view_func)
    def _wrapped_view(request, video_id, *args, **kwargs):
        token = extract_playback_token(request)

        try:
            if not token:
                raise TokenMissing()
            claims = verify_token(token, video_id)
            check_stream_domain(request)
        except TokenInvalidOrExpired as exc:
            logger.info(
                "Stream request rejected | video=%s path=%s code=%s",
                video_id,
                request.path,
                exc.code,
            )
            return JsonResponse(error_payload(exc), status=exc.status_code)

        request.playback_claims = claims
        return view_func(request, video_id, *args, **kwargs)
    return _wrapped_view
