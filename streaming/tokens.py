"""
Playback token minting and verification.

Format: base64payload.signature (HMAC-SHA256 over the raw JSON payload).
Tokens are stateless; nothing is stored server-side.
"""

import base64
import hashlib
import hmac
import json
import logging
import math
import time
from dataclasses import dataclass, field

from django.conf import settings
from django.utils import timezone

from . import entitlements
from .exceptions import (
    DENIAL_EXCEPTIONS,
    AccessExpired,
    TokenExpired,
    TokenInvalidOrExpired,
    TokenScopeMismatch,
    Unauthenticated,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


@dataclass
class IssuedToken:
    token: str
    expires_in: int
    access: dict = field(default_factory=dict)


def _secret():
    secret = getattr(settings, 'PLAYBACK_TOKEN_SECRET', None) or settings.SECRET_KEY
    return secret.encode('utf-8')


def default_ttl():
    return int(getattr(settings, 'PLAYBACK_TOKEN_TTL_SECONDS', DEFAULT_TTL_SECONDS))


def sign_token(payload):
    payload_json = json.dumps(payload, separators=(',', ':'), sort_keys=True)
    payload_bytes = payload_json.encode('utf-8')

    payload_b64 = base64.urlsafe_b64encode(payload_bytes).decode('utf-8').rstrip('=')

    signature = hmac.new(_secret(), payload_bytes, hashlib.sha256).hexdigest()

    return f"{payload_b64}.{signature}"


def decode_token(token):
    """Check the signature and return the claims. Expiry and scope are not checked here."""
    parts = token.split('.')
    if len(parts) != 2:
        raise TokenInvalidOrExpired()

    payload_b64, signature = parts

    padding = 4 - len(payload_b64) % 4
    if padding != 4:
        payload_b64 += '=' * padding

    try:
        payload_bytes = base64.urlsafe_b64decode(payload_b64)
    except (ValueError, TypeError):
        raise TokenInvalidOrExpired()

    # compare_digest only accepts ASCII str
    if not signature.isascii():
        raise TokenInvalidOrExpired()

    expected_signature = hmac.new(_secret(), payload_bytes, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(signature, expected_signature):
        raise TokenInvalidOrExpired()

    try:
        payload = json.loads(payload_bytes.decode('utf-8'))
    except ValueError:
        raise TokenInvalidOrExpired()

    if not isinstance(payload, dict) or not {'sub', 'video_id', 'iat', 'exp'} <= payload.keys():
        raise TokenInvalidOrExpired()

    return payload


def verify_token(token, video_id, now=None):
    """
    Validate a playback token for one request against ``video_id``.

    Rejected when the signature is bad, when ``now > exp`` or when the token
    was scoped to a different video.
    """
    now = time.time() if now is None else now
    claims = decode_token(token)

    if now > claims['exp']:
        raise TokenExpired()

    if str(claims['video_id']) != str(video_id):
        raise TokenScopeMismatch()

    return claims


def _access_details(decision, remaining_seconds):
    if decision.access_type != entitlements.ACCESS_PAID:
        return {'type': decision.access_type}

    entitlement = decision.entitlement
    return {
        'type': decision.access_type,
        'purchasedAt': entitlement.granted_at.isoformat(),
        'accessExpiresAt': entitlement.expires_at.isoformat() if entitlement.expires_at else None,
        'remainingDays': remaining_seconds // 86400 if remaining_seconds is not None else None,
    }


def issue_token(user, video_id, now=None):
    """
    Mint a short-lived token scoped to ``video_id`` for ``user``.

    The entitlement check runs first and any denial or resolver error stops
    issuance. The TTL never outlives the entitlement.
    """
    if user is None or not user.is_authenticated:
        raise Unauthenticated()

    now = now or timezone.now()
    decision = entitlements.resolve(user, video_id, now=now)

    if not decision.granted:
        logger.info("Playback token denied | user_id=%s video=%s reason=%s", user.id, video_id, decision.reason)
        raise DENIAL_EXCEPTIONS[decision.reason]()

    ttl = default_ttl()
    remaining_seconds = None
    if decision.expires_at is not None:
        remaining_seconds = math.floor((decision.expires_at - now).total_seconds())
        if remaining_seconds < 1:
            raise AccessExpired()
        ttl = min(ttl, remaining_seconds)

    issued_at = int(now.timestamp())
    token = sign_token({
        'sub': user.id,
        'video_id': str(video_id),
        'course_id': decision.course_id,
        'type': decision.access_type,
        'iat': issued_at,
        'exp': issued_at + ttl,
    })

    logger.info(
        "Playback token issued | user_id=%s video=%s type=%s ttl=%ss",
        user.id,
        video_id,
        decision.access_type,
        ttl,
    )

    return IssuedToken(
        token=token,
        expires_in=ttl,
        access=_access_details(decision, remaining_seconds),
    )
