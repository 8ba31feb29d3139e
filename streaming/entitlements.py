"""
Entitlement resolution: can this user play this video right now?

Pure read against the catalog. Any storage error is raised as
TransientUpstreamFailure so callers never mistake it for a grant or for
NOT_PURCHASED.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.db import DatabaseError
from django.utils import timezone

from catalog.models import Course, Purchase, Video
from .exceptions import TransientUpstreamFailure

logger = logging.getLogger(__name__)

NOT_PURCHASED = 'NOT_PURCHASED'
ACCESS_EXPIRED = 'ACCESS_EXPIRED'
NOT_FOUND = 'NOT_FOUND'

ACCESS_FREE = 'free'
ACCESS_PAID = 'paid'
ACCESS_PREVIEW = 'preview'


@dataclass(frozen=True)
class Entitlement:
    user_id: int
    content_id: str
    granted_at: Optional[datetime]
    access_duration_days: Optional[int]
    expires_at: Optional[datetime]

    def is_valid(self, now):
        return self.expires_at is None or now <= self.expires_at


@dataclass(frozen=True)
class EntitlementDecision:
    granted: bool
    reason: Optional[str] = None
    access_type: Optional[str] = None
    course_id: Optional[int] = None
    entitlement: Optional[Entitlement] = None

    @property
    def expires_at(self):
        return self.entitlement.expires_at if self.entitlement else None

    @classmethod
    def deny(cls, reason, course_id=None):
        return cls(granted=False, reason=reason, course_id=course_id)


def _latest_purchase(user, course):
    return (
        Purchase.objects
        .select_related('course')
        .filter(user=user, course=course)
        .order_by('-purchased_at')
        .first()
    )


def entitlement_from_purchase(purchase, content_id):
    return Entitlement(
        user_id=purchase.user_id,
        content_id=content_id,
        granted_at=purchase.purchased_at,
        access_duration_days=purchase.effective_duration_days,
        expires_at=purchase.expires_at,
    )


def resolve(user, content_id, now=None):
    """
    Decide whether ``user`` may stream video ``content_id`` at ``now``.

    Free or public content is always granted with no expiry. Paid content
    needs a purchase whose access window still covers ``now``; exactly at
    the expiry instant still counts as granted.
    """
    now = now or timezone.now()

    try:
        video = Video.objects.select_related('course').filter(video_id=content_id).first()
        if video is None:
            return EntitlementDecision.deny(NOT_FOUND)

        course = video.course
        course_id = course.id if course else None

        if video.is_free:
            return EntitlementDecision(
                granted=True,
                access_type=ACCESS_FREE,
                course_id=course_id,
                entitlement=Entitlement(user.id, content_id, None, None, None),
            )

        if user.is_staff:
            return EntitlementDecision(
                granted=True,
                access_type=ACCESS_PREVIEW,
                course_id=course_id,
                entitlement=Entitlement(user.id, content_id, None, None, None),
            )

        if course is None:
            return EntitlementDecision.deny(NOT_FOUND)

        purchase = _latest_purchase(user, course)
    except DatabaseError as exc:
        logger.error("Entitlement lookup failed for user=%s video=%s: %s", user.id, content_id, exc)
        raise TransientUpstreamFailure() from exc

    if purchase is None:
        return EntitlementDecision.deny(NOT_PURCHASED, course_id=course_id)

    entitlement = entitlement_from_purchase(purchase, content_id)
    if not entitlement.is_valid(now):
        return EntitlementDecision.deny(ACCESS_EXPIRED, course_id=course_id)

    return EntitlementDecision(
        granted=True,
        access_type=ACCESS_PAID,
        course_id=course_id,
        entitlement=entitlement,
    )


def check_purchase(user, course_id, now=None):
    """Purchase status for a course: {purchased, expired, expiresAt}."""
    now = now or timezone.now()

    try:
        course = Course.objects.filter(id=course_id).first()
        if course is None:
            return None
        purchase = _latest_purchase(user, course)
    except DatabaseError as exc:
        logger.error("Purchase lookup failed for user=%s course=%s: %s", user.id, course_id, exc)
        raise TransientUpstreamFailure() from exc

    if purchase is None:
        return {'purchased': False}

    expires_at = purchase.expires_at
    return {
        'purchased': True,
        'expired': expires_at is not None and now > expires_at,
        'purchasedAt': purchase.purchased_at.isoformat(),
        'expiresAt': expires_at.isoformat() if expires_at else None,
    }
