import shutil
import time
from datetime import timedelta

import pytest
from django.conf import settings
from django.utils import timezone
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from catalog.models import Course, Purchase, Video
from streaming.tokens import sign_token


@pytest.fixture
def student(django_user_model):
    return django_user_model.objects.create_user(username="student", password="pass1234")


@pytest.fixture
def staff_user(django_user_model):
    return django_user_model.objects.create_user(username="admin", password="pass1234", is_staff=True)


@pytest.fixture
def paid_course(db):
    return Course.objects.create(title="Advanced Korean", course_type=Course.TYPE_PAID, access_duration_days=30)


@pytest.fixture
def free_course(db):
    return Course.objects.create(title="Hangul Basics", course_type=Course.TYPE_FREE)


@pytest.fixture
def paid_video(paid_course):
    return Video.objects.create(video_id="lesson-1", title="Lesson 1", course=paid_course, status=Video.STATUS_COMPLETED)


@pytest.fixture
def other_video(paid_course):
    return Video.objects.create(video_id="lesson-2", title="Lesson 2", course=paid_course, status=Video.STATUS_COMPLETED)


@pytest.fixture
def free_video(free_course):
    return Video.objects.create(video_id="intro", title="Intro", course=free_course, status=Video.STATUS_COMPLETED)


@pytest.fixture
def purchase_factory():
    def _make(user, course, days_ago, access_duration_days=None):
        return Purchase.objects.create(
            user=user,
            course=course,
            purchased_at=timezone.now() - timedelta(days=days_ago),
            access_duration_days=access_duration_days,
        )
    return _make


@pytest.fixture
def auth_client(student):
    token = Token.objects.create(user=student)
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.key}")
    return client


@pytest.fixture
def playback_token():
    def _make(video_id, user_id=1, issued_at=None, expires_in=300):
        issued_at = int(time.time()) if issued_at is None else issued_at
        return sign_token({
            "sub": user_id,
            "video_id": video_id,
            "course_id": None,
            "type": "paid",
            "iat": issued_at,
            "exp": issued_at + expires_in,
        })
    return _make


@pytest.fixture
def hls_files():
    """Write a small HLS tree for a video id and clean it up afterwards."""
    created = []

    def _make(video_id):
        directory = settings.HLS_ROOT / video_id
        directory.mkdir(parents=True, exist_ok=True)
        (directory / "index.m3u8").write_text("#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=800000\n360p.m3u8\n")
        (directory / "360p.m3u8").write_text(
            '#EXTM3U\n#EXT-X-KEY:METHOD=AES-128,URI="key"\n#EXTINF:10.0,\n360p_000.ts\n#EXT-X-ENDLIST\n'
        )
        (directory / "360p_000.ts").write_bytes(b"\x47" * 188)
        (directory / "encryption.key").write_bytes(b"k" * 16)
        created.append(directory)
        return directory

    yield _make

    for directory in created:
        shutil.rmtree(directory, ignore_errors=True)
