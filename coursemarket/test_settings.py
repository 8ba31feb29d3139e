"""
Settings for the test suite: SQLite, throwaway media root, synchronous HLS conversion.
"""

import tempfile
from pathlib import Path

from .settings import *  # noqa: F401,F403

SECRET_KEY = 'test-secret-key'
PLAYBACK_TOKEN_SECRET = 'test-playback-secret'
PLAYBACK_TOKEN_TTL_SECONDS = 300

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

MEDIA_ROOT = Path(tempfile.mkdtemp(prefix='coursemarket-media-'))
HLS_ROOT = MEDIA_ROOT / 'hls'
HLS_CONVERT_ASYNC = False

STREAM_ENFORCE_DOMAINS = False
STREAM_ALLOWED_DOMAINS = ['coursemarket.test']

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
