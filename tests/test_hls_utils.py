import os
import subprocess
from unittest.mock import patch

import pytest

from streaming import hls_utils
from streaming.hls_utils import HlsConversionError


@pytest.fixture
def hls_root(settings, tmp_path):
    settings.HLS_ROOT = tmp_path / "hls"
    return settings.HLS_ROOT


def test_master_playlist_lists_every_variant(tmp_path):
    path = hls_utils.generate_master_playlist(str(tmp_path))

    content = open(path).read()
    assert content.startswith("#EXTM3U")
    assert "#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360\n360p.m3u8" in content
    assert "480p.m3u8" in content
    assert "720p.m3u8" in content


def test_encryption_key_is_sixteen_bytes(hls_root):
    result = hls_utils.generate_encryption_key("lesson-1")

    with open(result["key_path"], "rb") as f:
        assert len(f.read()) == 16
    assert len(result["iv"]) == 32
    assert result["key_url"] == "key"


def test_ffmpeg_command_writes_encrypted_variants(settings):
    settings.FFMPEG_BINARY = "/opt/ffmpeg"
    cmd = hls_utils.build_ffmpeg_command("in.mp4", "/out", "/out/key_info.txt")

    assert cmd[:4] == ["/opt/ffmpeg", "-y", "-i", "in.mp4"]
    assert cmd.count("-hls_key_info_file") == len(hls_utils.VARIANTS)
    assert os.path.join("/out", "720p.m3u8") in cmd


def test_conversion_success_writes_master_and_drops_key_info(hls_root):
    with patch("streaming.hls_utils.subprocess.run") as run:
        result = hls_utils.generate_hls_files("in.mp4", "lesson-1")

    run.assert_called_once()
    directory = hls_root / "lesson-1"
    assert (directory / "index.m3u8").exists()
    assert (directory / "encryption.key").exists()
    assert not (directory / "key_info.txt").exists()
    assert result["master_playlist"] == str(directory / "index.m3u8")


def test_conversion_failure_raises(hls_root):
    error = subprocess.CalledProcessError(1, ["ffmpeg"], stderr="Invalid data found")
    with patch("streaming.hls_utils.subprocess.run", side_effect=error):
        with pytest.raises(HlsConversionError, match="Invalid data found"):
            hls_utils.generate_hls_files("in.mp4", "lesson-1")

    assert not (hls_root / "lesson-1" / "key_info.txt").exists()
    assert not hls_utils.check_hls_exists("lesson-1")


def test_missing_ffmpeg_binary_raises(hls_root):
    with patch("streaming.hls_utils.subprocess.run", side_effect=FileNotFoundError("ffmpeg")):
        with pytest.raises(HlsConversionError):
            hls_utils.generate_hls_files("in.mp4", "lesson-1")


def test_remove_hls_files(hls_root):
    hls_utils.generate_encryption_key("lesson-1")

    assert hls_utils.remove_hls_files("lesson-1") is True
    assert hls_utils.remove_hls_files("lesson-1") is False
