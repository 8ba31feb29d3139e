"""
HLS Packaging Utilities with AES-128 Encryption
"""

import logging
import os
import secrets
import shutil
import subprocess

from django.conf import settings

logger = logging.getLogger(__name__)

# Relative to the variant playlist, so it resolves to /api/videos/hls/<id>/key
KEY_URI = 'key'

VARIANTS = [
    # name, height, video bitrate, audio bitrate, bandwidth, resolution
    ('360p', 360, '800k', '96k', 800000, '640x360'),
    ('480p', 480, '1400k', '128k', 1400000, '854x480'),
    ('720p', 720, '2800k', '128k', 2800000, '1280x720'),
]


class HlsConversionError(Exception):
    pass


def video_hls_dir(video_id):
    return os.path.join(settings.HLS_ROOT, str(video_id))


def generate_encryption_key(video_id):
    """
    Generate a random 128-bit (16 bytes) AES encryption key for HLS
    """
    hls_dir = video_hls_dir(video_id)
    os.makedirs(hls_dir, exist_ok=True)

    key_path = os.path.join(hls_dir, 'encryption.key')

    key = secrets.token_bytes(16)
    with open(key_path, 'wb') as f:
        f.write(key)

    # 32 hex characters = 16 bytes
    iv = secrets.token_hex(16)

    iv_path = os.path.join(hls_dir, 'encryption.iv')
    with open(iv_path, 'w') as f:
        f.write(iv)

    return {
        'key_path': key_path,
        'iv': iv,
        'key_url': KEY_URI,
    }


def build_ffmpeg_command(video_path, hls_dir, key_info_path):
    cmd = [getattr(settings, 'FFMPEG_BINARY', 'ffmpeg'), '-y', '-i', video_path]

    for name, height, video_bitrate, audio_bitrate, _, _ in VARIANTS:
        cmd += [
            '-vf', f'scale=-2:{height}',
            '-c:v', 'libx264',
            '-preset', 'veryfast',
            '-b:v', video_bitrate,
            '-c:a', 'aac',
            '-b:a', audio_bitrate,
            '-ac', '2',
            '-hls_time', '10',
            '-hls_playlist_type', 'vod',
            '-hls_segment_filename', os.path.join(hls_dir, f'{name}_%03d.ts'),
            '-hls_key_info_file', key_info_path,
            '-f', 'hls',
            os.path.join(hls_dir, f'{name}.m3u8'),
        ]
    return cmd


def generate_hls_files(video_path, video_id):
    """
    Generate HLS adaptive streaming files with AES-128 encryption.
    Raises HlsConversionError when ffmpeg fails.
    """
    hls_dir = video_hls_dir(video_id)
    os.makedirs(hls_dir, exist_ok=True)

    encryption = generate_encryption_key(video_id)

    # Format: key URI, key file path, IV
    key_info_path = os.path.join(hls_dir, 'key_info.txt')
    with open(key_info_path, 'w') as f:
        f.write(f"{encryption['key_url']}\n")
        f.write(f"{encryption['key_path']}\n")
        f.write(f"{encryption['iv']}\n")

    cmd = build_ffmpeg_command(video_path, hls_dir, key_info_path)

    logger.info("[%s] Starting HLS conversion", video_id)
    try:
        subprocess.run(cmd, check=True, capture_output=True, text=True)
    except (subprocess.CalledProcessError, OSError) as e:
        stderr = getattr(e, 'stderr', None) or str(e)
        logger.error("[%s] HLS conversion failed: %s", video_id, stderr)
        raise HlsConversionError(stderr) from e
    finally:
        if os.path.exists(key_info_path):
            os.remove(key_info_path)

    master_playlist = generate_master_playlist(hls_dir)
    logger.info("[%s] HLS conversion complete", video_id)

    result = {
        'master_playlist': master_playlist,
        'directory': hls_dir,
        'encryption': encryption,
    }
    for name, *_ in VARIANTS:
        result[name] = os.path.join(hls_dir, f'{name}.m3u8')
    return result


def generate_master_playlist(hls_dir):
    """Generate index.m3u8 master playlist for adaptive streaming"""
    master_path = os.path.join(hls_dir, 'index.m3u8')

    lines = ['#EXTM3U', '#EXT-X-VERSION:3', '']
    for name, _, _, _, bandwidth, resolution in VARIANTS:
        lines.append(f'#EXT-X-STREAM-INF:BANDWIDTH={bandwidth},RESOLUTION={resolution}')
        lines.append(f'{name}.m3u8')
        lines.append('')

    with open(master_path, 'w') as f:
        f.write('\n'.join(lines))

    return master_path


def check_hls_exists(video_id):
    """Check if HLS files already exist for a video"""
    return os.path.exists(os.path.join(video_hls_dir(video_id), 'index.m3u8'))


def remove_hls_files(video_id):
    hls_dir = video_hls_dir(video_id)
    if os.path.isdir(hls_dir):
        shutil.rmtree(hls_dir)
        return True
    return False
