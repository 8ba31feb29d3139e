from pathlib import Path

from django.conf import settings
from django.http import FileResponse, JsonResponse
from django.views.decorators.http import require_GET

from catalog.models import Video
from .decorators import playback_token_required

PLAYLIST_CONTENT_TYPE = 'application/vnd.apple.mpegurl'
SEGMENT_CONTENT_TYPE = 'video/mp2t'
KEY_CONTENT_TYPE = 'application/octet-stream'


def hls_dir(video_id):
    return Path(settings.HLS_ROOT) / str(video_id)


def _asset_path(video_id, filename):
    """Resolve a file inside the video's HLS directory, or None."""
    base = hls_dir(video_id).resolve()
    path = (base / filename).resolve()
    if path.parent != base or not path.is_file():
        return None
    return path


def _not_found(message):
    return JsonResponse({'success': False, 'code': 'NOT_FOUND', 'error': message}, status=404)


def _serve(video_id, filename, content_type, missing_message):
    path = _asset_path(video_id, filename)
    if path is None:
        return _not_found(missing_message)
    return FileResponse(open(path, 'rb'), content_type=content_type)


@require_GET
@playback_token_required
def stream_manifest(request, video_id):
    """Master HLS playlist."""
    return _serve(video_id, 'index.m3u8', PLAYLIST_CONTENT_TYPE, 'Video not found')


@require_GET
@playback_token_required
def stream_playlist(request, video_id, variant):
    """Variant playlists (360p, 480p, 720p)."""
    return _serve(video_id, f'{variant}.m3u8', PLAYLIST_CONTENT_TYPE, 'Playlist not found')


@require_GET
@playback_token_required
def stream_segment(request, video_id, segment):
    return _serve(video_id, f'{segment}.ts', SEGMENT_CONTENT_TYPE, 'Segment not found')


@require_GET
@playback_token_required
def stream_key(request, video_id):
    """
    AES-128 key for the video's segments. Fetched by hls.js / native players
    through the key URI in the variant playlists.
    """
    response = _serve(video_id, 'encryption.key', KEY_CONTENT_TYPE, 'Encryption key not found')
    if response.status_code == 200:
        response['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
        response['Pragma'] = 'no-cache'
    return response


@require_GET
@playback_token_required
def stream_status(request, video_id):
    video = Video.objects.filter(video_id=video_id).first()
    if video is None:
        return _not_found('Video not found')

    data = {'status': video.status}
    if video.status == Video.STATUS_COMPLETED and video.completed_at:
        data['completedAt'] = video.completed_at.isoformat()
    if video.status == Video.STATUS_FAILED:
        data['error'] = video.error
    return JsonResponse(data)
