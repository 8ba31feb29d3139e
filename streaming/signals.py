import logging
import os
import threading

from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils import timezone

from catalog.models import Video
from .hls_utils import HlsConversionError, generate_hls_files

logger = logging.getLogger(__name__)


def transcode_video(video_pk):
    """
    Convert an uploaded source file to encrypted HLS and record the outcome
    on the Video row. The original upload is removed once HLS exists.
    """
    video = Video.objects.get(pk=video_pk)
    input_path = video.source_file.path

    try:
        result = generate_hls_files(input_path, video.video_id)
    except HlsConversionError as e:
        Video.objects.filter(pk=video_pk).update(status=Video.STATUS_FAILED, error=str(e))
        return None

    Video.objects.filter(pk=video_pk).update(
        status=Video.STATUS_COMPLETED,
        hls_path=f'hls/{video.video_id}/index.m3u8',
        error='',
        completed_at=timezone.now(),
        source_file=None,
    )

    try:
        os.remove(input_path)
    except OSError as e:
        logger.warning("[%s] Could not remove source upload %s: %s", video.video_id, input_path, e)

    return result


@receiver(post_save, sender=Video)
def start_transcoding(sender, instance, created, **kwargs):
    """
    Trigger HLS packaging when an admin uploads a video file.
    Runs after commit, in a background thread unless HLS_CONVERT_ASYNC is off.
    """
    if not instance.source_file or instance.hls_path or instance.status != Video.STATUS_PROCESSING:
        return

    def _run():
        if getattr(settings, 'HLS_CONVERT_ASYNC', True):
            threading.Thread(target=transcode_video, args=(instance.pk,), daemon=True).start()
        else:
            transcode_video(instance.pk)

    transaction.on_commit(_run)
