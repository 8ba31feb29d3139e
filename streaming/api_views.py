import logging
import os
import time

from django.conf import settings
from django.utils.text import slugify
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response

from catalog.models import Course, Video
from .entitlements import check_purchase
from .exceptions import ContentNotFound
from .hls_utils import remove_hls_files
from .tokens import issue_token

logger = logging.getLogger(__name__)

ALLOWED_VIDEO_EXTENSIONS = {'.mp4', '.mov', '.avi', '.mkv', '.webm'}


# =====================================================
# API — PLAYBACK TOKEN
# =====================================================
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def video_token_api(request, video_id):
    """
    Issue a short-lived playback token scoped to one video.
    """
    issued = issue_token(request.user, video_id)

    return Response({
        "success": True,
        "token": issued.token,
        "expiresIn": issued.expires_in,
        "access": issued.access,
    })


# =====================================================
# API — PURCHASE CHECK
# =====================================================
@api_view(["GET"])
@permission_classes([IsAuthenticated])
def purchase_check_api(request, course_id):
    result = check_purchase(request.user, course_id)
    if result is None:
        raise ContentNotFound(detail="Course not found")
    return Response(result)


# =====================================================
# API — VIDEO UPLOAD (admin)
# =====================================================
def _default_video_id(filename):
    base = slugify(os.path.splitext(filename)[0])[:60] or 'video'
    return f"{int(time.time() * 1000)}_{base}"


@api_view(["POST"])
@permission_classes([IsAdminUser])
def video_upload_api(request):
    """
    Store an uploaded video and start HLS conversion in the background.
    """
    upload = request.FILES.get("video")
    if upload is None:
        return Response({"success": False, "error": "No video uploaded"}, status=status.HTTP_400_BAD_REQUEST)

    extension = os.path.splitext(upload.name)[1].lower()
    if extension not in ALLOWED_VIDEO_EXTENSIONS:
        return Response({
            "success": False,
            "error": "Only video files are allowed (mp4, mov, avi, mkv, webm)"
        }, status=status.HTTP_400_BAD_REQUEST)

    max_size = getattr(settings, "MAX_VIDEO_SIZE", None)
    if max_size and upload.size > max_size:
        return Response({"success": False, "error": "Video file too large"}, status=status.HTTP_400_BAD_REQUEST)

    video_id = slugify(request.data.get("videoId") or "") or _default_video_id(upload.name)
    if Video.objects.filter(video_id=video_id).exists():
        return Response({"success": False, "error": "Video id already exists"}, status=status.HTTP_409_CONFLICT)

    course = None
    course_id = request.data.get("courseId")
    if course_id:
        course = Course.objects.filter(id=course_id).first()
        if course is None:
            return Response({"success": False, "error": "Course not found"}, status=status.HTTP_400_BAD_REQUEST)

    video = Video.objects.create(
        video_id=video_id,
        title=request.data.get("title", ""),
        course=course,
        is_public=str(request.data.get("isPublic", "")).lower() in ("1", "true", "yes"),
        source_file=upload,
        status=Video.STATUS_PROCESSING,
    )

    logger.info("Video uploaded | video=%s course=%s by user_id=%s", video.video_id, course_id, request.user.id)

    return Response({
        "success": True,
        "videoId": video.video_id,
        "courseId": course.id if course else None,
        "message": "Video uploaded, conversion in progress...",
        "hlsUrl": f"/api/videos/hls/{video.video_id}/index.m3u8",
        "status": video.status,
    }, status=status.HTTP_202_ACCEPTED)


# =====================================================
# API — VIDEO DELETE (admin)
# =====================================================
@api_view(["DELETE"])
@permission_classes([IsAdminUser])
def video_delete_api(request, video_id):
    video = Video.objects.filter(video_id=video_id).first()
    removed_files = remove_hls_files(video_id)

    if video is None and not removed_files:
        raise ContentNotFound()

    if video is not None:
        if video.source_file:
            video.source_file.delete(save=False)
        video.delete()

    logger.info("Video deleted | video=%s by user_id=%s", video_id, request.user.id)

    return Response({"success": True, "message": "Video deleted successfully"})
