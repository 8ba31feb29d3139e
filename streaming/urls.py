from django.urls import path
from . import api_views, views

urlpatterns = [
    # Playback token (session bearer token required)
    path('api/videos/token/<slug:video_id>', api_views.video_token_api, name='video_token'),

    # Admin: upload / delete
    path('api/videos/upload', api_views.video_upload_api, name='video_upload'),
    path('api/videos/<slug:video_id>', api_views.video_delete_api, name='video_delete'),

    # Purchase status for a course
    path('api/purchases/check/<int:course_id>', api_views.purchase_check_api, name='purchase_check'),

    # HLS gateway (playback token required on every request)
    path('api/videos/hls/<slug:video_id>/index.m3u8', views.stream_manifest, name='stream_manifest'),
    path('api/videos/hls/<slug:video_id>/key', views.stream_key, name='stream_key'),
    path('api/videos/hls/<slug:video_id>/status', views.stream_status, name='stream_status'),
    path('api/videos/hls/<slug:video_id>/<slug:variant>.m3u8', views.stream_playlist, name='stream_playlist'),
    path('api/videos/hls/<slug:video_id>/<slug:segment>.ts', views.stream_segment, name='stream_segment'),
]
