"""
URL configuration for coursemarket project.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    # 🔧 DJANGO ADMIN
    path('admin/', admin.site.urls),

    # 🎥 Video access: playback tokens, HLS gateway, uploads
    path('', include('streaming.urls')),
]
