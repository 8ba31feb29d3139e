from django.contrib import admin
from .models import Course, Video, Purchase


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['title', 'course_type', 'price', 'access_duration_days', 'is_active']
    list_filter = ['course_type', 'is_active']


@admin.register(Video)
class VideoAdmin(admin.ModelAdmin):
    list_display = ['video_id', 'title', 'course', 'is_public', 'status', 'created_at']
    list_filter = ['status', 'is_public', 'course']
    search_fields = ['video_id', 'title']
    readonly_fields = ['hls_path', 'status', 'error', 'created_at', 'completed_at']


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ['user', 'course', 'purchased_at', 'access_duration_days', 'transaction_id']
    list_filter = ['course']
    search_fields = ['user__username', 'transaction_id']

    def has_change_permission(self, request, obj=None):
        return False
