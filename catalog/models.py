from datetime import timedelta

from django.contrib.auth.models import User
from django.db import models


# ---------------------------------
# 1️⃣ Course
# ---------------------------------
class Course(models.Model):
    TYPE_FREE = 'free'
    TYPE_PAID = 'paid'
    TYPE_CHOICES = [
        (TYPE_FREE, 'Free'),
        (TYPE_PAID, 'Paid'),
    ]

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    course_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_PAID)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    access_duration_days = models.PositiveIntegerField(
        null=True,
        blank=True,
        default=30,
        help_text='Days of access granted per purchase. Empty means unlimited.'
    )
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return self.title

    @property
    def is_free(self):
        return self.course_type == self.TYPE_FREE


# ---------------------------------
# 2️⃣ Video (HLS asset)
# ---------------------------------
class Video(models.Model):
    STATUS_PROCESSING = 'processing'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]

    video_id = models.SlugField(max_length=100, unique=True)
    title = models.CharField(max_length=200, blank=True)
    course = models.ForeignKey(
        Course,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='videos'
    )
    is_public = models.BooleanField(default=False, help_text='Free preview, playable without purchase.')
    source_file = models.FileField(upload_to='videos/%Y/%m/%d/', blank=True, null=True)
    hls_path = models.CharField(max_length=500, blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PROCESSING)
    error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.title or self.video_id

    @property
    def is_free(self):
        return self.is_public or (self.course is not None and self.course.is_free)


class PurchaseImmutable(Exception):
    """Raised when saving an existing Purchase row."""


# ---------------------------------
# 3️⃣ Purchase (append-only)
# ---------------------------------
class Purchase(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='purchases')
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='purchases')
    purchased_at = models.DateTimeField(db_index=True)
    access_duration_days = models.PositiveIntegerField(null=True, blank=True)
    transaction_id = models.CharField(max_length=100, blank=True)

    class Meta:
        ordering = ['-purchased_at']
        indexes = [
            models.Index(fields=['user', 'course', 'purchased_at'], name='purchase_user_course_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.course.title}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise PurchaseImmutable("Purchase is append-only and cannot be updated.")
        super().save(*args, **kwargs)

    @property
    def effective_duration_days(self):
        """Purchase snapshot first, then the course's current setting."""
        if self.access_duration_days is not None:
            return self.access_duration_days
        return self.course.access_duration_days

    @property
    def expires_at(self):
        days = self.effective_duration_days
        if days is None:
            return None
        return self.purchased_at + timedelta(days=days)
