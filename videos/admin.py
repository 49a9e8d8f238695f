from django.contrib import admin

from .models import Video


@admin.register(Video)
class VideoAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "owner", "status", "views", "created_at")
    list_filter = ("status",)
    search_fields = ("id", "title", "file_name")
    # Status is owned by the transcode consumer.
    readonly_fields = ("status", "file_name", "views", "created_at", "updated_at")
