from django.contrib import admin

from .models import NotificationLog


@admin.register(NotificationLog)
class NotificationLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'channel', 'mobile', 'status', 'payment')
    list_filter = ('channel', 'status', 'created_at')
    search_fields = ('mobile', 'message', 'error')
