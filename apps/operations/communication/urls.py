from django.urls import path

from .views import notification_log


urlpatterns = [
    path('', notification_log, name='notification_log'),
]
