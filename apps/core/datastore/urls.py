from django.urls import path

from .views import backup_download, backup_restore, clear_data, data_management, send_reports_now

urlpatterns = [
    path('', data_management, name='data_management'),
    path('backup/', backup_download, name='backup_download'),
    path('restore/', backup_restore, name='backup_restore'),
    path('clear/', clear_data, name='clear_data'),
    path('reports/send/', send_reports_now, name='send_reports_now'),
]
