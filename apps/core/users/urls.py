from django.urls import path

from .views import (
    audit_log_list,
    office_dashboard,
    role_redirect,
    user_create,
    user_list,
    user_update,
)

urlpatterns = [
    path('dashboard/', role_redirect, name='role_redirect'),
    path('dashboard/office/', office_dashboard, name='office_dashboard'),
    path('users/', user_list, name='user_list'),
    path('users/add/', user_create, name='user_create'),
    path('users/<int:pk>/edit/', user_update, name='user_update'),
    path('audit/', audit_log_list, name='audit_log_list'),
]
