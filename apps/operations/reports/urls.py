from django.urls import path

from .views import (
    bus_stop_report,
    class_division_report,
    class_monthly_report,
    month_detail_report,
    monthly_report,
    receipt_report,
    section_report,
    teacher_class_report,
    unpaid_report,
)

urlpatterns = [
    path('classes/', class_division_report, name='class_division_report'),
    path('bus-stops/', bus_stop_report, name='bus_stop_report'),
    path('monthly/', monthly_report, name='monthly_report'),
    path('monthly/<int:year>/<int:month>/', month_detail_report, name='month_detail_report'),
    path('sections/', section_report, name='section_report'),
    path('unpaid/', unpaid_report, name='unpaid_report'),
    path('receipts/', receipt_report, name='receipt_report'),
    path('class-monthly/', class_monthly_report, name='class_monthly_report'),
    path('my-class/', teacher_class_report, name='teacher_class_report'),
]
