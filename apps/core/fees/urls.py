from django.urls import path

from .views import (
    bus_stop_remove,
    fee_settings,
    payment_collect,
    payment_delete,
    payment_list,
    payment_receipt,
    payment_update,
)

urlpatterns = [
    path('collect/', payment_collect, name='payment_collect'),
    path('payments/', payment_list, name='payment_list'),
    path('payments/<int:pk>/', payment_receipt, name='payment_receipt'),
    path('payments/<int:pk>/edit/', payment_update, name='payment_update'),
    path('payments/<int:pk>/delete/', payment_delete, name='payment_delete'),

    path('settings/', fee_settings, name='fee_settings'),
    path('settings/bus-stops/remove/', bus_stop_remove, name='bus_stop_remove'),
]
