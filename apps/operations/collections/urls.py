from django.urls import path

from .views import (
    collection_entry_create,
    collection_entry_delete,
    collection_entry_list,
    collection_entry_update,
    collection_overview,
)

urlpatterns = [
    path('', collection_overview, name='collection_overview'),
    path('entries/<int:pk>/edit/', collection_entry_update, name='collection_entry_update'),
    path('entries/<int:pk>/delete/', collection_entry_delete, name='collection_entry_delete'),
    path('<slug:kind>/', collection_entry_list, name='collection_entry_list'),
    path('<slug:kind>/new/', collection_entry_create, name='collection_entry_create'),
]
