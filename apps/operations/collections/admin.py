from django.contrib import admin

from .models import CollectionEntry


@admin.register(CollectionEntry)
class CollectionEntryAdmin(admin.ModelAdmin):
    list_display = ('collection_date', 'kind', 'source', 'target', 'section', 'fee_category', 'amount', 'recorded_by')
    list_filter = ('kind', 'section', 'fee_category', 'collection_date')
    search_fields = ('source', 'target', 'remarks')
