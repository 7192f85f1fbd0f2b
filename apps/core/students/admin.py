from django.contrib import admin

from .models import Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = (
        'admission_number',
        'name',
        'school_class',
        'division',
        'bus_stop',
        'bus_number',
        'bus_fee_discount',
    )
    list_filter = ('school_class', 'division', 'bus_stop')
    search_fields = ('admission_number', 'name', 'mobile')
