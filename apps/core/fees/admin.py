from django.contrib import admin

from .models import FeeSetting, Payment


@admin.register(FeeSetting)
class FeeSettingAdmin(admin.ModelAdmin):
    list_display = ('config_type', 'config_key', 'config_value', 'updated_at')
    list_filter = ('config_type',)
    search_fields = ('config_key',)


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        'payment_date',
        'admission_number',
        'student_name',
        'school_class',
        'division',
        'development_fee',
        'bus_fee',
        'special_fee',
        'total_amount',
        'added_by',
    )
    list_filter = ('school_class', 'division', 'payment_date')
    search_fields = ('admission_number', 'student_name', 'special_fee_type')
    readonly_fields = ('total_amount', 'payment_date')
