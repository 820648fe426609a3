from django.contrib import admin
from .models import MpesaTransaction

@admin.register(MpesaTransaction)
class MpesaTransactionAdmin(admin.ModelAdmin):
    list_display = (
        'checkout_request_id',
        'merchant_request_id',
        'result_code',
        'payment_status',
        'result_desc',
        'updated_at',
    )
    list_filter = (
        'result_code',
        'updated_at',
    )
    search_fields = (
        'checkout_request_id',
        'merchant_request_id',
    )
    readonly_fields = ('created_at', 'updated_at')
