from django.db import models
from django.utils import timezone

from .status import canonical_status


class MpesaTransaction(models.Model):
    """
    Holds the outcome of one STK push, as reported by the M-Pesa callback.

    A row only exists once Safaricom has called back; a repeated callback
    for the same checkout_request_id overwrites the previous one.
    """
    checkout_request_id = models.CharField(max_length=100, unique=True)
    merchant_request_id = models.CharField(max_length=100, blank=True, null=True)
    # Null until the callback has reported a result
    result_code = models.CharField(max_length=20, blank=True, null=True)
    result_desc = models.CharField(max_length=255, blank=True, null=True)
    callback_metadata = models.JSONField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'mpesa_transactions'

    @property
    def payment_status(self):
        return canonical_status(self.result_code)

    def __str__(self):
        return f"Transaction {self.checkout_request_id} - {self.payment_status}"
