import logging

from django.utils import timezone

from .exceptions import MalformedCallback
from .models import MpesaTransaction

logger = logging.getLogger(__name__)


def parse_stk_callback(data):
    """
    Pulls the fields we keep out of a Daraja STK callback.

    The body looks like:
        {"Body": {"stkCallback": {"MerchantRequestID": ..., "CheckoutRequestID": ...,
                                  "ResultCode": 0, "ResultDesc": ...,
                                  "CallbackMetadata": {"Item": [...]}}}}
    CallbackMetadata is only present on successful payments.
    """
    body = data.get("Body") if isinstance(data, dict) else None
    stk_callback = body.get("stkCallback") if isinstance(body, dict) else None
    if not isinstance(stk_callback, dict):
        raise MalformedCallback("Invalid callback structure: Body.stkCallback missing")

    checkout_request_id = stk_callback.get("CheckoutRequestID")
    if not checkout_request_id:
        raise MalformedCallback("Invalid callback structure: CheckoutRequestID missing")

    result_code = stk_callback.get("ResultCode")
    return {
        "checkout_request_id": checkout_request_id,
        "merchant_request_id": stk_callback.get("MerchantRequestID"),
        "result_code": None if result_code is None else str(result_code),
        "result_desc": stk_callback.get("ResultDesc"),
        "callback_metadata": stk_callback.get("CallbackMetadata"),
    }


def record_stk_callback(data):
    """
    Upserts the MpesaTransaction for a callback body; the last delivery wins.
    Returns (transaction, created).
    """
    fields = parse_stk_callback(data)
    checkout_request_id = fields.pop("checkout_request_id")
    logger.info(f"Callback details for {checkout_request_id}: "
                f"ResultCode={fields['result_code']} ResultDesc={fields['result_desc']}")

    transaction, created = MpesaTransaction.objects.update_or_create(
        checkout_request_id=checkout_request_id,
        defaults={**fields, "updated_at": timezone.now()},
    )
    logger.info(f"Transaction {checkout_request_id} saved ({'created' if created else 'updated'})")
    return transaction, created
