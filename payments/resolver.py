import logging
from dataclasses import dataclass
from typing import Optional

from django.db import DatabaseError

from . import mpesa_utils
from .exceptions import MpesaError, TransientQueryFailure
from .models import MpesaTransaction
from .status import PENDING, canonical_status

logger = logging.getLogger(__name__)

SOURCE_CALLBACK = 'callback'
SOURCE_QUERY = 'query'


@dataclass
class StatusResolution:
    status: str
    result_code: Optional[str] = None
    result_desc: Optional[str] = None
    source: Optional[str] = None
    # Diagnostic text when the live query failed and we fell back to pending
    message: Optional[str] = None


def find_transaction(checkout_request_id):
    try:
        return MpesaTransaction.objects.filter(checkout_request_id=checkout_request_id).first()
    except DatabaseError:
        logger.exception(f"Could not read transaction {checkout_request_id}, querying M-Pesa instead")
        return None


def query_live_status(checkout_request_id, short_code, pass_key):
    try:
        return mpesa_utils.query_stk_status(checkout_request_id, short_code, pass_key)
    except MpesaError as e:
        raise TransientQueryFailure(str(e)) from e


def resolve_payment_status(checkout_request_id):
    """
    Works out where an STK push stands.

    A stored callback result wins. Without one, Daraja's STK query API is
    asked directly. Failures of that live query are reported as pending so
    a payment that is about to be confirmed by callback isn't failed early.

    Raises ConfigurationError only when the shortcode/passkey needed for the
    live query are missing.
    """
    transaction = find_transaction(checkout_request_id)
    if transaction is not None and transaction.result_code is not None:
        logger.info(f"Found callback result for {checkout_request_id}: {transaction.result_code}")
        return StatusResolution(
            status=canonical_status(transaction.result_code),
            result_code=transaction.result_code,
            result_desc=transaction.result_desc,
            source=SOURCE_CALLBACK,
        )

    short_code, pass_key = mpesa_utils.get_business_credentials()

    try:
        data = query_live_status(checkout_request_id, short_code, pass_key)
    except TransientQueryFailure as e:
        logger.warning(f"STK query for {checkout_request_id} failed: {e}")
        return StatusResolution(status=PENDING, source=SOURCE_QUERY, message=str(e))

    result_code = data.get("ResultCode")
    if data.get("ResponseCode") == "0" and result_code is None:
        # Accepted by Daraja, payer hasn't acted yet
        return StatusResolution(status=PENDING, source=SOURCE_QUERY)

    if result_code is not None:
        result_code = str(result_code)
    return StatusResolution(
        status=canonical_status(result_code),
        result_code=result_code,
        result_desc=data.get("ResultDesc"),
        source=SOURCE_QUERY,
    )
