import logging

from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework import status

from django.conf import settings
from django.db import DatabaseError

from . import mpesa_utils
from .callbacks import record_stk_callback
from .exceptions import (
    ConfigurationError,
    MalformedCallback,
    UpstreamAuthError,
    UpstreamRejected,
    UpstreamUnavailable,
)
from .resolver import resolve_payment_status
from .status import summary_status

logger = logging.getLogger(__name__)

# Safaricom retries any callback that isn't acknowledged with exactly this
CALLBACK_ACCEPTED = {"ResultCode": 0, "ResultDesc": "Accepted"}
# Shown to the payer in place of transport details
PROVIDER_UNAVAILABLE_MESSAGE = "M-Pesa is unavailable, please try again"


@api_view(['POST'])
def initiate_stk_push(request):
    """
    Initiates an STK push to the customer's phone for the processing fee.
    Expects JSON: {
        "phoneNumber": "2547XXXXXXXX",
        "amount": 99,
        "accountReference": "Processing fee",
        "transactionDesc": "Processing fee for Jane Doe"
    }
    """
    phone_number = request.data.get('phoneNumber')
    amount = request.data.get('amount')
    account_reference = request.data.get('accountReference')
    transaction_desc = request.data.get('transactionDesc', '')

    # Validate required fields
    if not phone_number or not amount or not account_reference:
        return Response(
            {"success": False, "message": "Missing required fields"},
            status=status.HTTP_400_BAD_REQUEST
        )

    # M-Pesa only takes whole shillings
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        amount = 0.0
    if not (amount > 0 and amount.is_integer()):
        return Response(
            {"success": False, "message": "Invalid amount"},
            status=status.HTTP_400_BAD_REQUEST
        )
    amount = int(amount)

    logger.info(f"STK Push request: phone={phone_number} amount={amount} "
                f"reference={account_reference!r} desc={transaction_desc!r}")

    # The prompt on the phone always reads "Processing fee"
    try:
        correlation = mpesa_utils.initiate_stk_push(
            phone_number,
            amount,
            settings.MPESA_ACCOUNT_REFERENCE,
            settings.MPESA_TRANSACTION_DESC,
            settings.MPESA_CALLBACK_URL,
        )
    except ConfigurationError as e:
        logger.error(f"Missing M-Pesa configuration: {e}")
        return Response(
            {"success": False, "message": "M-Pesa not configured"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    except UpstreamRejected as e:
        logger.warning(f"STK Push rejected ({e.response_code}): {e.message}")
        return Response(
            {"success": False, "message": e.message, "responseCode": e.response_code},
            status=status.HTTP_400_BAD_REQUEST
        )
    except (UpstreamAuthError, UpstreamUnavailable) as e:
        logger.error(f"STK Push error: {e}")
        return Response(
            {"success": False, "message": PROVIDER_UNAVAILABLE_MESSAGE},
            status=status.HTTP_502_BAD_GATEWAY
        )

    logger.info(f"STK Push successful. CheckoutID: {correlation['checkout_request_id']}")
    return Response({
        "success": True,
        "message": "STK Push sent successfully",
        "checkoutRequestId": correlation["checkout_request_id"],
        "merchantRequestId": correlation["merchant_request_id"],
    }, status=status.HTTP_200_OK)


@api_view(['POST'])
def query_payment_status(request):
    """
    Reports where an STK push stands.
    Expects JSON: {"checkoutRequestId": "ws_CO_..."}
    """
    checkout_request_id = request.data.get('checkoutRequestId')
    logger.info(f"Query status for: {checkout_request_id}")

    if not checkout_request_id:
        return Response(
            {"success": False, "message": "Missing checkoutRequestId"},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        resolution = resolve_payment_status(checkout_request_id)
    except ConfigurationError as e:
        logger.error(f"Missing M-Pesa configuration: {e}")
        return Response(
            {"success": False, "status": "pending", "message": "M-Pesa not configured"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    body = {
        "success": resolution.message is None,
        "status": summary_status(resolution.status),
        "paymentStatus": resolution.status,
        "source": resolution.source,
    }
    if resolution.result_code is not None:
        body["resultCode"] = resolution.result_code
        body["resultDesc"] = resolution.result_desc
    if resolution.message:
        body["message"] = resolution.message
    return Response(body, status=status.HTTP_200_OK)


@api_view(['GET', 'POST'])
def mpesa_callback(request):
    """
    Handles the M-Pesa STK push callback.
    Safaricom sends the transaction outcome in the request body.

    Whatever happens here, Safaricom gets a 200 "Accepted"; anything else
    makes it redeliver the same callback over and over.
    """
    if request.method == 'GET':
        return Response({"status": "Callback URL is active. Waiting for POST data."}, status=status.HTTP_200_OK)

    try:
        data = request.data
        logger.info(f"M-Pesa Callback received: {data}")
        record_stk_callback(data)
    except MalformedCallback as e:
        logger.warning(f"Malformed callback acknowledged: {e}")
    except DatabaseError:
        logger.exception("Database error while saving callback")
    except Exception:
        logger.exception("Error processing callback")

    return Response(CALLBACK_ACCEPTED, status=status.HTTP_200_OK)
