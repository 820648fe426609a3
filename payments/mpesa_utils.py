import base64
import datetime
import logging

import requests
from requests.auth import HTTPBasicAuth
from django.conf import settings

from .exceptions import ConfigurationError, UpstreamAuthError, UpstreamRejected, UpstreamUnavailable

logger = logging.getLogger(__name__)

DARAJA_HOSTS = {
    'sandbox': 'https://sandbox.safaricom.co.ke',
    'production': 'https://api.safaricom.co.ke',
}
TOKEN_PATH = '/oauth/v1/generate?grant_type=client_credentials'
STK_PUSH_PATH = '/mpesa/stkpush/v1/processrequest'
STK_QUERY_PATH = '/mpesa/stkpushquery/v1/query'


def get_api_url(path):
    host = DARAJA_HOSTS.get(settings.MPESA_ENVIRONMENT, DARAJA_HOSTS['sandbox'])
    return host + path


def get_mpesa_access_token():
    """
    Returns a fresh access token from Safaricom Daraja.
    A new token is requested on every call; nothing is cached.
    """
    consumer_key = settings.MPESA_CONSUMER_KEY
    consumer_secret = settings.MPESA_CONSUMER_SECRET
    if not consumer_key or not consumer_secret:
        raise ConfigurationError("M-Pesa credentials not configured")

    try:
        r = requests.get(get_api_url(TOKEN_PATH), auth=HTTPBasicAuth(consumer_key, consumer_secret))
    except requests.RequestException as e:
        raise UpstreamUnavailable(f"Could not reach M-Pesa auth endpoint: {e}") from e

    if not r.ok:
        logger.error(f"OAuth error ({r.status_code}): {r.text}")
        raise UpstreamAuthError("Failed to get M-Pesa access token")

    try:
        token = r.json().get('access_token')
    except ValueError as e:
        raise UpstreamAuthError("Failed to get M-Pesa access token") from e
    if not token:
        raise UpstreamAuthError("Failed to get M-Pesa access token")
    return token


def get_business_credentials():
    """Returns (short_code, pass_key) or raises ConfigurationError."""
    short_code = settings.MPESA_SHORTCODE
    pass_key = settings.MPESA_PASSKEY
    if not short_code or not pass_key:
        raise ConfigurationError("M-Pesa not configured")
    return short_code, pass_key


def generate_timestamp():
    # Local time in 'YYYYMMDDHHmmss' format
    return datetime.datetime.now().strftime('%Y%m%d%H%M%S')


def generate_password(short_code, pass_key, timestamp=None):
    """
    Generate the M-Pesa password by concatenating ShortCode + PassKey + Timestamp,
    then base64-encoding the result.

    Returns:
        (password, timestamp) as a tuple
    """
    if timestamp is None:
        timestamp = generate_timestamp()
    data_to_encode = short_code + pass_key + timestamp
    encoded_string = base64.b64encode(data_to_encode.encode()).decode('utf-8')
    return encoded_string, timestamp


def post_to_daraja(path, payload, access_token):
    """
    POSTs a JSON payload to Daraja and returns the decoded body.

    A non-2xx answer that still carries Daraja's errorCode/errorMessage is a
    rejection; anything else that isn't a readable 2xx body is unavailability.
    """
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json"
    }
    try:
        response = requests.post(get_api_url(path), json=payload, headers=headers)
    except requests.RequestException as e:
        raise UpstreamUnavailable(f"Could not reach M-Pesa: {e}") from e

    try:
        data = response.json()
    except ValueError as e:
        raise UpstreamUnavailable(f"Unreadable M-Pesa response (HTTP {response.status_code})") from e
    if not isinstance(data, dict):
        raise UpstreamUnavailable(f"Unexpected M-Pesa response (HTTP {response.status_code})")

    if not response.ok:
        if data.get('errorMessage'):
            raise UpstreamRejected(data['errorMessage'], data.get('errorCode'))
        raise UpstreamUnavailable(f"M-Pesa returned HTTP {response.status_code}")
    return data


def initiate_stk_push(phone_number, amount, account_reference, transaction_desc, callback_url):
    """
    Sends an STK push prompt to phone_number (format 2547XXXXXXXX).

    Returns {"checkout_request_id": ..., "merchant_request_id": ...} once
    Daraja has accepted the request. Acceptance only means the prompt was
    dispatched to the phone; the outcome arrives later on callback_url.
    """
    short_code, pass_key = get_business_credentials()
    access_token = get_mpesa_access_token()
    password, timestamp = generate_password(short_code, pass_key)

    payload = {
        "BusinessShortCode": short_code,
        "Password": password,
        "Timestamp": timestamp,
        "TransactionType": settings.MPESA_TRANSACTION_TYPE,
        "Amount": int(amount),  # M-Pesa only takes whole shillings
        "PartyA": phone_number,  # Phone number paying
        "PartyB": short_code,  # Business shortcode
        "PhoneNumber": phone_number,
        "CallBackURL": callback_url,
        "AccountReference": account_reference,
        "TransactionDesc": transaction_desc
    }
    logger.info(f"Initiating STK Push for {phone_number} amount: KES {payload['Amount']}")

    response_json = post_to_daraja(STK_PUSH_PATH, payload, access_token)
    logger.info(f"STK Push response: {response_json}")

    if response_json.get("ResponseCode") != "0":
        message = (
            response_json.get("errorMessage")
            or response_json.get("ResponseDescription")
            or "STK Push failed"
        )
        raise UpstreamRejected(message, response_json.get("ResponseCode"))

    return {
        "checkout_request_id": response_json.get("CheckoutRequestID"),
        "merchant_request_id": response_json.get("MerchantRequestID"),
    }


def query_stk_status(checkout_request_id, short_code, pass_key):
    """
    Asks Daraja directly what happened to an STK push.
    Returns the raw response body.
    """
    access_token = get_mpesa_access_token()
    password, timestamp = generate_password(short_code, pass_key)

    payload = {
        "BusinessShortCode": short_code,
        "Password": password,
        "Timestamp": timestamp,
        "CheckoutRequestID": checkout_request_id,
    }
    response_json = post_to_daraja(STK_QUERY_PATH, payload, access_token)
    logger.info(f"STK query response for {checkout_request_id}: {response_json}")
    return response_json
