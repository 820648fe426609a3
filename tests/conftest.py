import pytest
from rest_framework.test import APIClient

from tests.factories import make_response


@pytest.fixture(autouse=True)
def mpesa_settings(settings):
    """Fake Daraja credentials for every test."""
    settings.MPESA_ENVIRONMENT = "sandbox"
    settings.MPESA_CONSUMER_KEY = "test-key"
    settings.MPESA_CONSUMER_SECRET = "test-secret"
    settings.MPESA_SHORTCODE = "174379"
    settings.MPESA_PASSKEY = "test-passkey"
    settings.MPESA_CALLBACK_URL = "https://example.test/api/payment-callback/"
    return settings


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def token_response():
    return make_response({"access_token": "test-token", "expires_in": "3599"})
