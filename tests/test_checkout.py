import asyncio

import pytest
import requests

from loans.application import LoanApplication
from loans.checkout import FeeCheckout
from payments.poller import STATUS_MESSAGES, TIMEOUT_MESSAGE


async def no_sleep(delay):
    await asyncio.sleep(0)


class FakePaymentApi:
    """Stands in for PaymentApiClient."""

    def __init__(self, initiations, statuses=None):
        self.initiations = list(initiations)
        # checkout request id -> scripted answers; pending once exhausted
        self.statuses = statuses or {}
        self.initiated = []
        self.queried = []

    def initiate_payment(self, payload):
        self.initiated.append(payload)
        answer = self.initiations.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def query_status(self, checkout_request_id):
        self.queried.append(checkout_request_id)
        answers = self.statuses.get(checkout_request_id) or []
        answer = answers.pop(0) if answers else {"success": True, "status": "pending"}
        if isinstance(answer, Exception):
            raise answer
        return answer


def sent(checkout_request_id):
    return {"success": True, "checkoutRequestId": checkout_request_id, "merchantRequestId": "m-1"}


def resolved(code):
    return {"success": True, "status": "completed" if code == "0" else "failed", "resultCode": code}


@pytest.fixture
def application():
    return LoanApplication("Jane Wanjiru", "12345678", "0712345678", loan_amount=7500)


@pytest.mark.asyncio
async def test_successful_payment(application):
    api = FakePaymentApi([sent("ws_CO_123")], {"ws_CO_123": [{"status": "pending"}, resolved("0")]})
    checkout = FeeCheckout(application, api, sleep=no_sleep)
    assert checkout.status == "idle"

    assert await checkout.confirm_payment() == "success"

    assert checkout.message == STATUS_MESSAGES["success"]
    assert checkout.checkout_request_id == "ws_CO_123"
    assert api.initiated == [application.fee_request()]
    assert api.queried == ["ws_CO_123", "ws_CO_123"]
    assert checkout.is_loading is False


@pytest.mark.asyncio
async def test_initiation_rejected_by_server(application):
    api = FakePaymentApi([{"success": False, "message": "Bad Request - Invalid PhoneNumber"}])
    checkout = FeeCheckout(application, api, sleep=no_sleep)

    assert await checkout.confirm_payment() == "failed"

    assert checkout.message == ("Payment Error", "Bad Request - Invalid PhoneNumber")
    assert checkout.checkout_request_id is None
    assert api.queried == []
    assert checkout.can_retry


@pytest.mark.asyncio
async def test_initiation_network_error_hides_details(application):
    api = FakePaymentApi([requests.ConnectionError("Max retries exceeded with url")])
    checkout = FeeCheckout(application, api, sleep=no_sleep)

    assert await checkout.confirm_payment() == "failed"
    assert "Max retries" not in " ".join(checkout.message)


@pytest.mark.asyncio
async def test_timeout(application):
    api = FakePaymentApi([sent("ws_CO_123")])
    checkout = FeeCheckout(application, api, max_attempts=4, sleep=no_sleep)

    assert await checkout.confirm_payment() == "failed"

    assert checkout.message == TIMEOUT_MESSAGE
    assert len(api.queried) == 4


@pytest.mark.asyncio
async def test_try_again_after_cancel_uses_new_request(application):
    api = FakePaymentApi([sent("ws_CO_1"), sent("ws_CO_2")],
                         {"ws_CO_1": [resolved("1032")], "ws_CO_2": [resolved("0")]})
    checkout = FeeCheckout(application, api, sleep=no_sleep)

    assert await checkout.confirm_payment() == "cancelled"
    assert checkout.message == STATUS_MESSAGES["cancelled"]

    assert await checkout.retry() == "success"
    assert checkout.checkout_request_id == "ws_CO_2"
    assert api.queried == ["ws_CO_1", "ws_CO_2"]


@pytest.mark.asyncio
async def test_try_again_discards_running_session(application):
    api = FakePaymentApi([sent("ws_CO_1"), sent("ws_CO_2")], {"ws_CO_2": [resolved("1")]})
    checkout = FeeCheckout(application, api, max_attempts=1000, sleep=no_sleep)

    first = asyncio.create_task(checkout.confirm_payment())
    while checkout.session is None:
        await asyncio.sleep(0)
    first_session = checkout.session

    assert await checkout.confirm_payment() == "insufficient"
    await first

    assert first_session.discarded
    assert checkout.status == "insufficient"
    assert checkout.checkout_request_id == "ws_CO_2"


@pytest.mark.asyncio
async def test_retry_not_allowed_after_success(application):
    api = FakePaymentApi([sent("ws_CO_1")], {"ws_CO_1": [resolved("0")]})
    checkout = FeeCheckout(application, api, sleep=no_sleep)
    await checkout.confirm_payment()

    with pytest.raises(RuntimeError):
        await checkout.retry()


@pytest.mark.asyncio
async def test_back_resets_to_idle(application):
    api = FakePaymentApi([sent("ws_CO_1")], {"ws_CO_1": [resolved("1")]})
    checkout = FeeCheckout(application, api, sleep=no_sleep)
    await checkout.confirm_payment()

    checkout.back()

    assert checkout.status == "idle"
    assert checkout.message is None
    assert checkout.checkout_request_id is None
    assert checkout.session is None
