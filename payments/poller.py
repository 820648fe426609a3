"""
Client-side polling of the query-status endpoint after an STK push.

One PollSession exists per checkout request id. It owns its attempt
counter, polls immediately and then every POLL_INTERVAL_SECONDS, and stops
on the first terminal status or after MAX_POLL_ATTEMPTS pending answers.
"""
import asyncio
import logging
from dataclasses import dataclass

import requests

from .status import (
    CANCELLED,
    FAILED,
    INSUFFICIENT,
    PENDING,
    PROCESSING,
    RESULT_CODE_STATUSES,
    SUCCESS,
    TERMINAL_STATUSES,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2
MAX_POLL_ATTEMPTS = 30  # 60 seconds max (2s intervals)

# (title, description) shown to the payer for each status
STATUS_MESSAGES = {
    PROCESSING: ("Processing Payment", "Please wait while we confirm your payment..."),
    PENDING: ("STK Push Sent", "Check your phone and enter your M-Pesa PIN to complete payment"),
    SUCCESS: ("Payment Successful!", "Your application has been initiated. Results will be sent to your phone."),
    FAILED: ("Payment Failed", "The transaction could not be completed. Please try again."),
    CANCELLED: ("Payment Cancelled", "You cancelled the M-Pesa transaction. Try again when ready."),
    INSUFFICIENT: ("Insufficient Balance", "Your M-Pesa balance is too low. Please top up and try again."),
}
TIMEOUT_MESSAGE = ("Timeout", "Payment confirmation timed out. Please check your M-Pesa messages.")


@dataclass
class PollOutcome:
    status: str
    message: tuple
    attempts: int
    timed_out: bool = False


def status_from_response(data):
    """Turn a query-status response body into a canonical status."""
    if not isinstance(data, dict):
        return PENDING
    result_code = data.get("resultCode")
    if result_code is not None:
        result_code = str(result_code)
    if result_code in RESULT_CODE_STATUSES:
        return RESULT_CODE_STATUSES[result_code]
    if data.get("status") == "pending" or result_code is None:
        return PENDING
    return FAILED


class PollSession:
    """
    Polls fetch_status(checkout_request_id) until the payment settles.

    fetch_status is an async callable returning the query-status body.
    Transport errors count as a pending answer. on_status, if given, is
    called with each status the session settles on.
    """
    def __init__(self, checkout_request_id, fetch_status, on_status=None,
                 interval=POLL_INTERVAL_SECONDS, max_attempts=MAX_POLL_ATTEMPTS, sleep=asyncio.sleep):
        self.checkout_request_id = checkout_request_id
        self.fetch_status = fetch_status
        self.on_status = on_status
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.attempts = 0
        self.status = PENDING
        self.discarded = False

    def discard(self):
        """Stop acting on this session; any poll still in flight is ignored."""
        self.discarded = True

    async def poll_once(self):
        try:
            data = await self.fetch_status(self.checkout_request_id)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Poll error for {self.checkout_request_id}: {e}")
            return PENDING
        return status_from_response(data)

    async def run(self):
        """
        Returns a PollOutcome, or None if the session was discarded first.
        """
        while not self.discarded:
            if self.attempts >= self.max_attempts:
                logger.warning(f"Payment confirmation for {self.checkout_request_id} timed out "
                               f"after {self.attempts} attempts")
                return self._finish(FAILED, TIMEOUT_MESSAGE, timed_out=True)

            payment_status = await self.poll_once()
            if self.discarded:
                break
            if payment_status in TERMINAL_STATUSES:
                return self._finish(payment_status, STATUS_MESSAGES[payment_status])

            self.attempts += 1
            await self.sleep(self.interval)
        return None

    def _finish(self, payment_status, message, timed_out=False):
        self.status = payment_status
        if self.on_status is not None:
            self.on_status(payment_status, message)
        return PollOutcome(payment_status, message, self.attempts, timed_out)
