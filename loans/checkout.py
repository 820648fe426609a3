import asyncio
import logging

import requests

from payments.poller import (
    MAX_POLL_ATTEMPTS,
    POLL_INTERVAL_SECONDS,
    STATUS_MESSAGES,
    PollSession,
)
from payments.status import (
    CANCELLED,
    FAILED,
    IDLE,
    INSUFFICIENT,
    PENDING,
    PROCESSING,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({IDLE, FAILED, CANCELLED, INSUFFICIENT})
INITIATION_FAILED_MESSAGE = ("Payment Error", "Failed to initiate M-Pesa payment")


class FeeCheckout:
    """
    Drives the processing-fee payment for one loan application.

    idle -> processing while the STK push is requested -> pending once it
    reaches the phone -> whatever the poll session settles on. Each attempt
    gets its own PollSession; starting a new attempt or going back discards
    the previous one.
    """
    def __init__(self, application, client, poll_interval=POLL_INTERVAL_SECONDS,
                 max_attempts=MAX_POLL_ATTEMPTS, sleep=asyncio.sleep):
        self.application = application
        self.client = client
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.status = IDLE
        self.message = None
        self.checkout_request_id = None
        self.session = None
        self.is_loading = False
        self.attempt = 0

    @property
    def can_retry(self):
        return self.status in RETRYABLE_STATUSES

    async def confirm_payment(self):
        """Send the STK push and wait for the outcome. Returns the final status."""
        self._discard_session()
        self.checkout_request_id = None
        self.attempt += 1
        attempt = self.attempt
        self._set_status(PROCESSING, STATUS_MESSAGES[PROCESSING])
        self.is_loading = True

        payload = self.application.fee_request()
        logger.info(f"Initiating STK Push for {payload['phoneNumber']}")
        try:
            data = await asyncio.to_thread(self.client.initiate_payment, payload)
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Payment error: {e}")
            data = None

        if attempt != self.attempt:
            # Back or Try Again was pressed while the push was being requested
            return self.status
        self.is_loading = False
        if data is None:
            return self._fail(INITIATION_FAILED_MESSAGE)
        if not isinstance(data, dict) or not data.get("success") or not data.get("checkoutRequestId"):
            reason = data.get("message") if isinstance(data, dict) else None
            logger.warning(f"STK Push not sent: {reason}")
            return self._fail((INITIATION_FAILED_MESSAGE[0], reason or INITIATION_FAILED_MESSAGE[1]))

        self.checkout_request_id = data["checkoutRequestId"]
        self._set_status(PENDING, STATUS_MESSAGES[PENDING])

        session = PollSession(
            self.checkout_request_id,
            self._fetch_status,
            on_status=lambda payment_status, message: self._on_poll_status(session, payment_status, message),
            interval=self.poll_interval,
            max_attempts=self.max_attempts,
            sleep=self.sleep,
        )
        self.session = session
        await session.run()
        return self.status

    async def retry(self):
        """The "Try Again" action"""
        if not self.can_retry:
            raise RuntimeError(f"Cannot retry a payment that is {self.status}")
        return await self.confirm_payment()

    def back(self):
        self.attempt += 1
        self.is_loading = False
        self._discard_session()
        self.checkout_request_id = None
        self._set_status(IDLE, None)

    async def _fetch_status(self, checkout_request_id):
        return await asyncio.to_thread(self.client.query_status, checkout_request_id)

    def _on_poll_status(self, session, payment_status, message):
        # Results from a superseded session are dropped
        if session is self.session:
            self._set_status(payment_status, message)

    def _discard_session(self):
        if self.session is not None:
            self.session.discard()
            self.session = None

    def _fail(self, message):
        self._set_status(FAILED, message)
        return self.status

    def _set_status(self, payment_status, message):
        self.status = payment_status
        self.message = message
