import pytest
import requests

from payments.poller import (
    MAX_POLL_ATTEMPTS,
    POLL_INTERVAL_SECONDS,
    STATUS_MESSAGES,
    TIMEOUT_MESSAGE,
    PollSession,
    status_from_response,
)

PENDING_BODY = {"success": True, "status": "pending", "paymentStatus": "pending", "source": "query"}


def result(code, summary="failed"):
    return {"success": True, "status": summary, "resultCode": code, "resultDesc": "..."}


class FakeStatusApi:
    """Replays a scripted list of answers; exceptions in the script are raised."""

    def __init__(self, answers, default=PENDING_BODY):
        self.answers = list(answers)
        self.default = default
        self.calls = 0

    async def __call__(self, checkout_request_id):
        self.calls += 1
        answer = self.answers.pop(0) if self.answers else self.default
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.mark.parametrize("body, expected", [
    (result("0", "completed"), "success"),
    (result(0, "completed"), "success"),
    (result("1032"), "cancelled"),
    (result("1"), "insufficient"),
    (result("2001"), "failed"),
    (result(""), "failed"),
    (PENDING_BODY, "pending"),
    ({"success": True, "status": "failed"}, "pending"),
    ({"success": False, "status": "pending", "message": "M-Pesa not configured"}, "pending"),
    (None, "pending"),
])
def test_status_from_response(body, expected):
    assert status_from_response(body) == expected


@pytest.mark.asyncio
async def test_immediate_success():
    api = FakeStatusApi([result("0", "completed")])
    sleep = FakeSleep()

    outcome = await PollSession("ws_CO_123", api, sleep=sleep).run()

    assert outcome.status == "success"
    assert outcome.message == STATUS_MESSAGES["success"]
    assert outcome.timed_out is False
    assert api.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_gives_up_after_attempt_budget():
    api = FakeStatusApi([])
    sleep = FakeSleep()

    outcome = await PollSession("ws_CO_123", api, sleep=sleep).run()

    assert outcome.status == "failed"
    assert outcome.timed_out is True
    assert outcome.message == TIMEOUT_MESSAGE
    assert outcome.message != STATUS_MESSAGES["failed"]
    assert outcome.attempts == MAX_POLL_ATTEMPTS
    assert api.calls == MAX_POLL_ATTEMPTS
    assert sleep.delays == [POLL_INTERVAL_SECONDS] * MAX_POLL_ATTEMPTS
    assert sum(sleep.delays) == 60


@pytest.mark.asyncio
async def test_provider_failure_is_not_a_timeout():
    api = FakeStatusApi([PENDING_BODY, result("2001")])

    outcome = await PollSession("ws_CO_123", api, sleep=FakeSleep()).run()

    assert outcome.status == "failed"
    assert outcome.timed_out is False
    assert outcome.message == STATUS_MESSAGES["failed"]


@pytest.mark.asyncio
@pytest.mark.parametrize("errors", [1, 5, MAX_POLL_ATTEMPTS - 1])
async def test_transport_errors_then_success(errors):
    api = FakeStatusApi([requests.ConnectionError("offline")] * errors + [result("0", "completed")])

    outcome = await PollSession("ws_CO_123", api, sleep=FakeSleep()).run()

    assert outcome.status == "success"
    assert outcome.attempts == errors
    assert api.calls == errors + 1


@pytest.mark.asyncio
async def test_transport_errors_count_against_budget():
    api = FakeStatusApi([], default=requests.Timeout("slow network"))

    outcome = await PollSession("ws_CO_123", api, max_attempts=3, sleep=FakeSleep()).run()

    assert outcome.timed_out is True
    assert api.calls == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("code, expected", [("1032", "cancelled"), ("1", "insufficient")])
async def test_terminal_codes_stop_polling(code, expected):
    api = FakeStatusApi([PENDING_BODY, PENDING_BODY, result(code)])
    seen = []

    outcome = await PollSession("ws_CO_123", api, on_status=lambda s, m: seen.append(s),
                                sleep=FakeSleep()).run()

    assert outcome.status == expected
    assert api.calls == 3
    assert seen == [expected]


@pytest.mark.asyncio
async def test_discarded_session_stops_quietly():
    seen = []
    session = None

    async def fetch(checkout_request_id):
        session.discard()
        return result("0", "completed")

    session = PollSession("ws_CO_123", fetch, on_status=lambda s, m: seen.append(s), sleep=FakeSleep())

    assert await session.run() is None
    assert seen == []
