"""
Canonical payment statuses and the mapping from Daraja result codes.

Both the callback body and the STK query response carry a ResultCode; it
arrives as an int in callbacks and as a string from the query API, so codes
are compared as strings.
"""

IDLE = 'idle'
PENDING = 'pending'
PROCESSING = 'processing'
SUCCESS = 'success'
FAILED = 'failed'
CANCELLED = 'cancelled'
INSUFFICIENT = 'insufficient'

PAYMENT_STATUSES = (IDLE, PENDING, PROCESSING, SUCCESS, FAILED, CANCELLED, INSUFFICIENT)
TERMINAL_STATUSES = frozenset({SUCCESS, FAILED, CANCELLED, INSUFFICIENT})

RESULT_CODE_STATUSES = {
    '0': SUCCESS,
    '1032': CANCELLED,  # Request cancelled by user
    '1': INSUFFICIENT,  # The balance is insufficient for the transaction
}


def canonical_status(result_code):
    """Map a raw ResultCode (or None when there is none yet) to a status."""
    if result_code is None:
        return PENDING
    return RESULT_CODE_STATUSES.get(str(result_code), FAILED)


def summary_status(payment_status):
    """Collapse a canonical status into the pending/completed/failed API field."""
    if payment_status == PENDING:
        return 'pending'
    if payment_status == SUCCESS:
        return 'completed'
    return 'failed'
