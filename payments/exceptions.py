class MpesaError(Exception):
    """Base class for everything that can go wrong talking to Daraja."""


class ConfigurationError(MpesaError):
    """A required M-Pesa setting (key, secret, shortcode, passkey) is empty."""


class UpstreamAuthError(MpesaError):
    """Daraja refused to exchange the consumer key/secret for a token."""


class UpstreamRejected(MpesaError):
    """
    Daraja answered but did not accept the request.

    Carries the provider's own message and response code so they can be
    shown to the payer as-is.
    """

    def __init__(self, message, response_code=None):
        super().__init__(message)
        self.message = message
        self.response_code = response_code


class UpstreamUnavailable(MpesaError):
    """Network failure, non-2xx status or an unreadable body from Daraja."""


class TransientQueryFailure(MpesaError):
    """A live STK status query failed; the payment may still resolve."""


class MalformedCallback(MpesaError):
    """The callback body is missing Body.stkCallback or its CheckoutRequestID."""
