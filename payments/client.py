import requests


class PaymentApiClient:
    """Talks to this service's payment endpoints (initiate and query status)"""
    def __init__(self, base_url, session=None):
        self.base_url = f"{base_url.rstrip('/')}/api/"
        self.session = session or requests.Session()

    def initiate_payment(self, payload):
        """
        Ask the server to send the STK push.

        Returns the decoded body whatever the HTTP status; the server reports
        failures as {"success": false, "message": ...}.
        """
        response = self.session.post(f"{self.base_url}initiate-stk-push/", json=payload)
        return response.json()

    def query_status(self, checkout_request_id):
        """Fetch the current status of a checkout request"""
        response = self.session.post(
            f"{self.base_url}query-status/",
            json={"checkoutRequestId": checkout_request_id}
        )
        return response.json()
