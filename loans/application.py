from dataclasses import dataclass

PROCESSING_FEE = 99  # KES
FEE_ACCOUNT_REFERENCE = "Processing fee"
DEFAULT_LOAN_AMOUNT = 10000


def format_phone_for_mpesa(phone):
    # Convert 07XXXXXXXX or 01XXXXXXXX to 2547XXXXXXXX or 2541XXXXXXXX
    if phone.startswith('0'):
        return '254' + phone[1:]
    return phone


@dataclass
class LoanApplication:
    """
    Applicant details as handed over by the already-validated form,
    plus the loan amount they picked.
    """
    full_name: str
    id_number: str
    phone_number: str
    loan_amount: int = DEFAULT_LOAN_AMOUNT

    def fee_request(self):
        """Body for the initiate-stk-push endpoint"""
        return {
            "phoneNumber": format_phone_for_mpesa(self.phone_number),
            "amount": PROCESSING_FEE,
            "accountReference": FEE_ACCOUNT_REFERENCE,
            "transactionDesc": f"Processing fee for {self.full_name}",
        }

    def __str__(self):
        return f"{self.full_name} - KES {self.loan_amount}"
