from django.core.exceptions import ValidationError


class InvalidTransition(ValidationError):
    """A phase operation was requested from a state that does not allow it."""

    error_code = 'invalid_transition'

    def __init__(self, message, *, phase=None, state=None):
        super().__init__(message, code=self.error_code)
        self.phase = phase
        self.state = state


class LedgerViolation(ValidationError):
    error_code = 'ledger_violation'
    field_name = '__all__'

    def __init__(self, message, *, summary):
        super().__init__({self.field_name: [ValidationError(message, code=self.error_code)]})
        self.summary = summary


class AmountExceedsRemaining(LedgerViolation):
    error_code = 'amount_exceeds_remaining'
    field_name = 'amount'

    @property
    def remaining_amount(self):
        return self.summary['remaining_amount']


class DuplicateInstallmentNumber(LedgerViolation):
    error_code = 'duplicate_installment_number'
    field_name = 'installment_number'
