from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


class LedgerError(Exception):
    """Base for failures surfaced to the user as a message, never retried."""
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InvalidInput(LedgerError):
    status_code = 400


class GoalTooLarge(LedgerError):
    status_code = 400


class InsufficientFunds(LedgerError):
    status_code = 409


class VaultClosed(LedgerError):
    status_code = 409


class NotFound(LedgerError):
    status_code = 404


CENT = Decimal('0.01')


def to_amount(value, field='amount', allow_zero=False) -> Decimal:
    """Parse a user-supplied amount into a Decimal rounded to cents, rejecting non-positive values."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInput(f'{field} is required.')
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        raise InvalidInput(f'{field} must be a number.')
    try:
        # money columns hold two decimal places
        amount = Decimal(str(value).strip()).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidInput(f'{field} must be a number.')
    if not amount.is_finite():
        raise InvalidInput(f'{field} must be a number.')
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidInput(f'{field} must be at least 0.01.')
    return amount


def to_text(value, field) -> str:
    """Strip a user-supplied text field; missing values become ''."""
    if value is None:
        return ''
    if not isinstance(value, str):
        raise InvalidInput(f'{field} must be text.')
    return value.strip()
