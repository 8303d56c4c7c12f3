"""Payment status derivation for registrations.

Everything here is a pure function of its arguments so the payment state
machine can be exercised without a database.
"""

from dataclasses import dataclass
from decimal import Decimal

from ..models.registration import PaymentStatus

ZERO = Decimal("0")


def calculate_balance(total_amount: Decimal, amount_paid: Decimal) -> Decimal:
    """Balance due, floored at zero so overpayment never produces a credit."""
    return max(ZERO, total_amount - amount_paid)


def derive_payment_status(
    total_amount: Decimal,
    amount_paid: Decimal,
    deposit_amount: Decimal,
    prior_status: PaymentStatus | str,
) -> PaymentStatus:
    """
    Derive the payment status after a payment.

    ``deposit_paid`` is only reported on the transition out of ``pending``;
    once a registration has left ``pending`` every further unsettled payment
    is ``partial``.

    Args:
        total_amount: Amount owed for the registration
        amount_paid: Cumulative amount paid, including the new payment
        deposit_amount: Trip deposit threshold
        prior_status: Payment status before this payment

    Returns:
        The new payment status
    """
    if calculate_balance(total_amount, amount_paid) == ZERO:
        return PaymentStatus.PAID

    if amount_paid >= deposit_amount and prior_status == PaymentStatus.PENDING:
        return PaymentStatus.DEPOSIT_PAID

    return PaymentStatus.PARTIAL


def deposit_portion(amount_paid: Decimal, deposit_amount: Decimal) -> Decimal:
    """Part of the cumulative payment that counts toward the deposit."""
    return min(amount_paid, deposit_amount)


@dataclass(frozen=True)
class PaymentOutcome:
    """Derived financial fields of a registration after a payment."""

    amount_paid: Decimal
    balance_due: Decimal
    deposit_paid: Decimal
    payment_status: PaymentStatus


def apply_payment(
    total_amount: Decimal,
    amount_paid: Decimal,
    deposit_amount: Decimal,
    prior_status: PaymentStatus | str,
) -> PaymentOutcome:
    """Compute every derived field for a cumulative ``amount_paid``."""
    return PaymentOutcome(
        amount_paid=amount_paid,
        balance_due=calculate_balance(total_amount, amount_paid),
        deposit_paid=deposit_portion(amount_paid, deposit_amount),
        payment_status=derive_payment_status(total_amount, amount_paid, deposit_amount, prior_status),
    )
