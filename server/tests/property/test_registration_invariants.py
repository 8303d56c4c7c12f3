"""Property-based tests for registration payment and numbering invariants."""

from decimal import Decimal

from hypothesis import assume, given
from hypothesis import strategies as st

from trip_engine.models.registration import PaymentStatus
from trip_engine.services.balance_calculator import apply_payment, calculate_balance, derive_payment_status
from trip_engine.services.sequence_service import format_registration_number, next_sequence

# Strategies for generating test data
money = st.decimals(min_value=Decimal("0"), max_value=Decimal("100000"), places=2, allow_nan=False, allow_infinity=False)
positive_money = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("20000"), places=2, allow_nan=False, allow_infinity=False
)
prefixes = st.text(alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789", min_size=1, max_size=10)


@given(total=money, paid=money)
def test_balance_never_negative(total, paid):
    balance = calculate_balance(total, paid)
    assert balance >= 0
    assert balance == max(Decimal("0"), total - paid)


@given(total=money, paid=money, deposit=money, prior=st.sampled_from(list(PaymentStatus)))
def test_paid_exactly_when_balance_is_zero(total, paid, deposit, prior):
    status = derive_payment_status(total, paid, deposit, prior)
    assert (status == PaymentStatus.PAID) == (calculate_balance(total, paid) == 0)


@given(total=money, paid=money, deposit=money, prior=st.sampled_from(list(PaymentStatus)))
def test_deposit_paid_only_leaves_pending(total, paid, deposit, prior):
    status = derive_payment_status(total, paid, deposit, prior)
    if status == PaymentStatus.DEPOSIT_PAID:
        assert prior == PaymentStatus.PENDING
        assert paid >= deposit


@given(total=money, deposit=money, payments=st.lists(positive_money, min_size=1, max_size=15))
def test_payment_sequence_invariants(total, deposit, payments):
    """Replaying any payment sequence keeps the derived fields consistent."""
    assume(deposit <= total)

    status = PaymentStatus.PENDING
    paid = Decimal("0")
    deposit_paid_seen = 0
    for amount in payments:
        paid += amount
        outcome = apply_payment(total, paid, deposit, status)

        assert outcome.balance_due == max(Decimal("0"), total - paid)
        assert outcome.deposit_paid <= deposit
        assert outcome.deposit_paid <= paid
        assert status != PaymentStatus.PAID or outcome.payment_status == PaymentStatus.PAID

        if outcome.payment_status == PaymentStatus.DEPOSIT_PAID:
            deposit_paid_seen += 1
        status = outcome.payment_status

    assert deposit_paid_seen <= 1
    assert (status == PaymentStatus.PAID) == (paid >= total)


@given(prefix=prefixes, yy=st.integers(min_value=0, max_value=99), sequence=st.integers(min_value=1, max_value=99999))
def test_number_format_parses_back(prefix, yy, sequence):
    number = format_registration_number(prefix, f"{yy:02d}", sequence)

    assert number.startswith(f"{prefix}-{yy:02d}-")
    assert next_sequence(number) == sequence + 1


@given(a=st.integers(min_value=1, max_value=9999), b=st.integers(min_value=1, max_value=9999))
def test_padded_numbers_sort_like_sequences(a, b):
    """Within the padding width, string order matches numeric order."""
    left = format_registration_number("UMR", "24", a)
    right = format_registration_number("UMR", "24", b)
    assert (left < right) == (a < b)
