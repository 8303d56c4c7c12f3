"""Registration lifecycle engine."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ProblemDetailsException,
    ValidationError,
)
from ..core.observability import get_logger, metrics_collector
from ..models.registration import (
    SEAT_HOLDING_STATUSES,
    PaymentStatus,
    Registration,
    RegistrationPayment,
    RegistrationStatus,
    VisaStatus,
)
from ..schemas.registration import (
    CancelRegistrationRequest,
    CreateRegistrationRequest,
    ListOrganizationRegistrationsRequest,
    ListRegistrationsRequest,
    RecordPaymentRequest,
    UpdateRegistrationRequest,
    UpdateVisaStatusRequest,
)
from .balance_calculator import apply_payment
from .capacity_service import CapacityService
from .member_service import MemberService
from .sequence_service import SequenceService
from .trip_service import TripService

logger = get_logger(__name__)

T = TypeVar("T")


class AlreadyRegisteredError(ConflictError):
    """Exception when a member already holds an active registration on the trip."""

    def __init__(self, trip_id: str, member_id: str, registration_number: str):
        super().__init__(
            detail=f"Member {member_id} is already registered on trip {trip_id} as {registration_number}",
            code="ALREADY_REGISTERED",
            conflicting_resource={
                "trip_id": trip_id,
                "member_id": member_id,
                "registration_number": registration_number
            }
        )


class StaleStateError(Exception):
    """A guarded update matched no row because another writer changed it first."""


def is_retryable(exc: Exception) -> bool:
    """Whether a failed atomic unit lost a race and may simply be run again."""
    if isinstance(exc, StaleStateError):
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    if isinstance(exc, IntegrityError):
        return "unique" in message or "duplicate" in message
    if isinstance(exc, OperationalError):
        return "locked" in message or "busy" in message
    return False


class RegistrationService:
    """
    Orchestrates the registration lifecycle: create, pay, visa updates, cancel.

    Every mutating operation is one transaction. Creation and cancellation
    take the trip lock so that seat accounting, numbering and the insert or
    status change commit together; a unit that loses a race is rolled back
    and rerun up to ``settings.max_conflict_retries`` times.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.trip_service = TripService(db)
        self.member_service = MemberService(db)
        self.capacity_service = CapacityService(db)
        self.sequence_service = SequenceService(db)

    async def _run_atomic(self, operation: str, unit: Callable[[], Awaitable[T]]) -> T:
        attempts = settings.max_conflict_retries
        for attempt in range(1, attempts + 1):
            try:
                return await unit()
            except ProblemDetailsException:
                await self.db.rollback()
                raise
            except (IntegrityError, OperationalError, StaleStateError) as exc:
                await self.db.rollback()
                if not is_retryable(exc):
                    raise
                metrics_collector.record_concurrency_retry(operation)
                logger.warning(
                    "Atomic unit lost a concurrent update race",
                    operation=operation,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(exc),
                )

        logger.error("Atomic unit exhausted retries", operation=operation, attempts=attempts)
        raise ConcurrencyConflictError(operation=operation, attempts=attempts)

    async def get_registration_by_id(self, registration_id: UUID) -> Registration | None:
        """
        Get registration by ID with its trip and member loaded.

        Args:
            registration_id: Registration ID to search for

        Returns:
            Registration if found, None otherwise
        """
        stmt = (
            select(Registration)
            .options(selectinload(Registration.trip), selectinload(Registration.member))
            .where(Registration.id == registration_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_registration_by_id_or_raise(self, registration_id: UUID) -> Registration:
        """
        Get registration by ID or raise NotFoundError.

        Raises:
            NotFoundError: If registration not found
        """
        registration = await self.get_registration_by_id(registration_id)
        if not registration:
            logger.warning("Registration not found", registration_id=str(registration_id))
            raise NotFoundError(resource_type="registration", resource_id=str(registration_id))
        return registration

    async def _find_active_registration(self, trip_id: UUID, member_id: UUID) -> Registration | None:
        stmt = (
            select(Registration)
            .where(
                Registration.trip_id == trip_id,
                Registration.member_id == member_id,
                Registration.status != RegistrationStatus.CANCELLED.value,
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_registration(self, request: CreateRegistrationRequest) -> Registration:
        """
        Register a member on a trip, consuming one seat.

        Args:
            request: Registration creation request

        Returns:
            Created registration with trip and member loaded

        Raises:
            NotFoundError: If trip or member not found in the organization
            CapacityExhaustedError: If the trip has no spots left
            AlreadyRegisteredError: If the member already holds an active registration
            ConcurrencyConflictError: If the unit kept losing races
        """
        log = logger.with_context(
            trip_id=str(request.trip_id),
            member_id=str(request.member_id),
            organization_id=str(request.organization_id),
        )

        async def unit() -> UUID:
            member = await self.member_service.get_member_by_id_or_raise(request.member_id)
            if member.organization_id != request.organization_id:
                raise NotFoundError(resource_type="member", resource_id=str(request.member_id))

            trip = await self.trip_service.get_trip_with_lock(request.trip_id)
            if trip.organization_id != request.organization_id:
                raise NotFoundError(resource_type="trip", resource_id=str(request.trip_id))

            existing = await self._find_active_registration(trip.id, member.id)
            if existing:
                raise AlreadyRegisteredError(
                    trip_id=str(trip.id),
                    member_id=str(member.id),
                    registration_number=existing.registration_number,
                )

            total_amount = (
                request.total_amount_override
                if request.total_amount_override is not None
                else (trip.price or Decimal("0"))
            )

            remaining = await self.capacity_service.reserve_spot(trip.id)
            registration_number = await self.sequence_service.generate_registration_number(trip.id, trip.code)

            registration = Registration(
                organization_id=request.organization_id,
                trip_id=trip.id,
                member_id=member.id,
                registration_number=registration_number,
                registration_date=date.today(),
                status=RegistrationStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                total_amount=total_amount,
                amount_paid=Decimal("0"),
                deposit_paid=Decimal("0"),
                balance_due=total_amount,
                currency=trip.currency,
                room_type=request.room_type.value if request.room_type else None,
                passport_number=request.passport_number,
                special_requests=request.special_requests,
                notes=request.notes,
                visa_status=VisaStatus.NOT_STARTED.value,
            )
            self.db.add(registration)
            await self.db.flush()
            await self.db.commit()

            log.info(
                "Registration created",
                registration_id=str(registration.id),
                registration_number=registration_number,
                total_amount=str(total_amount),
                remaining_spots=remaining,
            )
            return registration.id

        registration_id = await self._run_atomic("create_registration", unit)
        metrics_collector.record_registration_created(str(request.trip_id))
        return await self.get_registration_by_id_or_raise(registration_id)

    async def record_payment(self, request: RecordPaymentRequest) -> Registration:
        """
        Add a payment to a registration and derive its new payment status.

        The first payment on a pending registration confirms it. Trip
        capacity is not touched.

        Raises:
            ValidationError: If the amount is not positive
            NotFoundError: If registration not found
            InvalidStateError: If the registration is cancelled
        """
        if request.amount <= 0:
            raise ValidationError(
                detail="Payment amount must be greater than zero",
                errors={"amount": str(request.amount)}
            )

        log = logger.with_context(registration_id=str(request.registration_id))

        async def unit() -> UUID:
            # Increment first so concurrent payments serialize on the row
            increment = (
                update(Registration)
                .where(
                    Registration.id == request.registration_id,
                    Registration.status != RegistrationStatus.CANCELLED.value,
                )
                .values(amount_paid=Registration.amount_paid + request.amount)
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(increment)
            if result.rowcount == 0:
                registration = await self.get_registration_by_id_or_raise(request.registration_id)
                raise InvalidStateError(
                    resource_type="registration",
                    resource_id=str(registration.id),
                    current_state=registration.status,
                    detail=f"Registration {registration.registration_number} is cancelled and cannot accept payments",
                )

            registration = await self.get_registration_by_id_or_raise(request.registration_id)
            amount_paid_before = registration.amount_paid - request.amount
            amount_paid_after = amount_paid_before + request.amount
            outcome = apply_payment(
                total_amount=registration.total_amount,
                amount_paid=registration.amount_paid,
                deposit_amount=registration.trip.deposit_amount or Decimal("0"),
                prior_status=registration.payment_status,
            )
            status = (
                RegistrationStatus.CONFIRMED.value
                if registration.status == RegistrationStatus.PENDING
                else registration.status
            )

            await self.db.execute(
                update(Registration)
                .where(Registration.id == registration.id)
                .values(
                    balance_due=outcome.balance_due,
                    deposit_paid=outcome.deposit_paid,
                    payment_status=outcome.payment_status.value,
                    status=status,
                )
                .execution_options(synchronize_session=False)
            )
            self.db.add(RegistrationPayment(
                registration_id=registration.id,
                amount=request.amount,
                method=request.method,
                reference_number=request.reference_number,
                notes=request.notes,
                amount_paid_before=amount_paid_before,
                amount_paid_after=amount_paid_after,
                payment_status_after=outcome.payment_status.value,
            ))
            await self.db.commit()

            metrics_collector.record_payment(outcome.payment_status.value)
            log.info(
                "Payment recorded",
                amount=str(request.amount),
                method=request.method,
                amount_paid=str(outcome.amount_paid),
                balance_due=str(outcome.balance_due),
                payment_status=outcome.payment_status.value,
                status=status,
            )
            return registration.id

        registration_id = await self._run_atomic("record_payment", unit)
        return await self.get_registration_by_id_or_raise(registration_id)

    async def update_visa_status(self, request: UpdateVisaStatusRequest) -> Registration:
        """
        Update visa tracking fields; only fields present in the request change.

        Raises:
            NotFoundError: If registration not found
        """
        registration = await self.get_registration_by_id_or_raise(request.registration_id)

        changes = request.model_dump(exclude_unset=True, exclude={"registration_id"})
        changes["visa_status"] = request.visa_status.value
        for field, value in changes.items():
            setattr(registration, field, value)

        await self.db.commit()

        logger.info(
            "Visa status updated",
            registration_id=str(registration.id),
            visa_status=request.visa_status.value,
        )
        return await self.get_registration_by_id_or_raise(registration.id)

    async def update_registration(self, request: UpdateRegistrationRequest) -> Registration:
        """
        Update travel details; only fields present in the request change.

        Raises:
            NotFoundError: If registration not found
        """
        registration = await self.get_registration_by_id_or_raise(request.registration_id)

        changes = request.model_dump(exclude_unset=True, exclude={"registration_id"})
        if changes.get("room_type") is not None:
            changes["room_type"] = changes["room_type"].value
        for field, value in changes.items():
            setattr(registration, field, value)

        await self.db.commit()

        logger.info(
            "Registration updated",
            registration_id=str(registration.id),
            fields=sorted(changes),
        )
        return await self.get_registration_by_id_or_raise(registration.id)

    async def cancel_registration(self, request: CancelRegistrationRequest) -> Registration:
        """
        Cancel a registration and give its seat back to the trip.

        Cancellation is terminal. The seat is released only if the
        registration held one, and exactly once.

        Raises:
            NotFoundError: If registration not found
            InvalidStateError: If the registration is already cancelled
            ValidationError: If the refund exceeds the amount paid
        """
        log = logger.with_context(registration_id=str(request.registration_id))

        async def unit() -> UUID:
            registration = await self.get_registration_by_id_or_raise(request.registration_id)
            prior_status = registration.status
            if prior_status == RegistrationStatus.CANCELLED:
                log.warning("Registration already cancelled")
                raise InvalidStateError(
                    resource_type="registration",
                    resource_id=str(registration.id),
                    current_state=RegistrationStatus.CANCELLED.value,
                    detail=f"Registration {registration.registration_number} is already cancelled",
                )
            if request.refund_amount is not None and request.refund_amount > registration.amount_paid:
                raise ValidationError(
                    detail="Refund amount cannot exceed the amount paid",
                    errors={
                        "refund_amount": str(request.refund_amount),
                        "amount_paid": str(registration.amount_paid),
                    }
                )

            holds_seat = registration.holds_seat
            if holds_seat:
                await self.trip_service.lock_trip(registration.trip_id)

            now = datetime.now(timezone.utc)
            values = {
                "status": RegistrationStatus.CANCELLED.value,
                "cancelled_at": now,
                "cancellation_reason": request.reason,
            }
            if request.refund_amount is not None:
                values["refund_amount"] = request.refund_amount
                values["refund_date"] = now.date()

            result = await self.db.execute(
                update(Registration)
                .where(Registration.id == registration.id, Registration.status == prior_status)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise StaleStateError(f"registration {registration.id} changed status concurrently")

            available = None
            if holds_seat:
                available = await self.capacity_service.release_spot(registration.trip_id)

            await self.db.commit()

            metrics_collector.record_registration_cancelled(str(registration.trip_id))
            log.info(
                "Registration cancelled",
                trip_id=str(registration.trip_id),
                prior_status=str(prior_status),
                refund_amount=str(request.refund_amount) if request.refund_amount is not None else None,
                available_spots=available,
            )
            return registration.id

        registration_id = await self._run_atomic("cancel_registration", unit)
        return await self.get_registration_by_id_or_raise(registration_id)

    async def get_registrations(self, request: ListRegistrationsRequest) -> list[Registration]:
        """List a trip's registrations, newest first, with optional filters."""
        conditions = [Registration.trip_id == request.trip_id]

        if request.status:
            conditions.append(Registration.status == request.status.value)
        if request.payment_status:
            conditions.append(Registration.payment_status == request.payment_status.value)
        if request.visa_status:
            conditions.append(Registration.visa_status == request.visa_status.value)
        if request.room_type:
            conditions.append(Registration.room_type == request.room_type.value)
        if request.has_balance is True:
            conditions.append(Registration.balance_due > 0)
        elif request.has_balance is False:
            conditions.append(Registration.balance_due == 0)
        if request.search:
            pattern = f"%{request.search}%"
            conditions.append(or_(
                Registration.registration_number.ilike(pattern),
                Registration.passport_number.ilike(pattern),
            ))

        stmt = (
            select(Registration)
            .options(selectinload(Registration.trip), selectinload(Registration.member))
            .where(and_(*conditions))
            .order_by(Registration.registration_date.desc(), Registration.registration_number.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_all_registrations(self, request: ListOrganizationRegistrationsRequest) -> list[Registration]:
        """Every registration of an organization, newest first, optionally narrowed."""
        conditions = [Registration.organization_id == request.organization_id]

        if request.trip_id:
            conditions.append(Registration.trip_id == request.trip_id)
        if request.member_id:
            conditions.append(Registration.member_id == request.member_id)
        if request.status:
            conditions.append(Registration.status.in_([s.value for s in request.status]))

        stmt = (
            select(Registration)
            .options(selectinload(Registration.trip), selectinload(Registration.member))
            .where(and_(*conditions))
            .order_by(Registration.registration_date.desc(), Registration.registration_number.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_registrations_by_member(self, member_id: UUID) -> list[Registration]:
        stmt = (
            select(Registration)
            .options(selectinload(Registration.trip), selectinload(Registration.member))
            .where(Registration.member_id == member_id)
            .order_by(Registration.registration_date.desc(), Registration.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def count_active_registrations(self, trip_id: UUID) -> int:
        """Registrations currently holding a seat on the trip."""
        stmt = select(func.count(Registration.id)).where(
            Registration.trip_id == trip_id,
            Registration.status.in_(SEAT_HOLDING_STATUSES),
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0
