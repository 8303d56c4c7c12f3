"""Registration router for the registration lifecycle."""

import logging

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.registration import (
    CancelRegistrationRequest,
    CreateRegistrationRequest,
    GetRegistrationRequest,
    ListMemberRegistrationsRequest,
    ListOrganizationRegistrationsRequest,
    ListRegistrationsRequest,
    MemberSummary,
    RecordPaymentRequest,
    Registration,
    RegistrationList,
    TripSummary,
    UpdateRegistrationRequest,
    UpdateVisaStatusRequest,
)
from ..services.idempotency_service import run_idempotent
from ..services.registration_service import RegistrationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/registration", tags=["registration"])

DB_DEPENDENCY = Depends(get_db)
IDEMPOTENCY_KEY_DEPENDENCY = Header(..., alias="Idempotency-Key")


def convert_registration_to_schema(registration_model) -> Registration:
    """Convert registration model, with its loaded trip and member, to schema."""
    trip = registration_model.trip
    member = registration_model.member
    return Registration(
        id=registration_model.id,
        organization_id=registration_model.organization_id,
        trip_id=registration_model.trip_id,
        member_id=registration_model.member_id,
        registration_number=registration_model.registration_number,
        registration_date=registration_model.registration_date,
        status=registration_model.status,
        payment_status=registration_model.payment_status,
        total_amount=registration_model.total_amount,
        amount_paid=registration_model.amount_paid,
        deposit_paid=registration_model.deposit_paid,
        balance_due=registration_model.balance_due,
        currency=registration_model.currency,
        room_type=registration_model.room_type,
        passport_number=registration_model.passport_number,
        special_requests=registration_model.special_requests,
        notes=registration_model.notes,
        visa_status=registration_model.visa_status,
        visa_number=registration_model.visa_number,
        visa_issue_date=registration_model.visa_issue_date,
        visa_expiry_date=registration_model.visa_expiry_date,
        visa_notes=registration_model.visa_notes,
        cancelled_at=registration_model.cancelled_at,
        cancellation_reason=registration_model.cancellation_reason,
        refund_amount=registration_model.refund_amount,
        refund_date=registration_model.refund_date,
        created_at=registration_model.created_at,
        updated_at=registration_model.updated_at,
        trip=TripSummary(
            id=trip.id,
            name=trip.name,
            code=trip.code,
            start_date=trip.start_date,
            end_date=trip.end_date,
            status=trip.status,
        ) if trip else None,
        member=MemberSummary(
            id=member.id,
            first_name=member.first_name,
            last_name=member.last_name,
            email=member.email,
        ) if member else None,
    )


def _unexpected(message: str, e: Exception, **context) -> InternalServerError:
    logger.error(message, extra={**context, "error": str(e)}, exc_info=True)
    return InternalServerError()


@router.post("/create", response_model=Registration, status_code=201)
async def create_registration(
    request: CreateRegistrationRequest,
    db: AsyncSession = DB_DEPENDENCY,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Register a member on a trip.

    Fails with 409 FULL when the trip has no spots left. This operation is
    idempotent based on the Idempotency-Key header.
    """
    registration_service = RegistrationService(db)

    async def operation() -> Registration:
        registration = await registration_service.create_registration(request)
        return convert_registration_to_schema(registration)

    try:
        return await run_idempotent(
            db, idempotency_key, "registration/create", request, operation, status_code=201
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected(
            "Unexpected error in registration creation", e,
            trip_id=str(request.trip_id),
            member_id=str(request.member_id),
            idempotency_key=idempotency_key,
        ) from e


@router.post("/payment", response_model=Registration)
async def record_payment(
    request: RecordPaymentRequest,
    db: AsyncSession = DB_DEPENDENCY,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Record a payment against a registration.

    Replaying the same Idempotency-Key never records the payment twice.
    """
    registration_service = RegistrationService(db)

    async def operation() -> Registration:
        registration = await registration_service.record_payment(request)
        return convert_registration_to_schema(registration)

    try:
        return await run_idempotent(db, idempotency_key, "registration/payment", request, operation)

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected(
            "Unexpected error in payment recording", e,
            registration_id=str(request.registration_id),
            idempotency_key=idempotency_key,
        ) from e


@router.post("/visa", response_model=Registration)
async def update_visa_status(
    request: UpdateVisaStatusRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Update visa tracking fields on a registration."""
    registration_service = RegistrationService(db)

    try:
        registration = await registration_service.update_visa_status(request)
        response_data = convert_registration_to_schema(registration)
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected(
            "Unexpected error in visa status update", e,
            registration_id=str(request.registration_id),
        ) from e


@router.post("/update", response_model=Registration)
async def update_registration(
    request: UpdateRegistrationRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Update room, passport and note fields on a registration."""
    registration_service = RegistrationService(db)

    try:
        registration = await registration_service.update_registration(request)
        response_data = convert_registration_to_schema(registration)
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected(
            "Unexpected error in registration update", e,
            registration_id=str(request.registration_id),
        ) from e


@router.post("/cancel", response_model=Registration)
async def cancel_registration(
    request: CancelRegistrationRequest,
    db: AsyncSession = DB_DEPENDENCY,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Cancel a registration and release its seat.

    A second cancellation under a new Idempotency-Key fails with 409
    INVALID_STATE.
    """
    registration_service = RegistrationService(db)

    async def operation() -> Registration:
        registration = await registration_service.cancel_registration(request)
        return convert_registration_to_schema(registration)

    try:
        return await run_idempotent(db, idempotency_key, "registration/cancel", request, operation)

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected(
            "Unexpected error in registration cancellation", e,
            registration_id=str(request.registration_id),
            idempotency_key=idempotency_key,
        ) from e


@router.post("/get", response_model=Registration)
async def get_registration(
    request: GetRegistrationRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Get registration details."""
    registration_service = RegistrationService(db)

    try:
        registration = await registration_service.get_registration_by_id_or_raise(request.registration_id)
        response_data = convert_registration_to_schema(registration)
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _unexpected(
            "Unexpected error in registration retrieval", e,
            registration_id=str(request.registration_id),
        ) from e


@router.post("/list", response_model=RegistrationList)
async def list_registrations(
    request: ListRegistrationsRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """List a trip's registrations with optional filters."""
    registrations = await RegistrationService(db).get_registrations(request)
    response_data = RegistrationList(items=[convert_registration_to_schema(r) for r in registrations])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/list-all", response_model=RegistrationList)
async def list_organization_registrations(
    request: ListOrganizationRegistrationsRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """List every registration of an organization, optionally by trip, member or status."""
    registrations = await RegistrationService(db).get_all_registrations(request)
    response_data = RegistrationList(items=[convert_registration_to_schema(r) for r in registrations])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/by-member", response_model=RegistrationList)
async def list_member_registrations(
    request: ListMemberRegistrationsRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    registrations = await RegistrationService(db).get_registrations_by_member(request.member_id)
    response_data = RegistrationList(items=[convert_registration_to_schema(r) for r in registrations])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
