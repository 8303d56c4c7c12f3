"""Integration tests for API endpoints."""

from uuid import uuid4

import pytest


async def _create_trip(client, payload) -> dict:
    response = await client.post("/v1/trip/create", json=payload)
    assert response.status_code == 201
    return response.json()


async def _register(client, trip, member, key):
    return await client.post(
        "/v1/registration/create",
        json={
            "organization_id": trip["organization_id"],
            "trip_id": trip["id"],
            "member_id": str(member.id),
        },
        headers={"Idempotency-Key": key},
    )


async def _get_trip(client, trip_id) -> dict:
    response = await client.post("/v1/trip/get", json={"trip_id": trip_id})
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_create_trip_endpoint(test_client, sample_trip_data):
    """Test the trip creation endpoint."""
    data = await _create_trip(test_client, sample_trip_data)

    assert data["name"] == sample_trip_data["name"]
    assert data["code"] == "UR2024"
    assert data["capacity"] == 2
    assert data["available_spots"] == 2
    assert data["price"] == "1000.00"
    assert data["deposit_amount"] == "200.00"
    assert "id" in data


@pytest.mark.asyncio
async def test_create_trip_invalid_data(test_client, sample_trip_data):
    """Schema violations come back as a 422 problem with field violations."""
    response = await test_client.post("/v1/trip/create", json={**sample_trip_data, "name": "", "capacity": -1})

    assert response.status_code == 422
    assert response.headers["content-type"].startswith("application/problem+json")
    data = response.json()
    assert data["status"] == 422
    assert data["code"] == "VALIDATION_ERROR"
    fields = {v["field"] for v in data["violations"]}
    assert {"name", "capacity"} <= fields


@pytest.mark.asyncio
async def test_create_trip_business_rule_violation(test_client, sample_trip_data):
    response = await test_client.post("/v1/trip/create", json={**sample_trip_data, "deposit_amount": "5000.00"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_get_unknown_trip(test_client):
    response = await test_client.post("/v1/trip/get", json={"trip_id": str(uuid4())})

    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["retryable"] is False


@pytest.mark.asyncio
async def test_trip_fills_over_http(test_client, sample_trip_data, make_member):
    """Two seats are taken, the third registration gets 409 FULL."""
    trip = await _create_trip(test_client, sample_trip_data)

    for i in range(2):
        response = await _register(test_client, trip, await make_member(), f"fill-{i}")
        assert response.status_code == 201

    response = await _register(test_client, trip, await make_member(), "fill-late")

    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    problem = response.json()
    assert problem["code"] == "FULL"
    assert problem["retryable"] is False
    assert problem["available_spots"] == 0
    assert (await _get_trip(test_client, trip["id"]))["available_spots"] == 0


@pytest.mark.asyncio
async def test_registration_create_is_idempotent(test_client, sample_trip_data, member):
    trip = await _create_trip(test_client, sample_trip_data)

    first = await _register(test_client, trip, member, "same-key")
    replay = await _register(test_client, trip, member, "same-key")

    assert first.status_code == 201
    assert replay.status_code == 201
    assert replay.json()["id"] == first.json()["id"]
    assert replay.json()["registration_number"] == first.json()["registration_number"]
    assert (await _get_trip(test_client, trip["id"]))["available_spots"] == 1


@pytest.mark.asyncio
async def test_idempotency_key_reused_with_other_body(test_client, sample_trip_data, make_member):
    trip = await _create_trip(test_client, sample_trip_data)
    await _register(test_client, trip, await make_member(), "reused-key")

    response = await _register(test_client, trip, await make_member(), "reused-key")

    assert response.status_code == 422
    assert response.json()["code"] == "IDEMPOTENCY_KEY_MISMATCH"


@pytest.mark.asyncio
async def test_mutations_require_idempotency_key(test_client, sample_trip_data, member):
    trip = await _create_trip(test_client, sample_trip_data)

    response = await test_client.post(
        "/v1/registration/create",
        json={"organization_id": trip["organization_id"], "trip_id": trip["id"], "member_id": str(member.id)},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_payment_lifecycle(test_client, sample_trip_data, member):
    trip = await _create_trip(test_client, sample_trip_data)
    registration = (await _register(test_client, trip, member, "pay-reg")).json()

    deposit = await test_client.post(
        "/v1/registration/payment",
        json={"registration_id": registration["id"], "amount": "200.00", "method": "card"},
        headers={"Idempotency-Key": "pay-1"},
    )
    assert deposit.status_code == 200
    assert deposit.json()["payment_status"] == "deposit_paid"
    assert deposit.json()["status"] == "confirmed"
    assert deposit.json()["balance_due"] == "800.00"

    # Replaying the same payment must not charge twice
    replay = await test_client.post(
        "/v1/registration/payment",
        json={"registration_id": registration["id"], "amount": "200.00", "method": "card"},
        headers={"Idempotency-Key": "pay-1"},
    )
    assert replay.json()["amount_paid"] == "200.00"

    rest = await test_client.post(
        "/v1/registration/payment",
        json={"registration_id": registration["id"], "amount": "800.00", "method": "transfer"},
        headers={"Idempotency-Key": "pay-2"},
    )
    assert rest.json()["payment_status"] == "paid"
    assert rest.json()["balance_due"] == "0.00"


@pytest.mark.asyncio
async def test_non_positive_payment_is_rejected(test_client, sample_trip_data, member):
    trip = await _create_trip(test_client, sample_trip_data)
    registration = (await _register(test_client, trip, member, "neg-reg")).json()

    response = await test_client.post(
        "/v1/registration/payment",
        json={"registration_id": registration["id"], "amount": "0", "method": "card"},
        headers={"Idempotency-Key": "neg-pay"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_cancel_twice(test_client, sample_trip_data, member):
    trip = await _create_trip(test_client, sample_trip_data)
    registration = (await _register(test_client, trip, member, "cancel-reg")).json()
    body = {"registration_id": registration["id"], "reason": "Family emergency"}

    first = await test_client.post("/v1/registration/cancel", json=body, headers={"Idempotency-Key": "cancel-1"})
    replay = await test_client.post("/v1/registration/cancel", json=body, headers={"Idempotency-Key": "cancel-1"})
    second = await test_client.post("/v1/registration/cancel", json=body, headers={"Idempotency-Key": "cancel-2"})

    assert first.status_code == 200
    assert first.json()["status"] == "cancelled"
    assert replay.status_code == 200
    assert replay.json() == first.json()
    assert second.status_code == 409
    assert second.json()["code"] == "INVALID_STATE"
    assert (await _get_trip(test_client, trip["id"]))["available_spots"] == 2


@pytest.mark.asyncio
async def test_visa_update_and_listing(test_client, sample_trip_data, member):
    trip = await _create_trip(test_client, sample_trip_data)
    registration = (await _register(test_client, trip, member, "visa-reg")).json()

    response = await test_client.post(
        "/v1/registration/visa",
        json={"registration_id": registration["id"], "visa_status": "in_progress", "visa_notes": "Submitted"},
    )
    assert response.status_code == 200
    assert response.json()["visa_status"] == "in_progress"

    listed = await test_client.post("/v1/registration/list", json={"trip_id": trip["id"], "visa_status": "in_progress"})
    by_member = await test_client.post("/v1/registration/by-member", json={"member_id": str(member.id)})

    assert [r["id"] for r in listed.json()["items"]] == [registration["id"]]
    assert [r["id"] for r in by_member.json()["items"]] == [registration["id"]]
    assert by_member.json()["items"][0]["trip"]["code"] == "UR2024"


@pytest.mark.asyncio
async def test_capacity_adjust_endpoint(test_client, sample_trip_data):
    trip = await _create_trip(test_client, sample_trip_data)

    response = await test_client.post(
        "/v1/capacity/adjust",
        json={"trip_id": trip["id"], "delta": 3, "reason": "Extra van"},
        headers={"Idempotency-Key": "adj-1", "X-Actor": "coordinator"},
    )

    assert response.status_code == 200
    assert response.json()["capacity_after"] == 5
    assert response.json()["actor"] == "coordinator"

    conflict = await test_client.post(
        "/v1/capacity/adjust",
        json={"trip_id": trip["id"], "delta": -10, "reason": "Oops"},
        headers={"Idempotency-Key": "adj-2"},
    )
    assert conflict.status_code == 409
    assert conflict.json()["code"] == "CAPACITY_CONFLICT"


@pytest.mark.asyncio
async def test_statistics_endpoint(test_client, sample_trip_data, member):
    trip = await _create_trip(test_client, sample_trip_data)
    await _register(test_client, trip, member, "stats-reg")

    response = await test_client.post(
        "/v1/statistics/get", json={"organization_id": sample_trip_data["organization_id"]}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_trips"] == 1
    assert data["active_trips"] == 1
    assert data["total_registrations"] == 1
    assert data["total_revenue"] == "1000.00"
    assert data["collected_revenue"] == "0.00"


@pytest.mark.asyncio
async def test_upcoming_trips_endpoint(test_client, sample_trip_data):
    trip = await _create_trip(test_client, sample_trip_data)

    response = await test_client.post(
        "/v1/trip/upcoming", json={"organization_id": sample_trip_data["organization_id"]}
    )

    assert response.status_code == 200
    assert [t["id"] for t in response.json()["items"]] == [trip["id"]]


@pytest.mark.asyncio
async def test_metrics_endpoint(test_client):
    """Test the Prometheus metrics endpoint."""
    response = await test_client.get("/metrics")

    assert response.status_code == 200
    assert "trip_registrations_created_total" in response.text


@pytest.mark.asyncio
async def test_update_trip_endpoint(test_client, sample_trip_data):
    trip = await _create_trip(test_client, sample_trip_data)

    response = await test_client.post(
        "/v1/trip/update", json={"trip_id": trip["id"], "price": "1200.00", "notes": "Flights included"}
    )

    assert response.status_code == 200
    assert response.json()["price"] == "1200.00"
    assert response.json()["notes"] == "Flights included"
    assert response.json()["available_spots"] == 2


@pytest.mark.asyncio
async def test_update_trip_cannot_set_seat_counts(test_client, sample_trip_data):
    trip = await _create_trip(test_client, sample_trip_data)

    response = await test_client.post("/v1/trip/update", json={"trip_id": trip["id"], "available_spots": 50})

    assert response.status_code == 422
    assert "available_spots" in {v["field"] for v in response.json()["violations"]}
    assert (await _get_trip(test_client, trip["id"]))["available_spots"] == 2


@pytest.mark.asyncio
async def test_update_trip_deposit_above_price(test_client, sample_trip_data):
    trip = await _create_trip(test_client, sample_trip_data)

    response = await test_client.post("/v1/trip/update", json={"trip_id": trip["id"], "price": "100.00"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_update_registration_and_list_all(test_client, sample_trip_data, member):
    trip = await _create_trip(test_client, sample_trip_data)
    registration = (await _register(test_client, trip, member, "upd-reg")).json()

    response = await test_client.post(
        "/v1/registration/update",
        json={"registration_id": registration["id"], "room_type": "quad", "special_requests": "Ground floor"},
    )
    assert response.status_code == 200
    assert response.json()["room_type"] == "quad"
    assert response.json()["special_requests"] == "Ground floor"

    rejected = await test_client.post(
        "/v1/registration/update", json={"registration_id": registration["id"], "amount_paid": "1000.00"}
    )
    assert rejected.status_code == 422

    listed = await test_client.post(
        "/v1/registration/list-all",
        json={"organization_id": sample_trip_data["organization_id"], "status": ["pending"]},
    )
    assert listed.status_code == 200
    assert [r["id"] for r in listed.json()["items"]] == [registration["id"]]
    assert listed.json()["items"][0]["amount_paid"] == "0.00"
