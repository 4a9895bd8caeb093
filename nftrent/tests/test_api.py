import json
import os

os.environ["TESTING"] = "1"

import pytest
from fastapi import status
from httpx import ASGITransport, AsyncClient

from nftrent.api.main import app
from nftrent.security.monitor import SecurityEventType
from nftrent.services.escrow import EscrowOutcome
from nftrent.tests.conftest import (
    MINT_ADDRESS,
    OWNER,
    RENTER,
    STRANGER,
    api_escrow,
    fake,
    listing_payload,
    login_as,
)


async def register(client: AsyncClient, identity: dict) -> dict:
    login_as(identity)
    response = await client.post(
        "/auth/register", json={"display_name": fake.name()}
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


async def create_listing(client: AsyncClient, **overrides) -> dict:
    login_as(OWNER)
    response = await client.post("/listings/", json=listing_payload(**overrides))
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


@pytest.mark.asyncio
async def test_register_and_get_profile(async_client: AsyncClient):
    response = await async_client.post(
        "/auth/register",
        json={"display_name": "Alice", "wallet_address": MINT_ADDRESS},
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["id"] == OWNER["uid"]
    assert response.json()["wallet_address"] == MINT_ADDRESS

    response = await async_client.get("/profile/me")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["display_name"] == "Alice"
    assert response.json()["email"] == OWNER["email"]

    response = await async_client.post("/auth/register", json={"display_name": "Alice"})
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"] == "ProfileAlreadyExists"


@pytest.mark.asyncio
async def test_register_rejects_invalid_wallet(async_client: AsyncClient):
    response = await async_client.post(
        "/auth/register", json={"display_name": "Bob", "wallet_address": "nope"}
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json() == {
        "detail": "Invalid wallet_address: Invalid address length",
        "error": "ValidationError",
        "field": "wallet_address",
    }


@pytest.mark.asyncio
async def test_profile_not_registered(async_client: AsyncClient):
    response = await async_client.get("/profile/me")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "ProfileNotFound"


@pytest.mark.asyncio
async def test_create_and_get_listing(async_client: AsyncClient):
    await register(async_client, OWNER)
    listing = await create_listing(async_client)

    assert listing["owner_id"] == OWNER["uid"]
    assert listing["active"] is True
    assert listing["min_duration_days"] == 1
    assert listing["max_duration_days"] == 30

    response = await async_client.get(f"/listings/{listing['id']}")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["mint_address"] == MINT_ADDRESS

    response = await async_client.get("/listings/")
    assert [item["id"] for item in response.json()] == [listing["id"]]


@pytest.mark.asyncio
async def test_create_listing_validation_error(async_client: AsyncClient):
    await register(async_client, OWNER)

    response = await async_client.post(
        "/listings/", json=listing_payload(image_url="https://localhost/x.png")
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["field"] == "image_url"
    assert response.json()["detail"] == "Invalid image_url: Private/local URLs are not allowed"


@pytest.mark.asyncio
async def test_malformed_body_is_recorded(async_client: AsyncClient):
    await register(async_client, OWNER)

    response = await async_client.post(
        "/listings/", json=listing_payload(daily_rent_lamports="a lot")
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    events = app.state.security.event_log.query_by_type(
        SecurityEventType.VALIDATION_ERROR
    )
    assert len(events) == 1
    assert "daily_rent_lamports" in events[0].metadata["field"]


@pytest.mark.asyncio
async def test_listing_submission_rate_limit(async_client: AsyncClient):
    await register(async_client, OWNER)
    for _ in range(3):
        await create_listing(async_client)

    response = await async_client.post("/listings/", json=listing_payload())
    assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert response.json()["error"] == "RateLimited"

    response = await async_client.get("/security/summary")
    assert response.json()["rate_limit_exceeded"] == 1


@pytest.mark.asyncio
async def test_rental_flow(async_client: AsyncClient):
    await register(async_client, OWNER)
    await register(async_client, RENTER)
    listing = await create_listing(async_client)

    login_as(RENTER)
    response = await async_client.post(
        f"/listings/{listing['id']}/rent", json={"duration_days": 3}
    )
    assert response.status_code == status.HTTP_201_CREATED
    rental = response.json()
    assert rental["status"] == "active"
    assert rental["listing_id"] == listing["id"]

    # the same NFT cannot be rented twice
    response = await async_client.post(
        f"/listings/{listing['id']}/rent", json={"duration_days": 3}
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"] == "AlreadyRented"

    response = await async_client.get("/rentals/my-rentals")
    assert [item["id"] for item in response.json()] == [rental["id"]]
    assert response.json()[0]["listing"]["mint_address"] == MINT_ADDRESS

    login_as(OWNER)
    response = await async_client.put(f"/listings/{listing['id']}/toggle")
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"] == "CannotToggleWhileRented"

    response = await async_client.get("/listings/my-listings")
    my_listing = response.json()[0]
    assert my_listing["currently_rented"] is True
    assert my_listing["rentals"][0]["renter"]["id"] == RENTER["uid"]

    response = await async_client.post(f"/rentals/{rental['id']}/return")
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "UnauthorizedRenter"

    login_as(RENTER)
    response = await async_client.post(f"/rentals/{rental['id']}/return")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "returned"

    response = await async_client.post(f"/rentals/{rental['id']}/return")
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"] == "NotRented"

    response = await async_client.get(f"/listings/{listing['id']}")
    assert response.json()["active"] is True
    assert response.json()["current_rental_id"] is None


@pytest.mark.asyncio
async def test_rent_with_failing_escrow(async_client: AsyncClient):
    await register(async_client, OWNER)
    await register(async_client, RENTER)
    listing = await create_listing(async_client)

    api_escrow.outcome = EscrowOutcome.FAILURE
    login_as(RENTER)
    response = await async_client.post(
        f"/listings/{listing['id']}/rent", json={"duration_days": 3}
    )

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json()["error"] == "EscrowCallFailed"

    response = await async_client.get(f"/listings/{listing['id']}")
    assert response.json()["active"] is True


@pytest.mark.asyncio
async def test_unknown_resources(async_client: AsyncClient):
    await register(async_client, OWNER)

    response = await async_client.get("/listings/missing")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "ListingNotFound"

    response = await async_client.get("/rentals/missing")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "RentalNotFound"


@pytest.mark.asyncio
async def test_missing_authorization_header_is_recorded():
    app.state.security.reset()

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        response = await client.get("/listings/")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED

    events = app.state.security.event_log.query()
    assert [e.type.value for e in events] == ["auth_failure"]
    assert events[0].metadata == {"path": "/listings/"}


@pytest.mark.asyncio
async def test_security_events_limit(async_client: AsyncClient):
    for _ in range(3):
        await async_client.post(
            "/auth/register", json={"display_name": "x", "wallet_address": "bad"}
        )

    response = await async_client.get("/security/events?limit=2")
    assert response.status_code == status.HTTP_200_OK
    assert len(response.json()) == 2
    assert response.json()[0]["type"] == "validation_error"
    assert response.json()[0]["user_id"] == OWNER["uid"]


@pytest.mark.asyncio
async def test_register_with_lone_surrogate_in_display_name(async_client: AsyncClient):
    # a JSON escape the decoder turns into an unpaired surrogate
    response = await async_client.post(
        "/auth/register",
        content='{"display_name": "Ape\\ud800"}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["display_name"] == "Ape"

    response = await async_client.get("/security/events?type=suspicious_input")
    assert [event["metadata"]["field"] for event in response.json()] == ["display_name"]


@pytest.mark.asyncio
async def test_listing_with_lone_surrogate_in_name(async_client: AsyncClient):
    await register(async_client, OWNER)
    payload = json.dumps(listing_payload(name="Ape\ud800"))

    response = await async_client.post(
        "/listings/", content=payload, headers={"Content-Type": "application/json"}
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["name"] == "Ape"


@pytest.mark.asyncio
async def test_security_events_only_show_own_events(async_client: AsyncClient):
    await register(async_client, OWNER)
    await register(async_client, RENTER)
    await register(async_client, STRANGER)
    listing = await create_listing(async_client)

    login_as(RENTER)
    response = await async_client.post(
        f"/listings/{listing['id']}/rent", json={"duration_days": 3}
    )
    rental = response.json()

    login_as(STRANGER)
    response = await async_client.post(f"/rentals/{rental['id']}/return")
    assert response.status_code == status.HTTP_403_FORBIDDEN

    login_as(RENTER)
    response = await async_client.get("/security/events?type=auth_failure")
    assert response.json() == []
    response = await async_client.get("/security/summary")
    assert response.json()["auth_failure"] == 0

    login_as(STRANGER)
    response = await async_client.get("/security/events?type=auth_failure")
    assert [event["metadata"] for event in response.json()] == [
        {"rental_id": rental["id"]}
    ]
    assert response.json()[0]["user_id"] == STRANGER["uid"]
