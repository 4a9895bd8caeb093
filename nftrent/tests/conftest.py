import os

os.environ["TESTING"] = "1"

import pytest
import pytest_asyncio
from faker import Faker
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from nftrent.api.dependencies import (
    get_async_session,
    get_escrow_authority,
    get_user,
)
from nftrent.api.main import app
from nftrent.core.config import Settings
from nftrent.models.profile_model import Profile
from nftrent.security.context import SecurityContext
from nftrent.services.escrow import EscrowAuthority, EscrowOutcome, EscrowResult

fake = Faker()

DATABASE_URL = "sqlite+aiosqlite:///:memory:"
engine = create_async_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    # ensure that we are connecting to the same
    # in memory database
    poolclass=StaticPool,
)
TestSessionLocal = async_sessionmaker(engine, expire_on_commit=False)

OWNER = {"uid": "owner-uid", "email": "owner@example.com"}
RENTER = {"uid": "renter-uid", "email": "renter@example.com"}
STRANGER = {"uid": "stranger-uid", "email": "stranger@example.com"}

MINT_ADDRESS = "Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS"
OTHER_MINT_ADDRESS = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

LAMPORTS_PER_SOL = 1_000_000_000
DAY = 86400


class FakeEscrowAuthority(EscrowAuthority):
    """Escrow answering every call with a fixed outcome, recording the calls."""

    def __init__(self, outcome: EscrowOutcome = EscrowOutcome.SUCCESS) -> None:
        self.outcome = outcome
        self.calls: list[tuple[str, dict]] = []

    def _respond(self, operation: str, arguments: dict) -> EscrowResult:
        self.calls.append((operation, arguments))
        if self.outcome == EscrowOutcome.FAILURE:
            return EscrowResult(
                outcome=EscrowOutcome.FAILURE,
                error="program rejected the instruction",
            )
        return EscrowResult(outcome=self.outcome, signature=f"{operation}-signature")

    async def list_nft(self, **kwargs):
        return self._respond("list", kwargs)

    async def rent_nft(self, **kwargs):
        return self._respond("rent", kwargs)

    async def return_nft(self, **kwargs):
        return self._respond("return", kwargs)


def listing_payload(**overrides) -> dict:
    payload = {
        "mint_address": MINT_ADDRESS,
        "name": "Degen Ape #1234",
        "description": "Rare ape with laser eyes",
        "image_url": "https://arweave.net/ape-1234.png",
        "daily_rent_lamports": LAMPORTS_PER_SOL // 10,
        "collateral_lamports": 2 * LAMPORTS_PER_SOL,
        "min_duration_secs": DAY,
        "max_duration_secs": 30 * DAY,
    }
    payload.update(overrides)
    return payload


# identity returned by the overridden get_user, tests switch it per request
current_identity: dict = dict(OWNER)


async def override_get_async_session() -> AsyncSession:
    async with TestSessionLocal() as session:
        yield session


async def override_get_user():
    return dict(current_identity)


api_escrow = FakeEscrowAuthority()


async def override_get_escrow_authority():
    return api_escrow


app.dependency_overrides[get_async_session] = override_get_async_session
app.dependency_overrides[get_user] = override_get_user
app.dependency_overrides[get_escrow_authority] = override_get_escrow_authority


@pytest_asyncio.fixture(autouse=True)
async def prepare_database():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


@pytest_asyncio.fixture()
async def session() -> AsyncSession:
    async with TestSessionLocal() as session:
        yield session


@pytest_asyncio.fixture()
async def profiles(session: AsyncSession) -> dict[str, Profile]:
    created = {}
    for identity in (OWNER, RENTER, STRANGER):
        profile = Profile(
            id=identity["uid"],
            email=identity["email"],
            display_name=fake.name(),
        )
        session.add(profile)
        created[identity["uid"]] = profile
    await session.commit()
    return created


@pytest.fixture()
def security_context() -> SecurityContext:
    return SecurityContext()


@pytest.fixture()
def escrow() -> FakeEscrowAuthority:
    return FakeEscrowAuthority()


@pytest.fixture()
def settings() -> Settings:
    return Settings(allow_simulated_escrow=True)


@pytest_asyncio.fixture()
async def async_client() -> AsyncClient:
    headers = {"Authorization": "Bearer fake"}

    current_identity.clear()
    current_identity.update(OWNER)
    app.state.security.reset()
    api_escrow.outcome = EscrowOutcome.SUCCESS
    api_escrow.calls.clear()

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test", headers=headers
    ) as client:
        yield client


def login_as(identity: dict) -> None:
    current_identity.clear()
    current_identity.update(identity)


def break_commits(monkeypatch, session: AsyncSession) -> None:
    """Makes every commit on ``session`` fail as if the database went away."""

    async def failing_commit():
        raise OperationalError("COMMIT", None, Exception("connection lost"))

    monkeypatch.setattr(session, "commit", failing_commit)
