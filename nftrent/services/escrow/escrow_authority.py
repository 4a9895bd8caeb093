import hashlib
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable

from pydantic import BaseModel

from nftrent.services.exceptions import EscrowCallFailed

logger = logging.getLogger(__name__)


class EscrowOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    # the call was only simulated, no funds or tokens moved
    SIMULATED = "simulated"


class EscrowResult(BaseModel):
    outcome: EscrowOutcome
    signature: str | None = None
    error: str | None = None


class EscrowAuthority(ABC):
    """
    Program holding the NFT and the renter's collateral in trust.

    One call per lifecycle transition. Implementations report failures through
    the returned ``EscrowResult`` and do not raise for expected failures.
    """

    @abstractmethod
    async def list_nft(
        self,
        *,
        owner_id: str,
        mint_address: str,
        daily_rent_lamports: int,
        collateral_lamports: int,
        min_duration_days: int,
        max_duration_days: int,
    ) -> EscrowResult: ...

    @abstractmethod
    async def rent_nft(
        self,
        *,
        renter_id: str,
        mint_address: str,
        duration_days: int,
    ) -> EscrowResult: ...

    @abstractmethod
    async def return_nft(
        self,
        *,
        renter_id: str,
        mint_address: str,
        collateral_lamports: int,
    ) -> EscrowResult: ...


class SimulatedEscrowAuthority(EscrowAuthority):
    """Escrow used while the rental program is not deployed."""

    def _simulate(self, operation: str, *parts) -> EscrowResult:
        digest = hashlib.sha256(
            ":".join([operation, *map(str, parts)]).encode()
        ).hexdigest()
        return EscrowResult(
            outcome=EscrowOutcome.SIMULATED, signature=f"sim-{digest[:32]}"
        )

    async def list_nft(
        self,
        *,
        owner_id,
        mint_address,
        daily_rent_lamports,
        collateral_lamports,
        min_duration_days,
        max_duration_days,
    ):
        return self._simulate(
            "list",
            owner_id,
            mint_address,
            daily_rent_lamports,
            collateral_lamports,
            min_duration_days,
            max_duration_days,
        )

    async def rent_nft(self, *, renter_id, mint_address, duration_days):
        return self._simulate("rent", renter_id, mint_address, duration_days)

    async def return_nft(self, *, renter_id, mint_address, collateral_lamports):
        return self._simulate("return", renter_id, mint_address, collateral_lamports)


def ensure_escrow_success(
    operation: str, result: EscrowResult, allow_simulated: bool
) -> EscrowResult:
    """
    Turns an escrow result into a go/no-go for the lifecycle transition.

    A failure always blocks. A simulated call is accepted only when
    ``allow_simulated`` is set, and then logged since nothing moved on chain.
    """
    if result.outcome == EscrowOutcome.SUCCESS:
        return result

    if result.outcome == EscrowOutcome.SIMULATED:
        if allow_simulated:
            logger.warning(
                "escrow %s call was simulated, no collateral or token moved (signature=%s)",
                operation,
                result.signature,
            )
            return result
        raise EscrowCallFailed(operation, "simulated escrow calls are not accepted")

    raise EscrowCallFailed(operation, result.error)


async def call_escrow(
    operation: str, call: Awaitable[EscrowResult], allow_simulated: bool
) -> EscrowResult:
    """Awaits an escrow call; errors raised by the client count as failures."""
    try:
        result = await call
    except EscrowCallFailed:
        raise
    except Exception as exc:
        logger.exception("escrow %s call raised", operation)
        raise EscrowCallFailed(operation, str(exc)) from exc

    return ensure_escrow_success(operation, result, allow_simulated)
