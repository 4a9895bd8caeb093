from .escrow_authority import (
    EscrowAuthority,
    EscrowOutcome,
    EscrowResult,
    SimulatedEscrowAuthority,
    call_escrow,
    ensure_escrow_success,
)

__all__ = [
    "EscrowAuthority",
    "EscrowOutcome",
    "EscrowResult",
    "SimulatedEscrowAuthority",
    "call_escrow",
    "ensure_escrow_success",
]
