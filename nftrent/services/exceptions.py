# exceptions.py


class MarketplaceError(Exception):
    """Base class for errors raised by the listing and rental services."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    """Raised when a user supplied field fails validation."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"Invalid {field}: {reason}")
        self.field = field
        self.reason = reason


class RateLimited(MarketplaceError):
    """Raised when a caller exceeded the attempts allowed for an operation."""

    def __init__(self, resource: str, max_attempts: int) -> None:
        super().__init__(
            f"Too many {resource} attempts. Please wait before trying again."
        )
        self.resource = resource
        self.max_attempts = max_attempts


# state conflicts, recoverable by re-fetching the current state
class StateConflict(MarketplaceError):
    pass


class AlreadyRented(StateConflict):
    """Raised when the listing is already bound to an active rental."""

    pass


class ListingNotActive(StateConflict):
    """Raised when the owner deactivated the listing."""

    pass


class NotRented(StateConflict):
    """Raised when the rental is not active anymore."""

    pass


class CannotToggleWhileRented(StateConflict):
    """Raised when the owner toggles a listing that has an active rental."""

    pass


class ProfileAlreadyExists(StateConflict):
    pass


class NotAuthorized(MarketplaceError):
    pass


class NotListingOwner(NotAuthorized):
    pass


class UnauthorizedRenter(NotAuthorized):
    pass


class CannotRentOwnListing(NotAuthorized):
    pass


class NotFound(MarketplaceError):
    pass


class ListingNotFound(NotFound):
    pass


class RentalNotFound(NotFound):
    pass


class ProfileNotFound(NotFound):
    pass


# failures of collaborators outside this service, never retried here
class ExternalFailure(MarketplaceError):
    pass


class EscrowCallFailed(ExternalFailure):
    """Raised when the escrow authority reported a failed (or refused) call."""

    def __init__(self, operation: str, reason: str | None = None) -> None:
        super().__init__(
            f"Escrow {operation} call failed: {reason or 'unknown error'}"
        )
        self.operation = operation
        self.reason = reason


class RecordStoreFailure(ExternalFailure):
    """Raised when the database rejected a write."""

    pass
