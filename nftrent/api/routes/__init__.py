from .auth_route import router as auth_router
from .listings_route import router as listings_router
from .profile_route import router as profile_router
from .rentals_route import router as rentals_router
from .security_route import router as security_router

__all__ = [
    "auth_router",
    "listings_router",
    "profile_router",
    "rentals_router",
    "security_router",
]
