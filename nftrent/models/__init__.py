from .listing_model import NFTListing
from .profile_model import Profile
from .rental_model import Rental

__all__ = ["NFTListing", "Profile", "Rental"]
