import logging
from datetime import datetime, timezone

from nftrent.db.database import async_session
from nftrent.services.rental.rental_service import find_overdue_rentals

logger = logging.getLogger(__name__)


async def report_overdue_rentals(session_factory=async_session) -> int:
    """
    Logs every active rental whose end date has passed.

    The NFT stays in escrow until the renter returns it, the report only
    surfaces rentals the owner may want to reclaim.
    """
    async with session_factory() as session:
        now = datetime.now(timezone.utc)
        overdue = await find_overdue_rentals(session, now)

        for rental in overdue:
            logger.warning(
                "rental %s of listing %s (mint %s) by %s is overdue since %s",
                rental.id,
                rental.listing_id,
                rental.listing.mint_address,
                rental.renter_id,
                rental.end_date.isoformat(),
            )

    if overdue:
        logger.info("%d overdue rental(s) found", len(overdue))
    return len(overdue)
