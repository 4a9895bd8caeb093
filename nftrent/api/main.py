from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Depends, FastAPI

from nftrent.api.dependencies import security
from nftrent.api.errors import register_exception_handlers
from nftrent.api.middleware import authenticate_request, init_firebase
from nftrent.api.routes import (
    auth_router,
    listings_router,
    profile_router,
    rentals_router,
    security_router,
)
from nftrent.core.config import config
from nftrent.core.logging import configure_logging
from nftrent.schedulers.overdue_rentals import report_overdue_rentals
from nftrent.security.context import SecurityContext
from nftrent.services.escrow import SimulatedEscrowAuthority


async def lifespan(app: FastAPI):
    # Perform startup tasks
    configure_logging(config.log_level)
    init_firebase()
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        report_overdue_rentals, "interval", minutes=config.overdue_sweep_minutes
    )

    scheduler.start()
    app.state.scheduler = scheduler  # Store the scheduler in app state for access

    yield

    # Cleanup
    scheduler.shutdown()


app = FastAPI(
    title=config.app_name, dependencies=[Depends(security)], lifespan=lifespan
)

# shared by every request of this app instance
app.state.security = SecurityContext()
app.state.escrow = SimulatedEscrowAuthority()

register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(listings_router)
app.include_router(rentals_router)
app.include_router(security_router)
app.middleware("http")(authenticate_request)
