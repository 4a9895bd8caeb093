import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nftrent.services.exceptions import RecordStoreFailure

logger = logging.getLogger(__name__)


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Runs the body as one unit of work: commit on success, rollback otherwise.

    Database errors are rolled back and surfaced as ``RecordStoreFailure``
    carrying the driver message; nothing is retried.
    """
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("record store rejected the transition: %s", exc)
        raise RecordStoreFailure(str(exc)) from exc
    except Exception:
        await session.rollback()
        raise
