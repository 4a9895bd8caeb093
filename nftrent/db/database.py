import logging
import ssl

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from nftrent.core import config

logger = logging.getLogger(__name__)


def build_db_url() -> URL:
    if config.config.database_url:
        return make_url(config.config.database_url)

    # this constructs a connection string to our database
    return URL.create(
        drivername="postgresql+asyncpg",
        username=config.config.db_user,
        password=config.config.db_password,
        host=config.config.db_host,
        port=config.config.db_port,
        database=config.config.db_name,
    )


db_url = build_db_url()

# upgrade connection to use SSL
connect_args = {}
if config.config.render_env == config.Environment.PRODUCTION:
    connect_args["ssl"] = ssl.create_default_context()

engine = create_async_engine(
    db_url,
    echo=False,
    future=True,
    connect_args=connect_args,
)

logger.info("database engine created for %s", db_url.render_as_string())

# factory for creating asynchronous sessions (AsyncSession)
async_session = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    # objects remain available after committing a transaction
    expire_on_commit=False,
)


async def init_db():
    # import models so their tables are registered on the metadata
    from nftrent import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
