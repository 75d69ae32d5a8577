from loguru import logger
from tortoise import Tortoise

from searchcrawler.storage.models import MODEL_MODULES
from searchcrawler.utils.db_utils import resolve_database_url


async def init_db(database_url: str | None = None) -> None:
    """
    Connect Tortoise ORM and create the crawler tables if they are missing.
    """
    db_url = resolve_database_url(database_url)

    logger.info("Initializing database and ORM models...")

    await Tortoise.init(
        db_url=db_url,
        modules={"models": MODEL_MODULES},
    )

    await Tortoise.generate_schemas(safe=True)
    logger.info("Crawler tables created or verified.")


async def close_db() -> None:
    await Tortoise.close_connections()
