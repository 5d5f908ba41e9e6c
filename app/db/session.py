from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from app.core.config import settings
import logging

logger = logging.getLogger("database")


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        # Used by the test-suite and local runs without postgres
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=False,
        connect_args={
            "options": "-c timezone=utc",
            "application_name": "rental_marketplace_api",
        },
    )


engine = build_engine(settings.DATABASE_URL)


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection, connection_record):
    logger.debug("DB connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()
