from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from tinyquiz.core.config import settings
import logging

logger = logging.getLogger(__name__)

def engine_options(url: str) -> dict:
    options = {"echo": settings.DATABASE_ECHO, "future": True, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        options.update(pool_size=settings.DATABASE_POOL_SIZE, max_overflow=settings.DATABASE_MAX_OVERFLOW)
    return options

engine = create_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

class Base(DeclarativeBase):
    pass

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """Create tables that do not exist yet."""
    # Import models so they register on Base.metadata
    from tinyquiz.models import orm  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready")

def close_db():
    engine.dispose()
