from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from planit.config import settings


class Base(DeclarativeBase):
    pass


def get_engine():
    if settings.database_url.startswith("sqlite"):
        return create_engine(settings.database_url, pool_pre_ping=True)
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def get_db():
    """Centralized database session dependency for FastAPI.

    Yields a database session and ensures it is closed after the request.

    Example:
        @router.get("/contracts/{contract_id}")
        def get_contract(contract_id: str, db: Session = Depends(get_db)):
            return contracts_service.contracts.get(db, contract_id)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
