import os
from typing import Any

# Settings are read once at import time
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from planit.db import Base
from planit.models.contracts import SignerRole
from planit.schemas.contracts import ContractCreate
from planit.services import signature_workflow as workflow_service
from planit.services.contracts import contracts as contracts_service
from tests.factories import FakeSignatureStorage, add_assigned_field, make_identity


class _JoseDateTimeProxy:
    def utcnow(self):
        from datetime import datetime, timezone

        return datetime.now(timezone.utc)

    def now(self, tz: Any | None = None):
        from datetime import datetime

        return datetime.now(tz)

    def __getattr__(self, name: str) -> Any:
        from datetime import datetime

        return getattr(datetime, name)


@pytest.fixture(autouse=True)
def _patch_jose_datetime(monkeypatch):
    import jose.jwt as jose_jwt

    monkeypatch.setattr(jose_jwt, "datetime", _JoseDateTimeProxy(), raising=False)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def storage():
    return FakeSignatureStorage()


@pytest.fixture()
def vendor_identity():
    return make_identity()


@pytest.fixture()
def client_identity():
    return make_identity(signer_id="user-2", name="Cleo Client", email="client@example.com")


@pytest.fixture()
def contract_factory(db_session):
    def _create(is_electronic: bool = True, event_id: str = "event-1", **overrides):
        payload = ContractCreate(
            event_id=event_id,
            vendor_id=overrides.pop("vendor_id", "vendor-1"),
            file_name=overrides.pop("file_name", "catering.pdf"),
            contract_url=overrides.pop("contract_url", "https://files.test/catering.pdf"),
            client_name=overrides.pop("client_name", "Cleo Client"),
            client_email=overrides.pop("client_email", "client@example.com"),
            is_electronic=is_electronic,
        )
        return contracts_service.create(db_session, payload, actor="planner@example.com")

    return _create


@pytest.fixture()
def draft_contract(contract_factory):
    return contract_factory()


@pytest.fixture()
def sent_contract(db_session, draft_contract):
    """Electronic contract with one vendor and one client field, already sent."""
    add_assigned_field(db_session, draft_contract, SignerRole.vendor, "vendor@example.com")
    add_assigned_field(db_session, draft_contract, SignerRole.client, "client@example.com")
    workflow_service.save(db_session, draft_contract)
    workflow_service.send(db_session, draft_contract, dispatched=True)
    return draft_contract


@pytest.fixture()
def file_session_factory(tmp_path):
    """Sessions on a file-backed database so each one gets its own connection."""
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'contracts.db'}")

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    try:
        yield SessionLocal
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()
