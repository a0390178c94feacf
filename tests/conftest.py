"""
Test Configuration and Fixtures
Shared testing infrastructure for the GP dashboard
"""

import os

# Settings are read at import time; point both stores at memory before gpdash loads
os.environ["APP_DATABASE_URL"] = "sqlite://"
os.environ["ERP_DATABASE_URL"] = "sqlite://"
os.environ["RESERVATION_SWEEP_ENABLED"] = "false"
os.environ["LOG_TO_FILE"] = "false"

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Generator, Dict
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from gpdash.main import app
from gpdash.core.database import get_db, get_erp_db, Base, ErpBase
from gpdash.core.security import Requester, create_access_token
from gpdash.models.erp import (
    ItemMaster, ItemSiteQuantity, SerialMaster, ReceiptLayer,
    SopHeader, SopLine, SopSerial, TRACKING_SERIAL, RECORD_TYPE_SITE
)
from gpdash.models.reservation import SerialReservation, utcnow

# Application store (serial reservations)
app_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Dynamics GP company database
erp_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=app_engine)
TestingErpSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=erp_engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh application database session for each test"""
    Base.metadata.create_all(bind=app_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=app_engine)


@pytest.fixture(scope="function")
def erp_session() -> Generator[Session, None, None]:
    """Create a fresh GP database session for each test"""
    ErpBase.metadata.create_all(bind=erp_engine)

    session = TestingErpSessionLocal()
    try:
        yield session
    finally:
        session.close()
        ErpBase.metadata.drop_all(bind=erp_engine)


@pytest.fixture(scope="function")
def api_overrides(db_session: Session, erp_session: Session) -> Generator[None, None, None]:
    """Route the API's database dependencies to the test sessions"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    def override_get_erp_db():
        try:
            yield erp_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_erp_db] = override_get_erp_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(api_overrides) -> Generator[TestClient, None, None]:
    """Create a test client with database dependency overrides"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session_factories(db_session: Session, erp_session: Session):
    """Session factories bound to the test stores, for in-process gateways"""
    return TestingSessionLocal, TestingErpSessionLocal


@pytest.fixture
def alice() -> Requester:
    return Requester(id="alice@example.com", name="Alice Smith")


@pytest.fixture
def bob() -> Requester:
    return Requester(id="bob@example.com", name="Bob Jones")


@pytest.fixture
def alice_headers() -> Dict[str, str]:
    """Bearer token for a signed-in user"""
    token = create_access_token({"sub": "alice@example.com", "uid": 7, "name": "Alice Smith"})
    return {"Authorization": f"Bearer {token}"}


class ErpSeeder:
    """Writes GP rows the way GP stores them (space-padded char fields)"""

    def __init__(self, session: Session):
        self.session = session

    def item(self, item_number: str, tracking_option: int = TRACKING_SERIAL,
             description: str = "Test item") -> ItemMaster:
        item = ItemMaster(
            item_number=item_number.ljust(31),
            item_description=description,
            tracking_option=tracking_option
        )
        self.session.add(item)
        self.session.commit()
        return item

    def site_quantity(self, item_number: str, site_id: str, on_hand, allocated=0) -> ItemSiteQuantity:
        row = ItemSiteQuantity(
            item_number=item_number.ljust(31),
            location_code=site_id.ljust(11),
            record_type=RECORD_TYPE_SITE,
            qty_on_hand=Decimal(str(on_hand)),
            qty_allocated=Decimal(str(allocated))
        )
        self.session.add(row)
        self.session.commit()
        return row

    def serial(self, item_number: str, site_id: str, serial_number: str,
               received: datetime = None, sold: int = 0, receipt_sequence: int = 1,
               bin: str = "") -> SerialMaster:
        row = SerialMaster(
            item_number=item_number.ljust(31),
            location_code=site_id.ljust(11),
            serial_number=serial_number.ljust(21),
            sold=sold,
            date_received=received or datetime(2024, 1, 1),
            receipt_sequence=receipt_sequence,
            bin=bin
        )
        self.session.add(row)
        self.session.commit()
        return row

    def receipt_layer(self, item_number: str, site_id: str, receipt_sequence: int,
                      receipt_number: str, received: datetime, qty_received, qty_sold=0,
                      unit_cost=0) -> ReceiptLayer:
        row = ReceiptLayer(
            item_number=item_number.ljust(31),
            location_code=site_id.ljust(11),
            receipt_sequence=receipt_sequence,
            receipt_number=receipt_number.ljust(21),
            date_received=received,
            qty_received=Decimal(str(qty_received)),
            qty_sold=Decimal(str(qty_sold)),
            unit_cost=Decimal(str(unit_cost))
        )
        self.session.add(row)
        self.session.commit()
        return row

    def order(self, sop_number: str, sop_type: int = 2, customer_name: str = "Acme Ltd",
              document_date: datetime = None) -> SopHeader:
        header = SopHeader(
            sop_type=sop_type,
            sop_number=sop_number.ljust(21),
            customer_name=customer_name,
            document_date=document_date or datetime(2024, 3, 1)
        )
        self.session.add(header)
        self.session.commit()
        return header

    def order_line(self, sop_number: str, item_number: str, site_id: str, quantity,
                   allocated, sop_type: int = 2, line_sequence: int = 16384) -> SopLine:
        line = SopLine(
            sop_type=sop_type,
            sop_number=sop_number.ljust(21),
            line_sequence=line_sequence,
            item_number=item_number.ljust(31),
            location_code=site_id.ljust(11),
            quantity=Decimal(str(quantity)),
            qty_allocated=Decimal(str(allocated))
        )
        self.session.add(line)
        self.session.commit()
        return line

    def order_serial(self, sop_number: str, item_number: str, serial_number: str,
                     sop_type: int = 2, line_sequence: int = 16384,
                     serial_sequence: int = 1) -> SopSerial:
        row = SopSerial(
            sop_type=sop_type,
            sop_number=sop_number.ljust(21),
            line_sequence=line_sequence,
            serial_sequence=serial_sequence,
            item_number=item_number.ljust(31),
            serial_number=serial_number.ljust(21)
        )
        self.session.add(row)
        self.session.commit()
        return row


@pytest.fixture
def erp_seed(erp_session: Session) -> ErpSeeder:
    return ErpSeeder(erp_session)


@pytest.fixture
def add_reservation(db_session: Session):
    """Insert a reservation row directly, optionally already expired"""
    def _add(item_number: str, serial_number: str, requester: Requester,
             expires_in_minutes: int = 10) -> SerialReservation:
        now = utcnow()
        reservation = SerialReservation(
            item_number=item_number,
            serial_number=serial_number,
            reserved_by=requester.id,
            user_name=requester.name,
            expires_at=now + timedelta(minutes=expires_in_minutes),
            created_at=now
        )
        db_session.add(reservation)
        db_session.commit()
        return reservation
    return _add


@pytest.fixture
def itm100(erp_seed: ErpSeeder, add_reservation, bob: Requester):
    """
    ITM-100 at MAIN: SN1 reserved by Bob, SN2 free, SN3 on sales order SO999
    """
    erp_seed.item("ITM-100", TRACKING_SERIAL)
    erp_seed.site_quantity("ITM-100", "MAIN", on_hand=3, allocated=1)
    erp_seed.serial("ITM-100", "MAIN", "SN1", received=datetime(2024, 1, 1))
    erp_seed.serial("ITM-100", "MAIN", "SN2", received=datetime(2024, 1, 2))
    erp_seed.serial("ITM-100", "MAIN", "SN3", received=datetime(2024, 1, 3))
    erp_seed.order("SO999", customer_name="Other Customer")
    erp_seed.order_serial("SO999", "ITM-100", "SN3")
    add_reservation("ITM-100", "SN1", bob)
    return erp_seed


@pytest.fixture
def break_app_store():
    """Drop the application tables so every store call fails"""
    def _break():
        Base.metadata.drop_all(bind=app_engine)
    return _break
