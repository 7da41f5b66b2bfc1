# app/shared/database/models.py
from enum import Enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Numeric, ForeignKey,
    UniqueConstraint, Index, JSON, func
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import declarative_base, relationship, validates

from app.core.exceptions import InvalidStateError

Base = declarative_base()

# =====================================================
# ENUMS
# =====================================================
class UserRole(str, Enum):
    ADMIN = "Admin"
    MERCHANT = "Merchant"
    TRUCK_OWNER = "TruckOwner"
    DRIVER = "Driver"


class ShipmentStatus(str, Enum):
    REQUESTED = "REQUESTED"
    CONFIRMED = "CONFIRMED"
    ASSIGNED = "ASSIGNED"
    LOADING = "LOADING"
    IN_TRANSIT = "IN_TRANSIT"
    AT_BORDER = "AT_BORDER"
    UNLOADING = "UNLOADING"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DELAYED = "DELAYED"


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


TERMINAL_SHIPMENT_STATUSES = {ShipmentStatus.COMPLETED, ShipmentStatus.CANCELLED}
TERMINAL_APPLICATION_STATUSES = {
    ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED, ApplicationStatus.CANCELLED
}


def _enum_type(enum_cls, name: str):
    """Store enum values as VARCHAR so SQLite and PostgreSQL share the schema"""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )

# =====================================================
# TIMESTAMP MIXIN
# =====================================================
class TimestampMixin:
    """Adds created_at / updated_at maintained by the database"""
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())


# =====================================================
# IDENTITY AND FLEET (reference data)
# =====================================================

class User(Base, TimestampMixin):
    """Platform user: admin, merchant, truck owner or driver"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(50))
    role = Column(_enum_type(UserRole, "user_role"), nullable=False)

    # Drivers may belong to a truck owner's fleet
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    company_name = Column(String(255))
    license_number = Column(String(100))

    is_available = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)

    trucks = relationship("Truck", back_populates="owner")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class Truck(Base, TimestampMixin):
    """Truck registered by a truck owner"""
    __tablename__ = "trucks"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plate_number = Column(String(50), unique=True, nullable=False)
    model = Column(String(100))
    capacity = Column(Numeric(10, 2))
    year = Column(Integer)
    available = Column(Boolean, nullable=False, default=True)
    active = Column(Boolean, nullable=False, default=True)

    owner = relationship("User", back_populates="trucks")


# =====================================================
# SHIPMENTS
# =====================================================

class Shipment(Base, TimestampMixin):
    """
    Merchant request to move cargo.

    `status` is a cached copy of the last timeline entry; change it only
    through record_status() so the two never drift apart.
    """
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    merchant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Route
    origin_address = Column(String(500), nullable=False)
    origin_lat = Column(Numeric(9, 6))
    origin_lng = Column(Numeric(9, 6))
    origin_country = Column(String(2))
    destination_address = Column(String(500), nullable=False)
    destination_lat = Column(Numeric(9, 6))
    destination_lng = Column(Numeric(9, 6))
    destination_country = Column(String(2))

    # Cargo
    cargo_description = Column(Text, nullable=False)
    cargo_weight = Column(Numeric(12, 2), nullable=False)
    cargo_volume = Column(Numeric(12, 2))
    cargo_category = Column(String(100))
    cargo_hazardous = Column(Boolean, nullable=False, default=False)

    status = Column(_enum_type(ShipmentStatus, "shipment_status"), nullable=False,
                    default=ShipmentStatus.REQUESTED, index=True)

    # Assignment (set together by acceptance or admin force-assign)
    selected_application_id = Column(Integer, nullable=True, index=True)
    assigned_truck_id = Column(Integer, ForeignKey("trucks.id"), nullable=True)
    assigned_driver_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # Last known position
    current_lat = Column(Numeric(9, 6))
    current_lng = Column(Numeric(9, 6))
    current_address = Column(String(500))
    current_location_at = Column(DateTime)

    # Payment snapshot (read-only signal)
    payment_amount = Column(Numeric(12, 2))
    payment_currency = Column(String(3), default="USD")
    payment_verified = Column(Boolean, nullable=False, default=False)
    payment_date = Column(DateTime)

    estimated_pickup_date = Column(DateTime)
    estimated_delivery_date = Column(DateTime)
    actual_pickup_date = Column(DateTime)
    actual_delivery_date = Column(DateTime)

    active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    merchant = relationship("User", foreign_keys=[merchant_id])
    assigned_driver = relationship("User", foreign_keys=[assigned_driver_id])
    assigned_truck = relationship("Truck", foreign_keys=[assigned_truck_id])
    timeline = relationship(
        "ShipmentTimelineEntry",
        back_populates="shipment",
        order_by="ShipmentTimelineEntry.id",
        cascade="all, delete-orphan",
    )
    applications = relationship("Application", back_populates="shipment")

    @validates("selected_application_id")
    def _freeze_selected_application(self, key, value):
        current = self.selected_application_id
        if current is not None and value != current:
            raise InvalidStateError(
                f"Shipment {self.id} already selected application {current}"
            )
        return value

    def record_status(self, status, note: str = None, location: dict = None,
                      documents: list = None, recorded_by: int = None):
        """Append one timeline entry and move status with it"""
        now = datetime.now()
        status = ShipmentStatus(status)

        entry = ShipmentTimelineEntry(
            status=status,
            note=note,
            location=location,
            documents=documents,
            recorded_by=recorded_by,
            recorded_at=now,
        )
        self.timeline.append(entry)
        self.status = status

        if status == ShipmentStatus.IN_TRANSIT and self.actual_pickup_date is None:
            self.actual_pickup_date = now
        if status == ShipmentStatus.DELIVERED and self.actual_delivery_date is None:
            self.actual_delivery_date = now

        if location and location.get("lat") is not None and location.get("lng") is not None:
            self.set_current_location(location, now)

        return entry

    def set_current_location(self, location: dict, at: datetime = None):
        self.current_lat = location.get("lat")
        self.current_lng = location.get("lng")
        self.current_address = location.get("address")
        self.current_location_at = at or datetime.now()

    @property
    def current_location(self):
        if self.current_lat is None or self.current_lng is None:
            return None
        return {
            "lat": float(self.current_lat),
            "lng": float(self.current_lng),
            "address": self.current_address,
            "timestamp": self.current_location_at,
        }

    def __repr__(self):
        return f"<Shipment(id={self.id}, status='{self.status}')>"


class ShipmentTimelineEntry(Base):
    """Append-only audit entry for a shipment status change"""
    __tablename__ = "shipment_timeline"

    id = Column(Integer, primary_key=True, index=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id"), nullable=False, index=True)
    status = Column(_enum_type(ShipmentStatus, "shipment_status"), nullable=False)
    note = Column(Text)
    location = Column(JSON)
    documents = Column(JSON)
    recorded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    recorded_at = Column(DateTime, nullable=False, default=datetime.now)

    shipment = relationship("Shipment", back_populates="timeline")


# =====================================================
# APPLICATIONS (BIDS)
# =====================================================

class Application(Base, TimestampMixin):
    """A truck owner's bid for one shipment"""
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id"), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    truck_id = Column(Integer, ForeignKey("trucks.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    status = Column(_enum_type(ApplicationStatus, "application_status"), nullable=False,
                    default=ApplicationStatus.PENDING)

    bid_price = Column(Numeric(12, 2), nullable=False)
    bid_currency = Column(String(3), nullable=False, default="USD")
    bid_notes = Column(Text)
    bid_valid_until = Column(DateTime)

    rejection_reason = Column(String(500))
    needs_reconciliation = Column(Boolean, nullable=False, default=False, index=True)
    active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('shipment_id', 'owner_id', name='uq_application_shipment_owner'),
        Index('ix_applications_shipment_status', 'shipment_id', 'status'),
    )
    __mapper_args__ = {"version_id_col": version}

    shipment = relationship("Shipment", back_populates="applications")
    owner = relationship("User", foreign_keys=[owner_id])
    driver = relationship("User", foreign_keys=[driver_id])
    truck = relationship("Truck", foreign_keys=[truck_id])
    status_history = relationship(
        "ApplicationStatusHistory",
        back_populates="application",
        order_by="ApplicationStatusHistory.id",
        cascade="all, delete-orphan",
    )

    def record_status(self, status, note: str = None, changed_by: int = None):
        entry = ApplicationStatusHistory(
            status=ApplicationStatus(status),
            note=note,
            changed_by=changed_by,
            timestamp=datetime.now(),
        )
        self.status_history.append(entry)
        self.status = ApplicationStatus(status)
        return entry

    def __repr__(self):
        return f"<Application(id={self.id}, shipment_id={self.shipment_id}, status='{self.status}')>"


class ApplicationStatusHistory(Base):
    """Append-only audit entry for an application status change"""
    __tablename__ = "application_status_history"

    id = Column(Integer, primary_key=True, index=True)
    application_id = Column(Integer, ForeignKey("applications.id"), nullable=False, index=True)
    status = Column(_enum_type(ApplicationStatus, "application_status"), nullable=False)
    note = Column(Text)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.now)

    application = relationship("Application", back_populates="status_history")
