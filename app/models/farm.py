"""
Farm and User models
Users own at most one farm; farms group the devices installed on site
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.database import Base


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    FARMER = "farmer"
    VIEWER = "viewer"


class FarmStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class User(Base):
    """
    User model for farm owners, operators and administrators
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Authentication
    user_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)

    # Personal information
    phone = Column(String(30), nullable=True)

    # Status and permissions
    role = Column(Enum(UserRole), nullable=False, default=UserRole.FARMER)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    farm = relationship("Farm", back_populates="owner", uselist=False, cascade="all, delete-orphan")
    devices = relationship("Device", back_populates="owner")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"


class Farm(Base):
    """
    Farm model
    A physical site holding one or more sensor devices
    """
    __tablename__ = "farms"

    id = Column(Integer, primary_key=True, index=True)
    farm_name = Column(String(150), nullable=False, index=True)

    # A user owns zero or one farm
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, unique=True, index=True)

    # Location
    location_name = Column(String(200), nullable=True)
    address = Column(String(300), nullable=True)
    city = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True, default="Thailand")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    status = Column(Enum(FarmStatus), nullable=False, default=FarmStatus.ACTIVE, index=True)
    description = Column(Text, nullable=True)
    area = Column(Float, nullable=True, default=0, comment="Area in square meters")
    tank_count = Column(Integer, nullable=True, default=0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    owner = relationship("User", back_populates="farm")
    devices = relationship("Device", back_populates="farm")

    def __repr__(self):
        return f"<Farm(id={self.id}, name='{self.farm_name}')>"
