from sqlalchemy import Column, Integer, String, DateTime, Boolean, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from ..core.database import Base
from ..core.security import UserRole

class User(Base):
    """Principal known to the system, provisioned from identity provider claims."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), nullable=True)
    full_name = Column(String(200), nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.PATIENT)
    is_active = Column(Boolean, default=True)
    last_seen = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    doctor = relationship("Doctor", back_populates="user", uselist=False)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or f"User {self.id}"

    def __repr__(self):
        return f"<User(id={self.id}, external_id='{self.external_id}', role='{self.role}')>"
