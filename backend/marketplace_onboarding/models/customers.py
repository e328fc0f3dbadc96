from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from marketplace_onboarding.core.db import Base
from marketplace_onboarding.models.mixins import TimestampMixin


PROFILE_FIELDS = ("name", "email", "phone", "job_role", "company", "country")


class Customer(TimestampMixin, Base):
    __tablename__ = "customers"

    customer_identifier = Column(String(255), primary_key=True)
    aws_account_id = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    job_role = Column(String(100), nullable=True)
    company = Column(String(255), nullable=True)
    country = Column(String(100), nullable=True)

    entitlements = relationship(
        "Entitlement",
        back_populates="customer",
        lazy="select",
    )

    @property
    def is_fully_registered(self) -> bool:
        return all((getattr(self, field) or "").strip() for field in PROFILE_FIELDS)
