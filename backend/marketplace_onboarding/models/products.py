from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from marketplace_onboarding.core.db import Base


class Product(Base):
    __tablename__ = "products"

    product_code = Column(String(255), primary_key=True)
    product_name = Column(String(255), nullable=True)

    entitlements = relationship(
        "Entitlement",
        back_populates="product",
        lazy="select",
    )
