from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import relationship

from marketplace_onboarding.core.db import Base
from marketplace_onboarding.core.time import utcnow

# MySQL DATETIME drops microseconds by default; ordering relies on them.
PreciseDateTime = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


class Entitlement(Base):
    """
    One row of the append-only entitlement log.

    Several rows may share (customer_identifier, product_code, dimension);
    the one with the highest created_at is the current value.
    """

    __tablename__ = "entitlements"
    __table_args__ = (
        Index(
            "ix_entitlements_triple_created_at",
            "customer_identifier",
            "product_code",
            "dimension",
            "created_at",
        ),
    )

    entitlement_id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    customer_identifier = Column(
        String(255),
        ForeignKey("customers.customer_identifier", ondelete="RESTRICT"),
        nullable=False,
    )
    product_code = Column(
        String(255),
        ForeignKey("products.product_code", ondelete="RESTRICT"),
        nullable=False,
    )
    dimension = Column(String(255), nullable=False)
    expiration_date = Column(DateTime, nullable=False)
    value_id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("entitlement_values.value_id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    created_at = Column(PreciseDateTime, default=utcnow, nullable=False)
    updated_at = Column(PreciseDateTime, default=utcnow, nullable=False)

    customer = relationship("Customer", back_populates="entitlements", lazy="select")
    product = relationship("Product", back_populates="entitlements", lazy="selectin")
    value = relationship("EntitlementValueRecord", lazy="joined", innerjoin=True)

    @property
    def triple(self) -> tuple[str, str, str]:
        return (self.customer_identifier, self.product_code, self.dimension)
