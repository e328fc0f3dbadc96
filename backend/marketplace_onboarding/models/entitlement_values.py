from sqlalchemy import BigInteger, Boolean, CheckConstraint, Column, Enum, Float, Integer, String

from marketplace_onboarding.core.db import Base
from marketplace_onboarding.models.enums import ValueType


class EntitlementValueRecord(Base):
    """Immutable typed value row. Exactly one of the four columns is set."""

    __tablename__ = "entitlement_values"
    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN boolean_value IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN double_value IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN integer_value IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN string_value IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_entitlement_values_one_variant",
        ),
    )

    value_id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    boolean_value = Column(Boolean, nullable=True)
    double_value = Column(Float(precision=53), nullable=True)
    integer_value = Column(BigInteger, nullable=True)
    string_value = Column(String(255), nullable=True)
    value_type = Column(
        Enum(
            ValueType,
            name="entitlement_value_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
