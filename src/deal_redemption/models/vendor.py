# src/deal_redemption/models/vendor.py
"""SQLAlchemy models for merchants offering deals."""

from sqlalchemy import Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from deal_redemption.db.session import Base


class Vendor(Base):
    """Merchant storefront; its coordinates locate the vendor's deals."""

    __tablename__ = "vendor"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Account that operates the storefront and may view its rotating PINs.
    owner_customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customer.id"),
        nullable=False,
    )
    business_name: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
