from sqlalchemy import (
    BigInteger,
    Date,
    Index,
    SmallInteger,
    String,
)
from sqlalchemy.orm import mapped_column
from .base import Base


class Subscriber(Base):
    """Paid website account, optionally linked to a Telegram user.

    The website owns this table; only its existing columns are mapped.
    """
    __tablename__ = "payments"

    username = mapped_column(String(255), primary_key=True)
    telegram_id = mapped_column(BigInteger, nullable=True, index=True)
    payment_plan = mapped_column("paymentPlan", String(64), nullable=False)
    expiration_date = mapped_column("ExpDate", Date, nullable=False)
    removed_from_groups = mapped_column(SmallInteger, nullable=False, default=0, server_default="0")

    __table_args__ = (
        Index("idx_payments_expiry", "ExpDate", "removed_from_groups"),
    )


class SubscriberLanguage(Base):
    """Group language chosen during onboarding, keyed by website username."""
    __tablename__ = "subscriber_languages"

    username = mapped_column(String(255), primary_key=True)
    language = mapped_column(String(16), nullable=False)


class TelegramGroup(Base):
    """Static reference data: one private group per (package, language)."""
    __tablename__ = "telegram_groups"

    group_id = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    group_name = mapped_column(String(255), nullable=False)
    invite_link = mapped_column(String(255), nullable=False)
    package = mapped_column(String(64), nullable=False)
    language = mapped_column(String(16), nullable=False)

    __table_args__ = (
        Index("idx_groups_package_language", "package", "language"),
    )
