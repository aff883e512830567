"""
Dedup ledger for customer notifications.

Records the outcome of each notification attempt as a tag on
(order_id, account_code). The reconciler consults it before doing any work so
a redelivered webhook never produces a second message.

Design decisions:
- SQLAlchemy 2.0 declarative models with a unique constraint on the triple
- Append-only: there is no update or delete path
- Persistence errors are logged and reported as False, never raised
- Check-then-insert is not atomic; the unique constraint is the only guard
  against concurrent duplicate deliveries
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import DateTime, Integer, String, UniqueConstraint, create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger("ledger")


# Tag keys used in sent_<key> / failed_<key>
IN_TRANSIT_KEY = "inTransit"
OUT_FOR_DELIVERY_KEY = "outForDelivery"
DELIVERED_KEY = "delivered"
ABANDONED_CART_KEY = "abandonedCart"


def sent_tag(key: Optional[str]) -> str:
    """Tag recorded after a successful send. Order-created uses the bare tag."""
    return f"sent_{key}" if key else "sent"


def failed_tag(key: Optional[str]) -> str:
    return f"failed_{key}" if key else "failed"


def terminal_tags(key: Optional[str]) -> list[str]:
    """Both outcomes count as handled."""
    return [sent_tag(key), failed_tag(key)]


class Base(DeclarativeBase):
    pass


class LedgerEntry(Base):
    """One recorded notification outcome."""

    __tablename__ = "customer_message_tracking"
    __table_args__ = (
        UniqueConstraint("order_id", "account_code", "message_status", name="uq_order_account_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    account_code: Mapped[str] = mapped_column(String(50), nullable=False)
    message_status: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.order_id}/{self.account_code}: {self.message_status}>"


class MessageLedger:
    """
    Durable record of notification outcomes.

    Usage:
        ledger = MessageLedger("sqlite:///notifier.db")
        if not ledger.has_any_status("1001", "ACME", terminal_tags("inTransit")):
            ...
            ledger.add_status("1001", "ACME", "sent_inTransit")
    """

    def __init__(self, database_url: str = "sqlite:///notifier.db"):
        """
        Create the engine and make sure the table exists.

        Args:
            database_url: SQLAlchemy URL. "sqlite://" gives a private in-memory
                database, which is what the tests use.
        """
        engine_kwargs = {}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection so every session sees the same memory db
                engine_kwargs["poolclass"] = StaticPool

        self.database_url = database_url
        self.engine = create_engine(database_url, **engine_kwargs)
        Base.metadata.create_all(self.engine)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.debug(f"Ledger ready at {database_url}")

    def _session(self) -> Session:
        return self._sessions()

    # =========================================================================
    # Queries
    # =========================================================================

    def has_any_status(self, order_id: str, account_code: str, tags: Iterable[str]) -> bool:
        """True if any of the given tags is recorded for (order_id, account_code)."""
        tags = list(tags)
        if not tags:
            return False
        stmt = (
            select(LedgerEntry.id)
            .where(
                LedgerEntry.order_id == order_id,
                LedgerEntry.account_code == account_code,
                LedgerEntry.message_status.in_(tags),
            )
            .limit(1)
        )
        try:
            with self._session() as session:
                return session.execute(stmt).first() is not None
        except SQLAlchemyError as e:
            logger.error(f"Ledger lookup failed for order {order_id} ({account_code}): {e}")
            return False

    def has_status(self, order_id: str, account_code: str, tag: str) -> bool:
        return self.has_any_status(order_id, account_code, [tag])

    def entries_for(self, order_id: str, account_code: str) -> list[str]:
        """All tags recorded for an order, oldest first."""
        stmt = (
            select(LedgerEntry.message_status)
            .where(LedgerEntry.order_id == order_id, LedgerEntry.account_code == account_code)
            .order_by(LedgerEntry.id)
        )
        try:
            with self._session() as session:
                return list(session.execute(stmt).scalars())
        except SQLAlchemyError as e:
            logger.error(f"Ledger listing failed for order {order_id} ({account_code}): {e}")
            return []

    # =========================================================================
    # Writes
    # =========================================================================

    def add_status(self, order_id: str, account_code: str, tag: str) -> bool:
        """
        Record a tag if absent.

        Returns True when the row was inserted and when it already existed.
        Returns False only on a persistence error.
        """
        if self.has_status(order_id, account_code, tag):
            logger.debug(f"Ledger already has {tag} for order {order_id} ({account_code})")
            return True

        try:
            with self._session() as session:
                session.add(LedgerEntry(order_id=order_id, account_code=account_code, message_status=tag))
                session.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same triple
            logger.info(f"Ledger row {tag} for order {order_id} ({account_code}) inserted concurrently")
            return True
        except SQLAlchemyError as e:
            logger.error(f"Ledger write of {tag} failed for order {order_id} ({account_code}): {e}")
            return False

        logger.info(f"Ledger recorded {tag} for order {order_id} ({account_code})")
        return True

    def dispose(self):
        """Release pooled connections."""
        self.engine.dispose()
