from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class Subscription(SQLModel, table=True):
    """subscriber -> channel edge; both ends are users."""
    __tablename__ = "subscription"
    __table_args__ = (
        UniqueConstraint("subscriber_id", "channel_id", name="uq_subscription_subscriber_channel"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    subscriber_id: UUID = Field(index=True, foreign_key="user.id")
    channel_id: UUID = Field(index=True, foreign_key="user.id")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
