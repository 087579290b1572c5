from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.accounts.core.errors import NotFoundError, ValidationError
from app.accounts.models.subscription import Subscription
from app.accounts.models.user import User
from app.accounts.schemas.user import ChannelProfile
from app.accounts.services.user_store import UserStore

log = logging.getLogger(__name__)


class ChannelService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.users = UserStore(db)

    def _channel(self, username: Optional[str]) -> User:
        if not username or not username.strip():
            raise ValidationError("Username is missing")
        channel = self.users.find_by_username(username)
        if channel is None:
            raise NotFoundError("Channel does not exist")
        return channel

    def _count(self, *conds) -> int:
        stmt = select(func.count()).select_from(Subscription).where(*conds)
        return int(self.db.exec(stmt).one())

    def _subscription(self, subscriber_id: UUID, channel_id: UUID) -> Optional[Subscription]:
        return self.db.exec(
            select(Subscription).where(
                Subscription.subscriber_id == subscriber_id,
                Subscription.channel_id == channel_id,
            )
        ).first()

    def profile(self, username: Optional[str], viewer_id: Optional[UUID] = None) -> ChannelProfile:
        channel = self._channel(username)
        is_subscribed = (
            viewer_id is not None and self._subscription(viewer_id, channel.id) is not None
        )
        return ChannelProfile(
            id=channel.id,
            username=channel.username,
            full_name=channel.full_name,
            email=channel.email,
            avatar=channel.avatar,
            cover_image=channel.cover_image,
            subscribers_count=self._count(Subscription.channel_id == channel.id),
            channels_subscribed_to_count=self._count(Subscription.subscriber_id == channel.id),
            is_subscribed=is_subscribed,
        )

    def toggle_subscription(self, username: Optional[str], subscriber_id: UUID) -> bool:
        """Subscribe when not subscribed, otherwise unsubscribe. Returns the new state."""
        channel = self._channel(username)
        if channel.id == subscriber_id:
            raise ValidationError("Cannot subscribe to your own channel")

        existing = self._subscription(subscriber_id, channel.id)
        if existing is not None:
            self.db.delete(existing)
            self.db.commit()
            log.info("unsubscribed subscriber=%s channel=%s", subscriber_id, channel.id)
            return False

        self.db.add(Subscription(subscriber_id=subscriber_id, channel_id=channel.id))
        try:
            self.db.commit()
        except IntegrityError:
            # 동시 요청으로 이미 구독됨
            self.db.rollback()
        log.info("subscribed subscriber=%s channel=%s", subscriber_id, channel.id)
        return True
