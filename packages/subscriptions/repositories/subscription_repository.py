from datetime import datetime
from typing import Optional

from sqlalchemy import select, or_

from common.repositories.base import BaseRepository, QueryOptions, DEFAULT_OPTIONS
from common.core.otel_axiom_exporter import trace_span
from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.domain.subscription import Subscription
from packages.users.models.database.user import UserEntity


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    def __init__(self, db_session=None, logger=None):
        super().__init__(SubscriptionEntity, Subscription, db_session, logger)

    @trace_span
    async def get_active_for_username(
        self, username: str, now: datetime, options: QueryOptions = DEFAULT_OPTIONS
    ) -> Optional[Subscription]:
        """
        The subscription whose window contains `now`. Should more than one
        match, the one that started last wins.
        """
        query = (
            select(SubscriptionEntity)
            .join(UserEntity, SubscriptionEntity.user_id == UserEntity.id)
            .where(
                UserEntity.username == username,
                SubscriptionEntity.effective_start_date <= now,
                or_(
                    SubscriptionEntity.effective_end_date.is_(None),
                    SubscriptionEntity.effective_end_date > now,
                ),
            )
            .order_by(
                SubscriptionEntity.effective_start_date.desc(),
                SubscriptionEntity.id.desc(),
            )
            .limit(1)
        )
        async with self._get_session(options) as session:
            result = await session.execute(query)
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None
