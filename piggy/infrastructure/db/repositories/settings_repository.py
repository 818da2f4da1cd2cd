"""
User Settings Repository
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from piggy.domain.models import RoundupRule, UserSettings
from piggy.infrastructure.db.models import UserSettingsModel


class UserSettingsRepository:
    """Repository for UserSettings"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def get(self, user_id: str) -> Optional[UserSettings]:
        model = await self._get_model(user_id)
        return self._to_domain(model) if model else None

    async def save(self, user_settings: UserSettings) -> None:
        """Insert or replace the settings row of a user"""
        model = await self._get_model(user_settings.user_id)
        if model is None:
            model = UserSettingsModel(user_id=user_settings.user_id)
            self.session.add(model)

        rule = user_settings.roundup_rule
        model.round_to_nearest = rule.round_to_nearest
        model.min_roundup = rule.min_roundup
        model.max_roundup = rule.max_roundup
        model.portfolio_preset = user_settings.portfolio_preset
        model.auto_invest_enabled = user_settings.auto_invest_enabled
        model.weekly_target = user_settings.weekly_target
        await self.session.flush()

    async def lock(self, user_id: str) -> Optional[UserSettings]:
        """Read the settings row with a row lock held until the transaction ends"""
        model = await self._get_model(user_id, for_update=True)
        return self._to_domain(model) if model else None

    async def _get_model(self, user_id: str, for_update: bool = False) -> Optional[UserSettingsModel]:
        stmt = select(UserSettingsModel).where(UserSettingsModel.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _to_domain(model: UserSettingsModel) -> UserSettings:
        return UserSettings(
            user_id=model.user_id,
            roundup_rule=RoundupRule(
                round_to_nearest=model.round_to_nearest,
                min_roundup=model.min_roundup,
                max_roundup=model.max_roundup,
            ),
            portfolio_preset=model.portfolio_preset,
            auto_invest_enabled=model.auto_invest_enabled,
            weekly_target=model.weekly_target,
        )
