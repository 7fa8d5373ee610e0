"""
Update Item Override Settings Command

Command and handler for changing administrator overrides of one item.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ...domain.catalog.entities import ItemOverrideSettings
from ...domain.catalog.repository import ItemFeatureRepository, ItemOverrideRepository
from ...domain.shared.datetime_utils import utcnow
from ...domain.shared.exceptions import ConcurrencyError, EntityNotFoundError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ..cqrs import Command

if TYPE_CHECKING:
    from ...domain.shared.result import Result
    from ..interfaces.unit_of_work import UnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)


@dataclass
class UpdateItemOverrideSettingsCommand(Command):
    """Command to change override fields of one item.

    ``changes`` maps override field names to their new values. When
    ``expected_version`` is given the update only applies to that version.
    """

    item_id: int
    changes: dict[str, Any] = field(default_factory=dict)
    updated_by: str | None = None
    expected_version: int | None = None

    def __post_init__(self) -> None:
        if self.item_id <= 0:
            raise ValueError(ErrorMessages.INVALID_ITEM_ID)
        if not self.changes:
            raise ValueError(ErrorMessages.NO_OVERRIDE_CHANGES)
        unknown = sorted(set(self.changes) - set(ItemOverrideSettings.OVERRIDABLE_FIELDS))
        if unknown:
            raise ValueError(
                ErrorMessages.UNKNOWN_OVERRIDE_FIELDS.format(fields=", ".join(unknown))
            )


class UpdateItemOverrideSettingsHandler:
    """Handler for UpdateItemOverrideSettingsCommand.

    Creates the override row on first use. The committed change publishes
    ItemOverrideSettingsUpdated, which is what evicts dependent cache entries.
    """

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def handle(
        self, command: UpdateItemOverrideSettingsCommand
    ) -> Result[ItemOverrideSettings]:
        async with self._uow_factory() as uow:
            return await uow.execute_in_transaction(lambda u: self._update(u, command))

    async def _update(
        self, uow: UnitOfWork, command: UpdateItemOverrideSettingsCommand
    ) -> ItemOverrideSettings:
        if await uow.get_repository(ItemFeatureRepository).get(command.item_id) is None:
            raise EntityNotFoundError(
                "Item", command.item_id, ErrorMessages.ITEM_NOT_FOUND.format(item_id=command.item_id)
            )

        repository = uow.get_repository(ItemOverrideRepository)
        settings = await repository.get(command.item_id)
        is_new = settings is None
        if settings is None:
            settings = ItemOverrideSettings(item_id=command.item_id)

        if command.expected_version is not None and command.expected_version != settings.version:
            raise ConcurrencyError(
                "ItemOverrideSettings",
                ErrorMessages.STALE_VERSION.format(
                    entity="ItemOverrideSettings", identifier=command.item_id
                ),
            )

        changed = settings.apply_changes(command.changes, updated_by=command.updated_by, at=utcnow())
        if not changed:
            return settings

        if is_new:
            await repository.add(settings)
        else:
            await repository.update(settings)
        await uow.save_changes_and_dispatch_events()

        logger.info(LogTemplates.OVERRIDES_UPDATED, command.item_id, ",".join(changed))
        return settings
