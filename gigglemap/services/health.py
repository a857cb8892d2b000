from __future__ import annotations

from gigglemap.infra.unit_of_work import UnitOfWorkFactory


class HealthService:
    def __init__(self, uow_factory: UnitOfWorkFactory):
        self._uow_factory = uow_factory

    async def ok(self) -> dict:
        async with self._uow_factory() as uow:
            await uow.ping()
        return {"ok": True}
