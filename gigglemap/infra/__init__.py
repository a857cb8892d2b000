"""Infrastructure helpers such as Unit of Work implementations."""

from .unit_of_work import InMemoryUnitOfWork, SqlAlchemyUnitOfWork, UnitOfWork, UnitOfWorkFactory

__all__ = ["UnitOfWork", "UnitOfWorkFactory", "SqlAlchemyUnitOfWork", "InMemoryUnitOfWork"]
