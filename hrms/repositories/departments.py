from __future__ import annotations

import abc
from typing import Iterable

from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.models.department import Department
from hrms.models.employee import Employee
from hrms.services.errors import DepartmentAlreadyExists

NAME_INDEX = "uq_departments_name_lower"


class DepartmentStore(abc.ABC):
    """Persistence seen by the department hierarchy.

    Implementations never enforce tree rules themselves; they only read and
    write rows. ``insert`` assigns the id.
    """

    @abc.abstractmethod
    async def insert(self, department: Department) -> int: ...

    @abc.abstractmethod
    async def find_all(self) -> list[Department]: ...

    @abc.abstractmethod
    async def find_by_id(
        self, department_id: int, *, for_update: bool = False
    ) -> Department | None:
        """``for_update`` locks the row until the transaction ends."""

    @abc.abstractmethod
    async def find_by_name(self, name: str) -> Department | None: ...

    @abc.abstractmethod
    async def find_by_name_ignore_case(self, name: str) -> Department | None: ...

    @abc.abstractmethod
    async def find_by_parent_id(self, parent_id: int) -> list[Department]: ...

    @abc.abstractmethod
    async def find_root_departments(self) -> list[Department]: ...

    @abc.abstractmethod
    async def find_by_path_prefix(self, prefix: str) -> list[Department]: ...

    @abc.abstractmethod
    async def exists_by_parent_id(self, parent_id: int) -> bool: ...

    @abc.abstractmethod
    async def update(self, department: Department) -> None: ...

    @abc.abstractmethod
    async def delete(self, department_id: int) -> None: ...

    @abc.abstractmethod
    async def count_employees_by_department_id(self, department_id: int) -> int: ...

    async def count_employees_by_department_ids(
        self, department_ids: Iterable[int]
    ) -> dict[int, int]:
        counts: dict[int, int] = {}
        for department_id in department_ids:
            counts[department_id] = await self.count_employees_by_department_id(department_id)
        return counts


class SqlDepartmentStore(DepartmentStore):
    """``DepartmentStore`` backed by an ``AsyncSession``.

    Writes are flushed, never committed: the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def insert(self, department: Department) -> int:
        self.db.add(department)
        await self._flush(department)
        return department.id

    async def find_all(self) -> list[Department]:
        result = await self.db.execute(select(Department).order_by(Department.id))
        return list(result.scalars().all())

    async def find_by_id(
        self, department_id: int, *, for_update: bool = False
    ) -> Department | None:
        stmt = select(Department).where(Department.id == department_id)
        if for_update:
            # Re-read a row already in the session so the locked state wins
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_name(self, name: str) -> Department | None:
        result = await self.db.execute(select(Department).where(Department.name == name))
        return result.scalar_one_or_none()

    async def find_by_name_ignore_case(self, name: str) -> Department | None:
        stmt = select(Department).where(func.lower(Department.name) == name.lower())
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def find_by_parent_id(self, parent_id: int) -> list[Department]:
        stmt = select(Department).where(Department.parent_id == parent_id).order_by(Department.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_root_departments(self) -> list[Department]:
        stmt = select(Department).where(Department.parent_id.is_(None)).order_by(Department.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_by_path_prefix(self, prefix: str) -> list[Department]:
        stmt = (
            select(Department)
            .where(Department.dep_path.startswith(prefix, autoescape=True))
            .order_by(Department.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def exists_by_parent_id(self, parent_id: int) -> bool:
        stmt = select(exists().where(Department.parent_id == parent_id))
        result = await self.db.execute(stmt)
        return bool(result.scalar_one())

    async def update(self, department: Department) -> None:
        self.db.add(department)
        await self._flush(department)

    async def _flush(self, department: Department) -> None:
        # A concurrent writer can take the name between the service check and here
        name = department.name
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            if NAME_INDEX in str(exc.orig):
                raise DepartmentAlreadyExists(
                    f"Department name already exists: {name}", name=name
                ) from exc
            raise

    async def delete(self, department_id: int) -> None:
        department = await self.db.get(Department, department_id)
        if department is None:
            return
        await self.db.delete(department)
        await self.db.flush()

    async def count_employees_by_department_id(self, department_id: int) -> int:
        stmt = select(func.count()).select_from(Employee).where(
            Employee.department_id == department_id
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def count_employees_by_department_ids(
        self, department_ids: Iterable[int]
    ) -> dict[int, int]:
        ids = list(department_ids)
        if not ids:
            return {}
        stmt = (
            select(Employee.department_id, func.count())
            .where(Employee.department_id.in_(ids))
            .group_by(Employee.department_id)
        )
        counts = {department_id: 0 for department_id in ids}
        for department_id, cnt in (await self.db.execute(stmt)).all():
            counts[department_id] = cnt
        return counts
