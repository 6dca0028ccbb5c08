"""Department hierarchy: a forest of department rows kept self-consistent.

Each department stores ``parent_id`` (authoritative) plus two cached values
derived from it:

* ``dep_path`` - the ancestor chain as ``/root/.../self/``, used for subtree
  queries by prefix.
* ``is_parent`` - whether any department currently names it as parent.

Every mutation below recomputes both for all rows it touches. The hierarchy
only flushes through its store; committing is left to the caller so that one
public call maps to one transaction.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from hrms.models.department import Department
from hrms.repositories.departments import DepartmentStore
from hrms.services.audit import model_snapshot, record_audit_event
from hrms.services.errors import (
    DepartmentAlreadyExists,
    DepartmentConflict,
    DepartmentNotFound,
    InvalidDepartmentOperation,
)

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "department"


@dataclass
class DepartmentNode:
    department: Department
    employee_count: int = 0
    children: list["DepartmentNode"] = field(default_factory=list)


def child_path(parent: Department | None, department_id: int) -> str:
    if parent is None:
        return f"/{department_id}/"
    return f"{parent.dep_path}{department_id}/"


def _assemble(
    departments: list[Department],
    counts: dict[int, int],
    root_ids: Iterable[int],
) -> list[DepartmentNode]:
    nodes = {
        dept.id: DepartmentNode(department=dept, employee_count=counts.get(dept.id, 0))
        for dept in departments
    }
    roots = set(root_ids)
    for dept in departments:
        if dept.id in roots:
            continue
        parent = nodes.get(dept.parent_id)
        if parent is not None:
            parent.children.append(nodes[dept.id])
    return [nodes[dept.id] for dept in departments if dept.id in roots]


class DepartmentHierarchy:
    def __init__(self, store: DepartmentStore) -> None:
        self.store = store

    # Reads

    async def get_all(self) -> list[Department]:
        return await self.store.find_all()

    async def get_by_id(self, department_id: int, *, for_update: bool = False) -> Department:
        department = await self.store.find_by_id(department_id, for_update=for_update)
        if department is None:
            raise DepartmentNotFound(
                f"Department not found with id: {department_id}", department_id=department_id
            )
        return department

    async def get_by_name(self, name: str) -> Department:
        department = await self.store.find_by_name(name)
        if department is None:
            raise DepartmentNotFound(f"Department not found with name: {name}", name=name)
        return department

    async def get_tree(self) -> list[DepartmentNode]:
        departments = await self.store.find_all()
        counts = await self.store.count_employees_by_department_ids(d.id for d in departments)
        root_ids = [d.id for d in departments if d.parent_id is None]
        return _assemble(departments, counts, root_ids)

    async def get_subtree(self, department_id: int) -> DepartmentNode:
        root = await self.get_by_id(department_id)
        members = [d for d in await self.store.find_by_path_prefix(root.dep_path) if d.id != root.id]
        members.insert(0, root)
        counts = await self.store.count_employees_by_department_ids(d.id for d in members)
        return _assemble(members, counts, [root.id])[0]

    async def get_ancestors(self, department_id: int) -> list[Department]:
        """Return the ancestors of a department, root first."""
        current = await self.get_by_id(department_id)
        chain: list[Department] = []
        seen = {current.id}
        while current.parent_id is not None and current.parent_id not in seen:
            parent = await self.store.find_by_id(current.parent_id)
            if parent is None:
                break
            chain.append(parent)
            seen.add(parent.id)
            current = parent
        chain.reverse()
        return chain

    async def get_children(self, parent_id: int) -> list[Department]:
        await self.get_by_id(parent_id)
        return await self.store.find_by_parent_id(parent_id)

    async def get_by_level(self, level: int) -> list[Department]:
        if level < 0:
            raise InvalidDepartmentOperation("Level must be zero or greater", level=level)
        return [d for d in await self.store.find_all() if d.level == level]

    async def annotate(self, departments: list[Department]) -> list[Department]:
        """Fill the transient ``employee_count`` and ``parent_name`` fields."""
        if not departments:
            return departments
        counts = await self.store.count_employees_by_department_ids(d.id for d in departments)
        names = {d.id: d.name for d in departments}
        for dept in departments:
            dept.employee_count = counts.get(dept.id, 0)
            if dept.parent_id is None:
                dept.parent_name = None
                continue
            if dept.parent_id not in names:
                parent = await self.store.find_by_id(dept.parent_id)
                names[dept.parent_id] = parent.name if parent else None
            dept.parent_name = names[dept.parent_id]
        return departments

    # Mutations

    async def create(
        self,
        name: str,
        parent_id: int | None = None,
        description: str | None = None,
    ) -> Department:
        await self._ensure_name_available(name)
        parent = await self.get_by_id(parent_id) if parent_id is not None else None

        department = Department(
            name=name,
            description=description,
            parent_id=parent_id,
            is_parent=False,
        )
        new_id = await self.store.insert(department)
        department.dep_path = child_path(parent, new_id)
        await self.store.update(department)
        if parent is not None:
            await self._refresh_is_parent(parent)

        record_audit_event(
            action="department.created",
            resource_type=RESOURCE_TYPE,
            resource_id=department.id,
            new_value=model_snapshot(department),
        )
        return department

    async def update(
        self,
        department_id: int,
        name: str,
        parent_id: int | None = None,
        description: str | None = None,
    ) -> Department:
        """Replace name, description and parent; a parent change is a move.

        Every precondition is checked before the row is touched.
        """
        department = await self.get_by_id(department_id, for_update=True)
        old_snapshot = model_snapshot(department)

        if name != department.name:
            await self._ensure_name_available(name, exclude_id=department.id)
        parent_changed = parent_id != department.parent_id
        new_parent = None
        if parent_changed:
            new_parent = await self._check_new_parent(department, parent_id)

        department.name = name
        department.description = description
        if parent_changed:
            await self._relocate(department, new_parent)
        await self.store.update(department)

        record_audit_event(
            action="department.updated",
            resource_type=RESOURCE_TYPE,
            resource_id=department.id,
            old_value=old_snapshot,
            new_value=model_snapshot(department),
        )
        return department

    async def move(self, department_id: int, new_parent_id: int | None = None) -> Department:
        department = await self.get_by_id(department_id, for_update=True)
        old_snapshot = model_snapshot(department)

        new_parent = await self._check_new_parent(department, new_parent_id)
        await self._relocate(department, new_parent)

        record_audit_event(
            action="department.moved",
            resource_type=RESOURCE_TYPE,
            resource_id=department.id,
            old_value=old_snapshot,
            new_value=model_snapshot(department),
        )
        return department

    async def delete(self, department_id: int) -> None:
        department = await self.get_by_id(department_id)
        if await self.store.exists_by_parent_id(department.id):
            raise DepartmentConflict(
                "Cannot delete department with children", department_id=department.id
            )
        employee_count = await self.store.count_employees_by_department_id(department.id)
        if employee_count > 0:
            raise DepartmentConflict(
                "Cannot delete department with employees",
                department_id=department.id,
                employee_count=employee_count,
            )

        old_snapshot = model_snapshot(department)
        parent_id = department.parent_id
        await self.store.delete(department.id)
        if parent_id is not None:
            parent = await self.store.find_by_id(parent_id)
            if parent is not None:
                await self._refresh_is_parent(parent)

        record_audit_event(
            action="department.deleted",
            resource_type=RESOURCE_TYPE,
            resource_id=department_id,
            old_value=old_snapshot,
        )

    async def rebuild_paths(self) -> int:
        """Recompute every ``dep_path`` and ``is_parent`` from ``parent_id`` links.

        Returns the number of rows that changed.
        """
        departments = await self.store.find_all()
        by_parent: dict[int | None, list[Department]] = {}
        for dept in departments:
            by_parent.setdefault(dept.parent_id, []).append(dept)

        changed: set[int] = set()
        visited: set[int] = set()
        queue: deque[Department] = deque()
        for root in by_parent.get(None, []):
            expected = child_path(None, root.id)
            if root.dep_path != expected:
                root.dep_path = expected
                changed.add(root.id)
            queue.append(root)
            visited.add(root.id)
        while queue:
            node = queue.popleft()
            for child in by_parent.get(node.id, []):
                if child.id in visited:
                    continue
                expected = child_path(node, child.id)
                if child.dep_path != expected:
                    child.dep_path = expected
                    changed.add(child.id)
                visited.add(child.id)
                queue.append(child)

        unreachable = [d.id for d in departments if d.id not in visited]
        if unreachable:
            logger.warning("Departments not reachable from any root: %s", unreachable)

        for dept in departments:
            has_children = bool(by_parent.get(dept.id))
            if bool(dept.is_parent) != has_children:
                dept.is_parent = has_children
                changed.add(dept.id)

        for dept in departments:
            if dept.id in changed:
                await self.store.update(dept)
        logger.info("Rebuilt department paths: %d of %d rows changed", len(changed), len(departments))
        if changed:
            record_audit_event(
                action="department.paths_rebuilt",
                resource_type=RESOURCE_TYPE,
                resource_id="*",
                new_value={"changed_ids": sorted(changed)},
            )
        return len(changed)

    # Helpers

    async def _ensure_name_available(self, name: str, exclude_id: int | None = None) -> None:
        existing = await self.store.find_by_name_ignore_case(name)
        if existing is not None and existing.id != exclude_id:
            raise DepartmentAlreadyExists(f"Department name already exists: {name}", name=name)

    async def _refresh_is_parent(self, department: Department) -> None:
        has_children = await self.store.exists_by_parent_id(department.id)
        if bool(department.is_parent) != has_children:
            department.is_parent = has_children
            await self.store.update(department)

    async def _is_descendant(self, candidate: Department, ancestor_id: int) -> bool:
        # Ancestors are locked as they are walked; a concurrent move of any
        # of them waits for this transaction.
        current = candidate
        seen = {candidate.id}
        while current.parent_id is not None:
            if current.parent_id == ancestor_id:
                return True
            if current.parent_id in seen:
                return False
            seen.add(current.parent_id)
            parent = await self.store.find_by_id(current.parent_id, for_update=True)
            if parent is None:
                return False
            current = parent
        return False

    async def _check_new_parent(
        self, department: Department, new_parent_id: int | None
    ) -> Department | None:
        """Return the locked target parent, or raise if the move is not allowed."""
        if new_parent_id is None:
            return None
        if new_parent_id == department.id:
            raise InvalidDepartmentOperation(
                "Cannot move department to itself", department_id=department.id
            )
        new_parent = await self.get_by_id(new_parent_id, for_update=True)
        if await self._is_descendant(new_parent, department.id):
            raise InvalidDepartmentOperation(
                "Cannot move department to its own child",
                department_id=department.id,
                new_parent_id=new_parent_id,
            )
        return new_parent

    async def _relocate(self, department: Department, new_parent: Department | None) -> None:
        new_parent_id = new_parent.id if new_parent is not None else None
        old_parent_id = department.parent_id
        descendants = []
        if department.dep_path:
            descendants = [
                d
                for d in await self.store.find_by_path_prefix(department.dep_path)
                if d.id != department.id
            ]

        department.parent_id = new_parent_id
        department.dep_path = child_path(new_parent, department.id)
        await self.store.update(department)
        await self._rewrite_descendant_paths(department, descendants)

        if old_parent_id is not None and old_parent_id != new_parent_id:
            old_parent = await self.store.find_by_id(old_parent_id)
            if old_parent is not None:
                await self._refresh_is_parent(old_parent)
        if new_parent is not None:
            await self._refresh_is_parent(new_parent)

    async def _rewrite_descendant_paths(
        self, root: Department, descendants: list[Department]
    ) -> None:
        # Paths are rebuilt top-down from parent_id, not by string replacement
        by_parent: dict[int, list[Department]] = {}
        for dept in descendants:
            by_parent.setdefault(dept.parent_id, []).append(dept)
        queue: deque[Department] = deque([root])
        seen = {root.id}
        while queue:
            node = queue.popleft()
            for child in by_parent.get(node.id, []):
                if child.id in seen:
                    continue
                seen.add(child.id)
                new_path = child_path(node, child.id)
                if child.dep_path != new_path:
                    child.dep_path = new_path
                    await self.store.update(child)
                queue.append(child)
