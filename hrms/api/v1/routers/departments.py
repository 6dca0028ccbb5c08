from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.api import deps
from hrms.core.permissions import PermissionCode
from hrms.db.session import get_db
from hrms.schemas.departments import (
    DepartmentCreate,
    DepartmentListResponse,
    DepartmentMoveRequest,
    DepartmentOut,
    DepartmentRebuildResponse,
    DepartmentTreeNode,
    DepartmentUpdate,
)
from hrms.services.departments import DepartmentHierarchy, DepartmentNode

router = APIRouter(prefix="/departments", tags=["departments"])


def _tree_out(node: DepartmentNode) -> DepartmentTreeNode:
    dept = node.department
    return DepartmentTreeNode(
        id=dept.id,
        name=dept.name,
        description=dept.description,
        parent_id=dept.parent_id,
        dep_path=dept.dep_path,
        is_parent=bool(dept.is_parent),
        level=dept.level,
        employee_count=node.employee_count,
        children=[_tree_out(child) for child in node.children],
    )


async def _listing(hierarchy: DepartmentHierarchy, departments) -> DepartmentListResponse:
    items = await hierarchy.annotate(list(departments))
    return DepartmentListResponse(
        items=[DepartmentOut.model_validate(item) for item in items], total=len(items)
    )


async def _single(hierarchy: DepartmentHierarchy, department) -> DepartmentOut:
    await hierarchy.annotate([department])
    return DepartmentOut.model_validate(department)


@router.get("", response_model=DepartmentListResponse, summary="List departments")
async def list_departments(
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_VIEW)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
) -> DepartmentListResponse:
    return await _listing(hierarchy, await hierarchy.get_all())


@router.get("/tree", response_model=list[DepartmentTreeNode], summary="Department forest")
async def get_department_tree(
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_VIEW)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
) -> list[DepartmentTreeNode]:
    return [_tree_out(node) for node in await hierarchy.get_tree()]


@router.get("/by-name", response_model=DepartmentOut, summary="Find a department by exact name")
async def get_department_by_name(
    name: str = Query(..., min_length=1),
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_VIEW)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
) -> DepartmentOut:
    return await _single(hierarchy, await hierarchy.get_by_name(name))


@router.get(
    "/levels/{level}",
    response_model=DepartmentListResponse,
    summary="List departments at a tree depth (roots are level 0)",
)
async def list_departments_by_level(
    level: int,
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_VIEW)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
) -> DepartmentListResponse:
    return await _listing(hierarchy, await hierarchy.get_by_level(level))


@router.post(
    "/rebuild-paths",
    response_model=DepartmentRebuildResponse,
    summary="Recompute dep_path and is_parent for every department",
)
async def rebuild_department_paths(
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_DELETE)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
    db: AsyncSession = Depends(get_db),
) -> DepartmentRebuildResponse:
    changed = await hierarchy.rebuild_paths()
    await db.commit()
    return DepartmentRebuildResponse(changed=changed)


@router.post("", response_model=DepartmentOut, status_code=201, summary="Create a department")
async def create_department(
    payload: DepartmentCreate,
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_MANAGE)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
    db: AsyncSession = Depends(get_db),
) -> DepartmentOut:
    department = await hierarchy.create(
        payload.name, parent_id=payload.parent_id, description=payload.description
    )
    await db.commit()
    await db.refresh(department)
    return await _single(hierarchy, department)


@router.get("/{department_id}", response_model=DepartmentOut, summary="Get a department")
async def get_department(
    department_id: int,
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_VIEW)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
) -> DepartmentOut:
    return await _single(hierarchy, await hierarchy.get_by_id(department_id))


@router.get(
    "/{department_id}/children",
    response_model=DepartmentListResponse,
    summary="List direct children of a department",
)
async def list_child_departments(
    department_id: int,
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_VIEW)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
) -> DepartmentListResponse:
    return await _listing(hierarchy, await hierarchy.get_children(department_id))


@router.get(
    "/{department_id}/subtree",
    response_model=DepartmentTreeNode,
    summary="A department with all of its descendants",
)
async def get_department_subtree(
    department_id: int,
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_VIEW)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
) -> DepartmentTreeNode:
    return _tree_out(await hierarchy.get_subtree(department_id))


@router.get(
    "/{department_id}/ancestors",
    response_model=DepartmentListResponse,
    summary="List ancestors of a department, root first",
)
async def list_department_ancestors(
    department_id: int,
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_VIEW)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
) -> DepartmentListResponse:
    return await _listing(hierarchy, await hierarchy.get_ancestors(department_id))


@router.put("/{department_id}", response_model=DepartmentOut, summary="Update a department")
async def update_department(
    department_id: int,
    payload: DepartmentUpdate,
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_MANAGE)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
    db: AsyncSession = Depends(get_db),
) -> DepartmentOut:
    department = await hierarchy.update(
        department_id,
        payload.name,
        parent_id=payload.parent_id,
        description=payload.description,
    )
    await db.commit()
    await db.refresh(department)
    return await _single(hierarchy, department)


@router.put(
    "/{department_id}/move",
    response_model=DepartmentOut,
    summary="Move a department under a new parent (null for root)",
)
async def move_department(
    department_id: int,
    payload: DepartmentMoveRequest,
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_MANAGE)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
    db: AsyncSession = Depends(get_db),
) -> DepartmentOut:
    department = await hierarchy.move(department_id, payload.new_parent_id)
    await db.commit()
    await db.refresh(department)
    return await _single(hierarchy, department)


@router.delete("/{department_id}", status_code=204, summary="Delete a department")
async def delete_department(
    department_id: int,
    _: deps.Principal = Depends(deps.require_permission(PermissionCode.DEPARTMENT_DELETE)),
    hierarchy: DepartmentHierarchy = Depends(deps.get_department_hierarchy),
    db: AsyncSession = Depends(get_db),
) -> None:
    await hierarchy.delete(department_id)
    await db.commit()
    return None
