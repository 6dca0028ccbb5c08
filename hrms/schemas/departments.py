from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


class DepartmentBase(BaseModel):
    name: str
    description: str | None = None
    parent_id: int | None = Field(default=None, ge=1)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("Department name is required")
        if not NAME_MIN_LENGTH <= len(value) <= NAME_MAX_LENGTH:
            raise ValueError(
                f"Department name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
            )
        return value

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        if v is None:
            return None
        value = v.strip()
        if len(value) > DESCRIPTION_MAX_LENGTH:
            raise ValueError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
        return value or None


class DepartmentCreate(DepartmentBase):
    pass


class DepartmentUpdate(DepartmentBase):
    """Full replacement: an omitted ``parent_id`` makes the department a root."""


class DepartmentMoveRequest(BaseModel):
    new_parent_id: int | None = Field(default=None, ge=1)


class DepartmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    parent_id: int | None = None
    parent_name: str | None = None
    dep_path: str | None = None
    is_parent: bool = False
    level: int = 0
    employee_count: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DepartmentListResponse(BaseModel):
    items: list[DepartmentOut]
    total: int


class DepartmentTreeNode(BaseModel):
    id: int
    name: str
    description: str | None = None
    parent_id: int | None = None
    dep_path: str | None = None
    is_parent: bool = False
    level: int = 0
    employee_count: int = 0
    children: list[DepartmentTreeNode] = Field(default_factory=list)


class DepartmentRebuildResponse(BaseModel):
    changed: int


DepartmentTreeNode.model_rebuild()
