from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, func

from hrms.db.base import Base


class Department(Base):
    __tablename__ = "departments"
    __allow_unmapped__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    parent_id = Column(
        Integer, ForeignKey("departments.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    # Materialized ancestor chain, e.g. "/1/4/9/"; rebuilt from parent_id on every move
    dep_path = Column(String(1024), nullable=True, index=True)
    is_parent = Column(Boolean, nullable=False, default=False)
    # transient fields for response use, not mapped
    employee_count: int | None = None
    parent_name: str | None = None
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def level(self) -> int:
        """Depth in the tree: 0 for roots."""
        if not self.dep_path:
            return 0
        return max(len([part for part in self.dep_path.split("/") if part]) - 1, 0)

    def __repr__(self) -> str:
        return f"<Department id={self.id} name={self.name!r} dep_path={self.dep_path!r}>"


# Names are unique regardless of case
Index("uq_departments_name_lower", func.lower(Department.name), unique=True)
