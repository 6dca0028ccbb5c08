from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from hrms.db.base import Base


class Employee(Base):
    """Employee row as far as the department hierarchy needs it.

    Employee records are owned by the HR records service; this table is read
    here only to count employees per department.
    """

    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    department_id = Column(
        Integer, ForeignKey("departments.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
