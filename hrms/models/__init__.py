from hrms.models.department import Department
from hrms.models.employee import Employee

__all__ = [
    "Department",
    "Employee",
]
