import logging

from workflowhr.database import Company, CompanyWorkingDays, LeaveType, SalaryComponent
from workflowhr.working_days import DEFAULT_CONFIG

logger = logging.getLogger(__name__)

DEFAULT_LEAVE_TYPES = [
    {"name": "Casual Leave", "description": "For personal matters and emergencies", "max_days_per_year": 12, "is_paid": True},
    {"name": "Sick Leave", "description": "For illness and medical appointments", "max_days_per_year": 12, "is_paid": True},
    {"name": "Annual Leave", "description": "Yearly vacation leave", "max_days_per_year": 15, "is_paid": True},
    {"name": "Maternity Leave", "description": "For expecting mothers", "max_days_per_year": 180, "is_paid": True},
    {"name": "Paternity Leave", "description": "For new fathers", "max_days_per_year": 15, "is_paid": True},
    {"name": "Unpaid Leave", "description": "Leave without pay, deducted from salary", "max_days_per_year": 365, "is_paid": False},
]

DEFAULT_SALARY_COMPONENTS = [
    {"name": "Bonus", "component_type": "addition", "description": "Performance or festival bonus"},
    {"name": "Overtime", "component_type": "addition", "description": "Overtime pay"},
    {"name": "Reimbursement", "component_type": "addition", "description": "Expense reimbursement"},
    {"name": "Professional Tax", "component_type": "deduction", "description": "State professional tax"},
    {"name": "Advance Recovery", "component_type": "deduction", "description": "Recovery of salary advance"},
]


class CompanyService:
    """Tenant bootstrap"""

    @staticmethod
    def create_company(db, name: str, **profile) -> Company:
        """Create a company with its default calendar, leave types and salary components"""
        company = Company(name=name, **profile)
        db.add(company)
        db.flush()

        db.add(CompanyWorkingDays(company_id=company.id, **DEFAULT_CONFIG))
        CompanyService.add_default_leave_types(db, company.id)
        CompanyService.add_default_salary_components(db, company.id)
        db.flush()
        logger.info(f"Company {company.id} '{name}' created with default settings")
        return company

    @staticmethod
    def add_default_leave_types(db, company_id: int) -> int:
        added = 0
        for lt in DEFAULT_LEAVE_TYPES:
            existing = db.query(LeaveType).filter(
                LeaveType.company_id == company_id,
                LeaveType.name == lt["name"]
            ).first()
            if not existing:
                db.add(LeaveType(company_id=company_id, **lt))
                added += 1
        return added

    @staticmethod
    def add_default_salary_components(db, company_id: int) -> int:
        added = 0
        for component in DEFAULT_SALARY_COMPONENTS:
            existing = db.query(SalaryComponent).filter(
                SalaryComponent.company_id == company_id,
                SalaryComponent.name == component["name"]
            ).first()
            if not existing:
                db.add(SalaryComponent(company_id=company_id, **component))
                added += 1
        return added
