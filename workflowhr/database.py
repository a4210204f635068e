import logging
from datetime import datetime

from sqlalchemy import (
    create_engine, Column, Integer, String, Text, Date, DateTime, DECIMAL, Boolean, JSON,
    ForeignKey, Enum, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from sqlalchemy.pool import StaticPool

from workflowhr.config import Config

logger = logging.getLogger(__name__)

Base = declarative_base()

DATABASE_URL = Config.database_url()

# In-memory SQLite (tests) needs one shared connection across sessions
if DATABASE_URL.startswith('sqlite'):
    engine = create_engine(
        DATABASE_URL,
        echo=False,
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(DATABASE_URL, echo=False, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

USER_ROLES = ('admin', 'hr_manager', 'hr', 'team_lead', 'employee')
LEAVE_STATUSES = ('pending', 'approved_by_team_lead', 'approved', 'rejected', 'cancelled')


class Company(Base):
    __tablename__ = 'companies'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    description = Column(Text)
    industry = Column(String(100))
    founded_year = Column(Integer)
    website = Column(String(255))
    phone = Column(String(30))
    email = Column(String(150))
    address = Column(Text)
    location = Column(String(150))
    mission = Column(Text)
    vision = Column(Text)
    values = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="company")
    working_days = relationship("CompanyWorkingDays", back_populates="company", uselist=False, cascade="all, delete-orphan")


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    email = Column(String(150), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(150), nullable=False)
    role = Column(Enum(*USER_ROLES, name='user_role'), nullable=False, default='employee')
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = relationship("Company", back_populates="users")
    employee_profile = relationship(
        "EmployeeProfile", back_populates="user", uselist=False,
        cascade="all, delete-orphan", foreign_keys="[EmployeeProfile.user_id]"
    )
    leave_balances = relationship("LeaveBalance", back_populates="user", cascade="all, delete-orphan")
    leave_requests = relationship(
        "LeaveRequest", back_populates="user", cascade="all, delete-orphan",
        foreign_keys="[LeaveRequest.user_id]"
    )
    salary_slips = relationship(
        "SalarySlip", back_populates="user", cascade="all, delete-orphan",
        foreign_keys="[SalarySlip.user_id]"
    )
    fixed_deductions = relationship(
        "EmployeeFixedDeduction", back_populates="user", cascade="all, delete-orphan",
        foreign_keys="[EmployeeFixedDeduction.user_id]"
    )


class EmployeeProfile(Base):
    __tablename__ = 'employee_profiles'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    employee_code = Column(String(20), unique=True, nullable=False)
    department = Column(String(100), nullable=False)
    designation = Column(String(100), nullable=False)
    salary = Column(DECIMAL(12, 2), nullable=False, default=0)
    joining_date = Column(Date, nullable=False)
    phone_number = Column(String(30))
    address = Column(Text)
    emergency_contact = Column(String(50))
    pan_number = Column(String(20))
    bank_account = Column(String(50))
    team_lead_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    hr_owner_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    status = Column(Enum('active', 'inactive', 'terminated', name='employee_status'), default='active')
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id], back_populates="employee_profile")
    team_lead = relationship("User", foreign_keys=[team_lead_id], overlaps="employee_profile")
    hr_owner = relationship("User", foreign_keys=[hr_owner_id], overlaps="employee_profile")


class CompanyWorkingDays(Base):
    __tablename__ = 'company_working_days'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, unique=True)
    working_days_per_week = Column(Integer, nullable=False, default=5)
    working_hours_per_day = Column(DECIMAL(4, 2), nullable=False, default=8)
    monday_working = Column(Boolean, nullable=False, default=True)
    tuesday_working = Column(Boolean, nullable=False, default=True)
    wednesday_working = Column(Boolean, nullable=False, default=True)
    thursday_working = Column(Boolean, nullable=False, default=True)
    friday_working = Column(Boolean, nullable=False, default=True)
    saturday_working = Column(Boolean, nullable=False, default=False)
    sunday_working = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = relationship("Company", back_populates="working_days")


class LeaveType(Base):
    __tablename__ = 'leave_types'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    description = Column(Text)
    max_days_per_year = Column(Integer, nullable=False)
    is_paid = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    leave_balances = relationship("LeaveBalance", back_populates="leave_type", cascade="all, delete-orphan")
    leave_requests = relationship("LeaveRequest", back_populates="leave_type")

    __table_args__ = (
        UniqueConstraint('company_id', 'name', name='unique_leave_type_per_company'),
    )


class LeaveBalance(Base):
    __tablename__ = 'leave_balances'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    leave_type_id = Column(Integer, ForeignKey('leave_types.id', ondelete='CASCADE'), nullable=False)
    year = Column(Integer, nullable=False)
    total_days = Column(DECIMAL(5, 1), nullable=False, default=0)
    used_days = Column(DECIMAL(5, 1), nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="leave_balances")
    leave_type = relationship("LeaveType", back_populates="leave_balances")

    __table_args__ = (
        UniqueConstraint('user_id', 'leave_type_id', 'year', name='unique_balance'),
    )

    @property
    def remaining_days(self):
        return (self.total_days or 0) - (self.used_days or 0)


class LeaveRequest(Base):
    __tablename__ = 'leave_requests'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    leave_type_id = Column(Integer, ForeignKey('leave_types.id', ondelete='CASCADE'), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(DECIMAL(5, 1), nullable=False)
    half_day = Column(Boolean, nullable=False, default=False)
    half_day_type = Column(Enum('start', 'end', name='half_day_type'))
    reason = Column(Text)
    status = Column(Enum(*LEAVE_STATUSES, name='leave_status'), nullable=False, default='pending')
    team_lead_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    team_lead_comment = Column(Text)
    team_lead_action_at = Column(DateTime)
    approved_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    approved_at = Column(DateTime)
    hr_remarks = Column(Text)
    applied_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id], back_populates="leave_requests")
    leave_type = relationship("LeaveType", back_populates="leave_requests")
    team_lead = relationship("User", foreign_keys=[team_lead_id])
    approver = relationship("User", foreign_keys=[approved_by])
    history = relationship(
        "LeaveHistory", back_populates="leave_request", cascade="all, delete-orphan",
        order_by="LeaveHistory.id"
    )


class LeaveHistory(Base):
    __tablename__ = 'leave_history'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    leave_request_id = Column(Integer, ForeignKey('leave_requests.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    action = Column(String(50), nullable=False)
    from_status = Column(String(30))
    to_status = Column(String(30), nullable=False)
    action_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    comment = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    leave_request = relationship("LeaveRequest", back_populates="history")


class SalaryComponent(Base):
    __tablename__ = 'salary_components'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    component_type = Column(Enum('addition', 'deduction', name='salary_component_type'), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('company_id', 'name', name='unique_component_per_company'),
    )


class EmployeeFixedDeduction(Base):
    __tablename__ = 'employee_fixed_deductions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(100), nullable=False)
    deduction_type = Column(Enum('fixed', 'percentage', name='fixed_deduction_type'), nullable=False)
    amount = Column(DECIMAL(12, 2))
    percentage = Column(DECIMAL(5, 2))
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id], back_populates="fixed_deductions")


class SalarySlip(Base):
    __tablename__ = 'salary_slips'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    basic_salary = Column(DECIMAL(12, 2), nullable=False)
    monthly_salary = Column(DECIMAL(12, 2), nullable=False)
    total_working_days = Column(Integer, nullable=False)
    actual_working_days = Column(DECIMAL(5, 1), nullable=False)
    unpaid_leave_days = Column(DECIMAL(5, 1), nullable=False, default=0)
    paid_leave_days = Column(DECIMAL(5, 1), nullable=False, default=0)
    gross_salary = Column(DECIMAL(12, 2), nullable=False)
    leave_deduction = Column(DECIMAL(12, 2), nullable=False, default=0)
    total_additions = Column(DECIMAL(12, 2), nullable=False, default=0)
    total_deductions = Column(DECIMAL(12, 2), nullable=False, default=0)
    net_salary = Column(DECIMAL(12, 2), nullable=False)
    notes = Column(Text)
    generated_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id], back_populates="salary_slips")
    details = relationship(
        "SalarySlipDetail", back_populates="salary_slip", cascade="all, delete-orphan",
        order_by="SalarySlipDetail.id"
    )

    __table_args__ = (
        UniqueConstraint('user_id', 'month', 'year', name='unique_salary_slip_per_month'),
    )


class SalarySlipDetail(Base):
    __tablename__ = 'salary_slip_details'

    id = Column(Integer, primary_key=True, autoincrement=True)
    salary_slip_id = Column(Integer, ForeignKey('salary_slips.id', ondelete='CASCADE'), nullable=False)
    component_name = Column(String(100), nullable=False)
    component_type = Column(Enum('addition', 'deduction', name='salary_detail_type'), nullable=False)
    amount = Column(DECIMAL(12, 2), nullable=False)
    is_fixed = Column(Boolean, nullable=False, default=False)

    salary_slip = relationship("SalarySlip", back_populates="details")


class DocumentTemplate(Base):
    __tablename__ = 'document_templates'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    document_name = Column(String(150), nullable=False)
    description = Column(Text)
    template_type = Column(String(50), default='general')
    field_tags = Column(JSON, nullable=False, default=list)
    content = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class GeneratedDocument(Base):
    __tablename__ = 'generated_documents'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey('document_templates.id', ondelete='SET NULL'))
    employee_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    document_name = Column(String(150), nullable=False)
    content = Column(Text, nullable=False)
    field_values = Column(JSON, nullable=False, default=dict)
    generated_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(DateTime, default=datetime.utcnow)

    template = relationship("DocumentTemplate")


class OTP(Base):
    __tablename__ = 'otps'

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(150), nullable=False, index=True)
    otp_code = Column(String(10), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    is_used = Column(Boolean, nullable=False, default=False)
    attempts = Column(Integer, nullable=False, default=0)


def init_db():
    """Initialize database tables"""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")
