import logging
from datetime import date, datetime
from decimal import Decimal

from workflowhr.database import (
    LeaveBalance, LeaveHistory, LeaveRequest, LeaveType, EmployeeProfile
)
from workflowhr.working_days import calculate_leave_days, leave_days_within, month_bounds

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ('pending', 'approved_by_team_lead', 'approved')
AWAITING_HR_STATUSES = ('pending', 'approved_by_team_lead')

# (from_status, to_status) -> capacities allowed to make the move
TRANSITIONS = {
    ('pending', 'approved_by_team_lead'): {'team_lead'},
    ('pending', 'rejected'): {'team_lead', 'hr'},
    ('pending', 'approved'): {'hr'},
    ('approved_by_team_lead', 'approved'): {'hr'},
    ('approved_by_team_lead', 'rejected'): {'hr'},
    ('pending', 'cancelled'): {'owner'},
}

HISTORY_ACTIONS = {
    ('team_lead', 'approved_by_team_lead'): 'team_lead_approved',
    ('team_lead', 'rejected'): 'team_lead_rejected',
    ('hr', 'approved'): 'hr_approved',
    ('hr', 'rejected'): 'hr_rejected',
    ('owner', 'cancelled'): 'cancelled',
}


class LeaveService:
    """Leave balances and the leave request workflow.

    Methods flush but never commit; the calling route owns the transaction.
    Rule violations raise ValueError, capacity violations PermissionError.
    """

    @staticmethod
    def get_or_create_balance(db, company_id: int, user_id: int, leave_type: LeaveType, year: int) -> LeaveBalance:
        balance = db.query(LeaveBalance).filter(
            LeaveBalance.company_id == company_id,
            LeaveBalance.user_id == user_id,
            LeaveBalance.leave_type_id == leave_type.id,
            LeaveBalance.year == year
        ).first()
        if balance is None:
            balance = LeaveBalance(
                company_id=company_id,
                user_id=user_id,
                leave_type_id=leave_type.id,
                year=year,
                total_days=Decimal(leave_type.max_days_per_year or 0),
                used_days=Decimal('0')
            )
            db.add(balance)
            db.flush()
        return balance

    @staticmethod
    def seed_balances(db, company_id: int, user_id: int, year: int) -> int:
        """Create this year's balance rows for every active leave type"""
        leave_types = db.query(LeaveType).filter(
            LeaveType.company_id == company_id,
            LeaveType.is_active.is_(True)
        ).all()
        for leave_type in leave_types:
            LeaveService.get_or_create_balance(db, company_id, user_id, leave_type, year)
        return len(leave_types)

    @staticmethod
    def find_overlap(db, user_id: int, start: date, end: date):
        return db.query(LeaveRequest).filter(
            LeaveRequest.user_id == user_id,
            LeaveRequest.status.in_(ACTIVE_STATUSES),
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start
        ).first()

    @staticmethod
    def create_request(db, user, leave_type: LeaveType, start: date, end: date, reason: str,
                       mask, half_day: bool = False, half_day_type: str = None,
                       today: date = None) -> LeaveRequest:
        today = today or date.today()

        if end < start:
            raise ValueError("End date cannot be before start date")
        if start < today:
            raise ValueError("Start date cannot be in the past")
        # Balances are kept per calendar year
        if start.year != end.year:
            raise ValueError("A leave request cannot span two calendar years; submit one request per year")
        if not leave_type.is_active:
            raise ValueError("Leave type is not active")

        if half_day:
            half_day_type = half_day_type or 'start'
            if half_day_type not in ('start', 'end'):
                raise ValueError("half_day_type must be 'start' or 'end'")
        else:
            half_day_type = None

        total_days = calculate_leave_days(mask, start, end, half_day, half_day_type)
        if total_days <= 0:
            raise ValueError("The selected dates contain no working days")

        if LeaveService.find_overlap(db, user.id, start, end):
            raise ValueError("You already have a leave request overlapping these dates")

        if leave_type.is_paid:
            balance = LeaveService.get_or_create_balance(db, user.company_id, user.id, leave_type, start.year)
            if balance.remaining_days < total_days:
                raise ValueError(
                    f"Insufficient leave balance. Available: {float(balance.remaining_days)}, "
                    f"requested: {float(total_days)}"
                )

        profile = db.query(EmployeeProfile).filter(EmployeeProfile.user_id == user.id).first()
        team_lead_id = profile.team_lead_id if profile else None

        leave_request = LeaveRequest(
            company_id=user.company_id,
            user_id=user.id,
            leave_type_id=leave_type.id,
            start_date=start,
            end_date=end,
            total_days=total_days,
            half_day=bool(half_day),
            half_day_type=half_day_type,
            reason=reason,
            status='pending',
            team_lead_id=team_lead_id
        )
        db.add(leave_request)
        db.flush()

        LeaveService.record_history(db, leave_request, 'applied', None, 'pending', user.id, reason)
        return leave_request

    @staticmethod
    def record_history(db, leave_request: LeaveRequest, action: str, from_status, to_status: str,
                       action_by: int, comment: str = None) -> LeaveHistory:
        entry = LeaveHistory(
            company_id=leave_request.company_id,
            leave_request_id=leave_request.id,
            user_id=leave_request.user_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            action_by=action_by,
            comment=comment
        )
        db.add(entry)
        return entry

    @staticmethod
    def _acts_as(actor, leave_request: LeaveRequest, capacity: str) -> bool:
        if capacity == 'owner':
            return actor.id == leave_request.user_id
        if capacity == 'team_lead':
            return actor.role == 'team_lead' and leave_request.team_lead_id == actor.id
        if capacity == 'hr':
            return actor.role in ('admin', 'hr_manager', 'hr')
        return False

    @staticmethod
    def transition(db, leave_request: LeaveRequest, to_status: str, actor, capacity: str,
                   comment: str = None) -> LeaveRequest:
        """Move a request along the workflow on behalf of ``actor`` acting as ``capacity``"""
        from_status = leave_request.status
        allowed = TRANSITIONS.get((from_status, to_status))
        if not allowed or capacity not in allowed:
            if from_status not in AWAITING_HR_STATUSES:
                raise ValueError(f"Leave request has already been {from_status.replace('_', ' ')}")
            raise ValueError(f"Cannot change leave request from {from_status} to {to_status}")

        if not LeaveService._acts_as(actor, leave_request, capacity):
            raise PermissionError("You are not allowed to act on this leave request")
        if capacity != 'owner' and actor.id == leave_request.user_id:
            raise PermissionError("You cannot approve or reject your own leave request")

        now = datetime.utcnow()
        if capacity == 'team_lead':
            leave_request.team_lead_comment = comment
            leave_request.team_lead_action_at = now
        elif capacity == 'hr':
            leave_request.approved_by = actor.id
            leave_request.approved_at = now
            leave_request.hr_remarks = comment

        if to_status == 'approved':
            leave_type = leave_request.leave_type
            balance = LeaveService.get_or_create_balance(
                db, leave_request.company_id, leave_request.user_id, leave_type,
                leave_request.start_date.year
            )
            if leave_type.is_paid and balance.remaining_days < leave_request.total_days:
                raise ValueError("Insufficient leave balance to approve this request")
            balance.used_days = (balance.used_days or Decimal('0')) + leave_request.total_days

        leave_request.status = to_status
        LeaveService.record_history(
            db, leave_request, HISTORY_ACTIONS[(capacity, to_status)],
            from_status, to_status, actor.id, comment
        )
        db.flush()
        logger.info(
            f"Leave request {leave_request.id} moved {from_status} -> {to_status} by user {actor.id}"
        )
        return leave_request

    @staticmethod
    def unpaid_leave_days(db, company_id: int, user_id: int, year: int, month: int, mask) -> Decimal:
        """Approved unpaid leave days of a user falling inside the month"""
        return LeaveService.approved_leave_days(db, company_id, user_id, year, month, mask, is_paid=False)

    @staticmethod
    def paid_leave_days(db, company_id: int, user_id: int, year: int, month: int, mask) -> Decimal:
        return LeaveService.approved_leave_days(db, company_id, user_id, year, month, mask, is_paid=True)

    @staticmethod
    def approved_leave_days(db, company_id: int, user_id: int, year: int, month: int, mask,
                            is_paid: bool) -> Decimal:
        month_start, month_end = month_bounds(year, month)
        leaves = db.query(LeaveRequest).join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id).filter(
            LeaveRequest.company_id == company_id,
            LeaveRequest.user_id == user_id,
            LeaveRequest.status == 'approved',
            LeaveType.is_paid.is_(is_paid),
            LeaveRequest.start_date <= month_end,
            LeaveRequest.end_date >= month_start
        ).all()
        return sum(
            (leave_days_within(mask, lr.start_date, lr.end_date, month_start, month_end,
                               lr.half_day, lr.half_day_type) for lr in leaves),
            Decimal('0')
        )
