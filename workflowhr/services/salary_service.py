import logging
from decimal import Decimal, ROUND_HALF_UP

from workflowhr.database import EmployeeFixedDeduction, SalarySlip, SalarySlipDetail
from workflowhr.services.leave_service import LeaveService
from workflowhr.validators import parse_amount, MAX_AMOUNT
from workflowhr.working_days import company_mask, working_days_in_month

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0')


def to_money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class SalaryService:
    """Monthly salary slip computation"""

    @staticmethod
    def normalize_items(items) -> list:
        """Keep line items with a name and a positive amount"""
        if items is None:
            return []
        if not isinstance(items, list):
            raise ValueError("Additions and deductions must be lists")
        cleaned = []
        for item in items:
            if not isinstance(item, dict):
                raise ValueError("Each line item must be an object with name and amount")
            name = str(item.get('name') or '').strip()
            if not name or item.get('amount') in (None, ''):
                continue
            amount = parse_amount(item.get('amount'), f"Amount for '{name}'")
            if amount > 0:
                cleaned.append({'name': name, 'amount': to_money(amount)})
        return cleaned

    @staticmethod
    def fixed_deduction_amount(deduction: dict, monthly_salary: Decimal) -> Decimal:
        if deduction['deduction_type'] == 'percentage':
            return to_money(monthly_salary * Decimal(deduction['percentage'] or 0) / Decimal('100'))
        return to_money(deduction['amount'] or 0)

    @staticmethod
    def compute(annual_salary, total_working_days: int, unpaid_days, additions=None, deductions=None,
                fixed_deductions=None, paid_days=0) -> dict:
        """
        Pro-rate a month's pay against the company's working days.

        monthly = annual / 12, daily = monthly / total_working_days and
        gross = daily * (total_working_days - unpaid_days). Percentage fixed
        deductions are taken from the monthly salary.
        Paid leave days are carried for the record and do not reduce pay.
        net = gross + additions - (deductions + fixed deductions).
        """
        annual_salary = Decimal(annual_salary or 0)
        additions = additions or []
        deductions = deductions or []
        fixed_deductions = fixed_deductions or []

        monthly = annual_salary / Decimal('12')
        unpaid = min(Decimal(unpaid_days or 0), Decimal(total_working_days))
        actual_days = Decimal(total_working_days) - unpaid

        if total_working_days > 0:
            gross = monthly / Decimal(total_working_days) * actual_days
        else:
            gross = ZERO
        gross = to_money(gross)
        leave_deduction = to_money(monthly) - gross if total_working_days > 0 else ZERO

        fixed_lines = [
            {'name': d['name'], 'amount': SalaryService.fixed_deduction_amount(d, monthly)}
            for d in fixed_deductions
        ]
        fixed_lines = [line for line in fixed_lines if line['amount'] > 0]

        total_additions = sum((item['amount'] for item in additions), ZERO)
        total_deductions = sum((item['amount'] for item in deductions), ZERO) + \
            sum((line['amount'] for line in fixed_lines), ZERO)

        return {
            'basic_salary': to_money(annual_salary),
            'monthly_salary': to_money(monthly),
            'total_working_days': int(total_working_days),
            'actual_working_days': actual_days,
            'unpaid_leave_days': unpaid,
            'paid_leave_days': Decimal(paid_days or 0),
            'gross_salary': gross,
            'leave_deduction': to_money(leave_deduction),
            'total_additions': to_money(total_additions),
            'total_deductions': to_money(total_deductions),
            'net_salary': to_money(gross + total_additions - total_deductions),
            'additions': additions,
            'deductions': deductions,
            'fixed_deductions': fixed_lines,
        }

    @staticmethod
    def active_fixed_deductions(db, company_id: int, user_id: int) -> list:
        rows = db.query(EmployeeFixedDeduction).filter(
            EmployeeFixedDeduction.company_id == company_id,
            EmployeeFixedDeduction.user_id == user_id,
            EmployeeFixedDeduction.is_active.is_(True)
        ).order_by(EmployeeFixedDeduction.id).all()
        return [
            {
                'name': row.name,
                'deduction_type': row.deduction_type,
                'amount': row.amount,
                'percentage': row.percentage,
            }
            for row in rows
        ]

    @staticmethod
    def calculate_for_employee(db, company_id: int, profile, year: int, month: int,
                               additions=None, deductions=None) -> dict:
        """Salary figures for an employee's month, read from company settings and approved leave"""
        mask = company_mask(db, company_id)
        total_working_days = working_days_in_month(mask, year, month)
        unpaid_days = LeaveService.unpaid_leave_days(db, company_id, profile.user_id, year, month, mask)
        paid_days = LeaveService.paid_leave_days(db, company_id, profile.user_id, year, month, mask)
        computed = SalaryService.compute(
            profile.salary,
            total_working_days,
            unpaid_days,
            SalaryService.normalize_items(additions),
            SalaryService.normalize_items(deductions),
            SalaryService.active_fixed_deductions(db, company_id, profile.user_id),
            paid_days=paid_days
        )
        SalaryService.check_limits(computed)
        return computed

    @staticmethod
    def check_limits(computed: dict):
        for key in ('total_additions', 'total_deductions', 'gross_salary', 'net_salary'):
            if abs(computed[key]) > MAX_AMOUNT:
                raise ValueError(f"Salary slip {key.replace('_', ' ')} must not exceed {MAX_AMOUNT}")

    @staticmethod
    def _line_items(computed: dict, include_fixed: bool = True) -> list:
        lines = [
            SalarySlipDetail(component_name=item['name'], component_type='addition', amount=item['amount'])
            for item in computed['additions']
        ]
        lines += [
            SalarySlipDetail(component_name=item['name'], component_type='deduction', amount=item['amount'])
            for item in computed['deductions']
        ]
        if include_fixed:
            lines += [
                SalarySlipDetail(component_name=item['name'], component_type='deduction',
                                 amount=item['amount'], is_fixed=True)
                for item in computed['fixed_deductions']
            ]
        return lines

    @staticmethod
    def create_slip(db, company_id: int, user_id: int, year: int, month: int, computed: dict,
                    generated_by: int, notes: str = None) -> SalarySlip:
        existing = db.query(SalarySlip).filter(
            SalarySlip.company_id == company_id,
            SalarySlip.user_id == user_id,
            SalarySlip.month == month,
            SalarySlip.year == year
        ).first()
        if existing:
            raise ValueError("Salary slip already exists for this employee for the selected month")

        slip = SalarySlip(
            company_id=company_id,
            user_id=user_id,
            month=month,
            year=year,
            basic_salary=computed['basic_salary'],
            monthly_salary=computed['monthly_salary'],
            total_working_days=computed['total_working_days'],
            actual_working_days=computed['actual_working_days'],
            unpaid_leave_days=computed['unpaid_leave_days'],
            paid_leave_days=computed['paid_leave_days'],
            gross_salary=computed['gross_salary'],
            leave_deduction=computed['leave_deduction'],
            total_additions=computed['total_additions'],
            total_deductions=computed['total_deductions'],
            net_salary=computed['net_salary'],
            notes=notes,
            generated_by=generated_by
        )
        slip.details.extend(SalaryService._line_items(computed))
        db.add(slip)
        db.flush()
        logger.info(f"Salary slip {slip.id} created for user {user_id} ({month:02d}/{year})")
        return slip

    @staticmethod
    def update_slip(db, slip: SalarySlip, additions=None, deductions=None) -> SalarySlip:
        """
        Replace the manual addition and deduction lines of a slip and recompute it.

        Pass None to keep the current lines of that kind. The pay period,
        leave figures and fixed deductions recorded on the slip are kept as
        they were when it was generated.
        """
        def current(kind):
            return [
                {'name': d.component_name, 'amount': d.amount}
                for d in slip.details if not d.is_fixed and d.component_type == kind
            ]

        fixed = [
            {'name': d.component_name, 'deduction_type': 'fixed', 'amount': d.amount, 'percentage': None}
            for d in slip.details if d.is_fixed
        ]
        computed = SalaryService.compute(
            slip.basic_salary,
            slip.total_working_days,
            slip.unpaid_leave_days,
            SalaryService.normalize_items(current('addition') if additions is None else additions),
            SalaryService.normalize_items(current('deduction') if deductions is None else deductions),
            fixed,
            paid_days=slip.paid_leave_days
        )
        SalaryService.check_limits(computed)

        for detail in [d for d in slip.details if not d.is_fixed]:
            slip.details.remove(detail)
        slip.details.extend(SalaryService._line_items(computed, include_fixed=False))

        slip.gross_salary = computed['gross_salary']
        slip.leave_deduction = computed['leave_deduction']
        slip.total_additions = computed['total_additions']
        slip.total_deductions = computed['total_deductions']
        slip.net_salary = computed['net_salary']
        db.flush()
        logger.info(f"Salary slip {slip.id} recalculated, net {slip.net_salary}")
        return slip
