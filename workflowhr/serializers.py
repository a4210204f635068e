"""JSON shapes shared by several blueprints."""


def iso(value):
    return value.isoformat() if value is not None else None


def num(value):
    return float(value) if value is not None else None


def serialize_user(user):
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "company_id": user.company_id,
        "is_active": user.is_active,
        "created_at": iso(user.created_at),
    }


def serialize_employee(user, profile=None):
    data = serialize_user(user)
    profile = profile if profile is not None else user.employee_profile
    if profile is not None:
        data.update({
            "employee_code": profile.employee_code,
            "department": profile.department,
            "designation": profile.designation,
            "salary": num(profile.salary),
            "joining_date": iso(profile.joining_date),
            "phone_number": profile.phone_number,
            "address": profile.address,
            "emergency_contact": profile.emergency_contact,
            "pan_number": profile.pan_number,
            "bank_account": profile.bank_account,
            "team_lead_id": profile.team_lead_id,
            "hr_owner_id": profile.hr_owner_id,
            "status": profile.status,
        })
    return data


def serialize_leave_request(lr):
    return {
        "id": lr.id,
        "user_id": lr.user_id,
        "employee_name": lr.user.full_name if lr.user else None,
        "employee_email": lr.user.email if lr.user else None,
        "leave_type_id": lr.leave_type_id,
        "leave_type": lr.leave_type.name if lr.leave_type else None,
        "is_paid": lr.leave_type.is_paid if lr.leave_type else None,
        "start_date": iso(lr.start_date),
        "end_date": iso(lr.end_date),
        "total_days": num(lr.total_days),
        "half_day": lr.half_day,
        "half_day_type": lr.half_day_type,
        "reason": lr.reason,
        "status": lr.status,
        "team_lead_id": lr.team_lead_id,
        "team_lead_comment": lr.team_lead_comment,
        "team_lead_action_at": iso(lr.team_lead_action_at),
        "approved_by": lr.approved_by,
        "approved_at": iso(lr.approved_at),
        "hr_remarks": lr.hr_remarks,
        "applied_at": iso(lr.applied_at),
    }


def serialize_salary_slip(slip, include_details=False):
    data = {
        "id": slip.id,
        "user_id": slip.user_id,
        "employee_name": slip.user.full_name if slip.user else None,
        "month": slip.month,
        "year": slip.year,
        "basic_salary": num(slip.basic_salary),
        "monthly_salary": num(slip.monthly_salary),
        "total_working_days": slip.total_working_days,
        "actual_working_days": num(slip.actual_working_days),
        "unpaid_leave_days": num(slip.unpaid_leave_days),
        "paid_leave_days": num(slip.paid_leave_days),
        "gross_salary": num(slip.gross_salary),
        "leave_deduction": num(slip.leave_deduction),
        "total_additions": num(slip.total_additions),
        "total_deductions": num(slip.total_deductions),
        "net_salary": num(slip.net_salary),
        "notes": slip.notes,
        "generated_by": slip.generated_by,
        "created_at": iso(slip.created_at),
    }
    if include_details:
        data["details"] = [
            {
                "id": d.id,
                "component_name": d.component_name,
                "component_type": d.component_type,
                "amount": num(d.amount),
                "is_fixed": d.is_fixed,
            }
            for d in slip.details
        ]
    return data
