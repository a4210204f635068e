import logging
from datetime import date
from flask import Blueprint, request, jsonify
from werkzeug.security import generate_password_hash
from workflowhr.auth import token_required, roles_required, HR_STAFF_ROLES
from workflowhr.database import SessionLocal, User, EmployeeProfile, LeaveRequest, Company
from workflowhr.serializers import serialize_employee, iso
from workflowhr.services.email_service import EmailService
from workflowhr.services.leave_service import LeaveService
from workflowhr.services.password_service import PasswordService
from workflowhr.tenancy import company_query, current_company_id
from workflowhr.validators import (
    validate_email, validate_phone, validate_required_fields, sanitize_input, parse_date, parse_amount
)

logger = logging.getLogger(__name__)

employee_bp = Blueprint('employees', __name__, url_prefix='/api/employees')

EMPLOYEE_ROLES = ('employee', 'team_lead')
PROFILE_TEXT_FIELDS = ('phone_number', 'address', 'emergency_contact', 'pan_number', 'bank_account')
SELF_EDITABLE_FIELDS = ('phone_number', 'address', 'emergency_contact')


def _get_employee(db, employee_id):
    return company_query(db, User).filter(User.id == employee_id, User.role.in_(EMPLOYEE_ROLES)).first()


def _get_team_lead(db, team_lead_id):
    return company_query(db, User).filter(
        User.id == team_lead_id, User.role == 'team_lead', User.is_active.is_(True)
    ).first()


def _parse_employee_fields(data):
    """Validated employee fields from a request body; raises ValueError"""
    salary = parse_amount(data.get('salary'), 'Salary')
    if salary < 0:
        raise ValueError("Salary cannot be negative")
    joining_date = parse_date(data.get('joining_date'))

    role = data.get('role', 'employee') or 'employee'
    if role not in EMPLOYEE_ROLES:
        raise ValueError("Role must be 'employee' or 'team_lead'")

    fields = {
        'full_name': sanitize_input(data.get('full_name')),
        'department': sanitize_input(data.get('department')),
        'designation': sanitize_input(data.get('designation')),
        'salary': salary,
        'joining_date': joining_date,
        'role': role,
    }
    for field in PROFILE_TEXT_FIELDS:
        if field in data:
            fields[field] = sanitize_input(data.get(field)) or None
    if fields.get('phone_number') and not validate_phone(fields['phone_number']):
        raise ValueError("Invalid phone number")
    return fields


def _unique_employee_code(db):
    for _ in range(5):
        code = PasswordService.generate_employee_code()
        if not db.query(EmployeeProfile).filter(EmployeeProfile.employee_code == code).first():
            return code
    raise RuntimeError("Could not generate a unique employee code")


# ============================================================
# HR STAFF: EMPLOYEE CRUD
# ============================================================
@employee_bp.route('', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def list_employees():
    db = SessionLocal()
    try:
        query = company_query(db, User).outerjoin(
            EmployeeProfile, EmployeeProfile.user_id == User.id
        ).filter(User.role.in_(EMPLOYEE_ROLES))

        department = request.args.get('department')
        if department:
            query = query.filter(EmployeeProfile.department == department)
        status = request.args.get('status')
        if status:
            query = query.filter(EmployeeProfile.status == status)

        employees = query.order_by(User.created_at.desc(), User.id.desc()).all()
        return jsonify({
            "employees": [serialize_employee(u) for u in employees],
            "total": len(employees)
        }), 200
    except Exception:
        logger.exception("Error listing employees")
        return jsonify({"message": "Failed to fetch employees"}), 500
    finally:
        db.close()


@employee_bp.route('/directory', methods=['GET'])
@token_required
def employee_directory():
    """Company directory visible to every user"""
    db = SessionLocal()
    try:
        users = company_query(db, User).filter(User.is_active.is_(True)).order_by(User.full_name).all()
        directory = []
        for u in users:
            profile = u.employee_profile
            directory.append({
                "id": u.id,
                "full_name": u.full_name,
                "email": u.email,
                "role": u.role,
                "employee_code": profile.employee_code if profile else None,
                "department": profile.department if profile else None,
                "designation": profile.designation if profile else None,
                "phone_number": profile.phone_number if profile else None,
                "joining_date": iso(profile.joining_date) if profile else None,
            })
        return jsonify({"employees": directory}), 200
    finally:
        db.close()


@employee_bp.route('', methods=['POST'])
@roles_required(*HR_STAFF_ROLES)
def add_employee():
    """Create an employee account with a generated password"""
    data = request.get_json(silent=True) or {}

    required = ['email', 'full_name', 'department', 'designation', 'salary', 'joining_date']
    is_valid, error_msg = validate_required_fields(data, required)
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    email = sanitize_input(data.get('email')).lower()
    if not validate_email(email):
        return jsonify({"message": "Invalid email format"}), 400

    try:
        fields = _parse_employee_fields(data)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == email).first():
            return jsonify({"message": "An account with this email already exists"}), 409

        team_lead_id = data.get('team_lead_id')
        if team_lead_id and not _get_team_lead(db, team_lead_id):
            return jsonify({"message": "Team lead not found"}), 400

        temporary_password = PasswordService.generate_password()
        user = User(
            company_id=current_company_id(),
            email=email,
            password_hash=generate_password_hash(temporary_password),
            full_name=fields.pop('full_name'),
            role=fields.pop('role'),
            created_by=request.current_user_id
        )
        db.add(user)
        db.flush()

        profile = EmployeeProfile(
            company_id=current_company_id(),
            user_id=user.id,
            employee_code=_unique_employee_code(db),
            team_lead_id=team_lead_id or None,
            hr_owner_id=request.current_user_id,
            **fields
        )
        db.add(profile)
        LeaveService.seed_balances(db, current_company_id(), user.id, date.today().year)
        db.commit()
        db.refresh(user)

        company = db.query(Company).filter(Company.id == current_company_id()).first()
        email_sent = EmailService.send_welcome_email(
            email, user.full_name, company.name, profile.employee_code, temporary_password
        )

        logger.info(f"Employee {user.id} ({profile.employee_code}) added by user {request.current_user_id}")
        return jsonify({
            "message": "Employee added successfully",
            "employee": serialize_employee(user, profile),
            "temporary_password": temporary_password,
            "email_sent": email_sent
        }), 201

    except Exception:
        db.rollback()
        logger.exception("Error adding employee")
        return jsonify({"message": "Failed to add employee"}), 500
    finally:
        db.close()


@employee_bp.route('/<int:employee_id>', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def get_employee(employee_id):
    db = SessionLocal()
    try:
        user = _get_employee(db, employee_id)
        if not user:
            return jsonify({"message": "Employee not found"}), 404
        return jsonify({"employee": serialize_employee(user)}), 200
    finally:
        db.close()


@employee_bp.route('/<int:employee_id>', methods=['PUT'])
@roles_required(*HR_STAFF_ROLES)
def update_employee(employee_id):
    data = request.get_json(silent=True) or {}

    required = ['full_name', 'department', 'designation', 'salary', 'joining_date']
    is_valid, error_msg = validate_required_fields(data, required)
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    try:
        fields = _parse_employee_fields(data)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        user = _get_employee(db, employee_id)
        if not user:
            return jsonify({"message": "Employee not found"}), 404

        if 'email' in data:
            email = sanitize_input(data.get('email')).lower()
            if not validate_email(email):
                return jsonify({"message": "Invalid email format"}), 400
            clash = db.query(User).filter(User.email == email, User.id != user.id).first()
            if clash:
                return jsonify({"message": "An account with this email already exists"}), 409
            user.email = email

        user.full_name = fields.pop('full_name')
        user.role = fields.pop('role')

        profile = user.employee_profile
        if profile is None:
            profile = EmployeeProfile(
                company_id=user.company_id,
                user_id=user.id,
                employee_code=_unique_employee_code(db),
                hr_owner_id=request.current_user_id
            )
            db.add(profile)
        for key, value in fields.items():
            setattr(profile, key, value)

        if 'status' in data:
            if data['status'] not in ('active', 'inactive', 'terminated'):
                return jsonify({"message": "Invalid employee status"}), 400
            profile.status = data['status']

        db.commit()
        db.refresh(user)
        return jsonify({
            "message": "Employee updated successfully",
            "employee": serialize_employee(user)
        }), 200

    except Exception:
        db.rollback()
        logger.exception(f"Error updating employee {employee_id}")
        return jsonify({"message": "Failed to update employee"}), 500
    finally:
        db.close()


@employee_bp.route('/<int:employee_id>', methods=['DELETE'])
@roles_required(*HR_STAFF_ROLES)
def delete_employee(employee_id):
    db = SessionLocal()
    try:
        user = _get_employee(db, employee_id)
        if not user:
            return jsonify({"message": "Employee not found"}), 404

        # Detach the people and requests that point at this user as their lead
        company_query(db, EmployeeProfile).filter(
            EmployeeProfile.team_lead_id == user.id
        ).update({'team_lead_id': None}, synchronize_session=False)
        company_query(db, LeaveRequest).filter(
            LeaveRequest.team_lead_id == user.id
        ).update({'team_lead_id': None}, synchronize_session=False)

        db.delete(user)
        db.commit()
        logger.info(f"Employee {employee_id} deleted by user {request.current_user_id}")
        return jsonify({"message": "Employee deleted successfully"}), 200

    except Exception:
        db.rollback()
        logger.exception(f"Error deleting employee {employee_id}")
        return jsonify({"message": "Failed to delete employee"}), 500
    finally:
        db.close()


@employee_bp.route('/<int:employee_id>/reset-password', methods=['POST'])
@roles_required(*HR_STAFF_ROLES)
def reset_employee_password(employee_id):
    db = SessionLocal()
    try:
        user = _get_employee(db, employee_id)
        if not user:
            return jsonify({"message": "Employee not found"}), 404

        temporary_password = PasswordService.generate_password()
        user.password_hash = generate_password_hash(temporary_password)
        db.commit()

        email_sent = EmailService.send_password_reset_email(user.email, user.full_name, temporary_password)
        return jsonify({
            "message": "Password reset successfully",
            "temporary_password": temporary_password,
            "email_sent": email_sent
        }), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error resetting password for employee {employee_id}")
        return jsonify({"message": "Failed to reset password"}), 500
    finally:
        db.close()


@employee_bp.route('/<int:employee_id>/team-lead', methods=['PUT'])
@roles_required(*HR_STAFF_ROLES)
def assign_team_lead(employee_id):
    data = request.get_json(silent=True) or {}
    team_lead_id = data.get('team_lead_id')

    db = SessionLocal()
    try:
        user = _get_employee(db, employee_id)
        if not user or not user.employee_profile:
            return jsonify({"message": "Employee not found"}), 404

        if team_lead_id:
            if team_lead_id == user.id:
                return jsonify({"message": "An employee cannot be their own team lead"}), 400
            if not _get_team_lead(db, team_lead_id):
                return jsonify({"message": "Team lead not found"}), 400

        user.employee_profile.team_lead_id = team_lead_id or None
        db.commit()
        return jsonify({
            "message": "Team lead updated successfully",
            "employee": serialize_employee(user)
        }), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error assigning team lead for employee {employee_id}")
        return jsonify({"message": "Failed to assign team lead"}), 500
    finally:
        db.close()


# ============================================================
# SELF SERVICE
# ============================================================
@employee_bp.route('/me', methods=['GET'])
@token_required
def get_my_profile():
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == request.current_user_id).first()
        return jsonify({"employee": serialize_employee(user)}), 200
    finally:
        db.close()


@employee_bp.route('/me', methods=['PUT'])
@token_required
def update_my_profile():
    data = request.get_json(silent=True) or {}

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == request.current_user_id).first()
        profile = user.employee_profile
        if profile is None:
            return jsonify({"message": "No employee profile found for this account"}), 404

        phone = sanitize_input(data.get('phone_number'))
        if phone and not validate_phone(phone):
            return jsonify({"message": "Invalid phone number"}), 400

        for field in SELF_EDITABLE_FIELDS:
            if field in data:
                setattr(profile, field, sanitize_input(data.get(field)) or None)

        db.commit()
        db.refresh(user)
        return jsonify({
            "message": "Profile updated successfully",
            "employee": serialize_employee(user)
        }), 200
    except Exception:
        db.rollback()
        logger.exception("Error updating own profile")
        return jsonify({"message": "Failed to update profile"}), 500
    finally:
        db.close()
