import logging
from flask import Blueprint, request, jsonify
from werkzeug.security import generate_password_hash
from workflowhr.auth import roles_required, HR_ADMIN_ROLES
from workflowhr.database import SessionLocal, User, EmployeeProfile, LeaveRequest, USER_ROLES
from workflowhr.serializers import serialize_user, serialize_leave_request
from workflowhr.services.leave_service import AWAITING_HR_STATUSES
from workflowhr.tenancy import company_query, get_company_record, current_company_id
from workflowhr.validators import validate_email, validate_password, validate_required_fields, sanitize_input

logger = logging.getLogger(__name__)

hr_staff_bp = Blueprint('hr_staff', __name__, url_prefix='/api/hr-staff')

HR_STAFF_LIST_ROLES = ('hr_manager', 'hr')


@hr_staff_bp.route('', methods=['GET'])
@roles_required(*HR_ADMIN_ROLES)
def list_hr_staff():
    db = SessionLocal()
    try:
        staff = company_query(db, User).filter(
            User.role.in_(HR_STAFF_LIST_ROLES)
        ).order_by(User.created_at.desc(), User.id.desc()).all()
        return jsonify({"hr_staff": [serialize_user(u) for u in staff]}), 200
    finally:
        db.close()


@hr_staff_bp.route('', methods=['POST'])
@roles_required(*HR_ADMIN_ROLES)
def add_hr_staff():
    """Create an HR or HR manager account"""
    data = request.get_json(silent=True) or {}

    is_valid, error_msg = validate_required_fields(data, ['full_name', 'email', 'password'])
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    email = sanitize_input(data.get('email')).lower()
    role = data.get('role', 'hr') or 'hr'

    if not validate_email(email):
        return jsonify({"message": "Invalid email format"}), 400
    if role not in HR_STAFF_LIST_ROLES:
        return jsonify({"message": "Role must be 'hr' or 'hr_manager'"}), 400
    if role == 'hr_manager' and request.current_user_role != 'admin':
        return jsonify({"message": "Only an admin can create HR managers"}), 403

    is_valid, password_msg = validate_password(data.get('password'))
    if not is_valid:
        return jsonify({"message": password_msg}), 400

    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == email).first():
            return jsonify({"message": "An account with this email already exists"}), 409

        user = User(
            company_id=current_company_id(),
            email=email,
            password_hash=generate_password_hash(data['password']),
            full_name=sanitize_input(data.get('full_name')),
            role=role,
            created_by=request.current_user_id
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"{role} account {user.id} created by user {request.current_user_id}")
        return jsonify({
            "message": f"{'HR manager' if role == 'hr_manager' else 'HR'} added successfully",
            "user": serialize_user(user)
        }), 201
    except Exception:
        db.rollback()
        logger.exception("Error adding HR staff")
        return jsonify({"message": "Failed to add HR staff"}), 500
    finally:
        db.close()


@hr_staff_bp.route('/<int:user_id>/role', methods=['PUT'])
@roles_required('admin')
def update_role(user_id):
    data = request.get_json(silent=True) or {}
    role = data.get('role')

    if role not in USER_ROLES:
        return jsonify({"message": f"Role must be one of: {', '.join(USER_ROLES)}"}), 400
    if user_id == request.current_user_id:
        return jsonify({"message": "You cannot change your own role"}), 400

    db = SessionLocal()
    try:
        user = get_company_record(db, User, user_id)
        if not user:
            return jsonify({"message": "User not found"}), 404

        previous = user.role
        user.role = role
        db.commit()
        logger.info(f"User {user_id} role changed {previous} -> {role} by {request.current_user_id}")
        return jsonify({"message": "Role updated successfully", "user": serialize_user(user)}), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error updating role for user {user_id}")
        return jsonify({"message": "Failed to update role"}), 500
    finally:
        db.close()


@hr_staff_bp.route('/<int:user_id>/status', methods=['PUT'])
@roles_required(*HR_ADMIN_ROLES)
def update_status(user_id):
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('is_active'), bool):
        return jsonify({"message": "is_active must be true or false"}), 400
    if user_id == request.current_user_id:
        return jsonify({"message": "You cannot change your own status"}), 400

    db = SessionLocal()
    try:
        user = get_company_record(db, User, user_id)
        if not user:
            return jsonify({"message": "User not found"}), 404
        if user.role == 'admin' and request.current_user_role != 'admin':
            return jsonify({"message": "Only an admin can change an admin account"}), 403

        user.is_active = data['is_active']
        db.commit()
        return jsonify({
            "message": "Account activated" if user.is_active else "Account deactivated",
            "user": serialize_user(user)
        }), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error updating status for user {user_id}")
        return jsonify({"message": "Failed to update status"}), 500
    finally:
        db.close()


@hr_staff_bp.route('/dashboard', methods=['GET'])
@roles_required(*HR_ADMIN_ROLES)
def dashboard():
    db = SessionLocal()
    try:
        total_employees = company_query(db, User).filter(User.role.in_(('employee', 'team_lead'))).count()
        total_hrs = company_query(db, User).filter(User.role.in_(HR_STAFF_LIST_ROLES)).count()

        awaiting = company_query(db, LeaveRequest).filter(LeaveRequest.status.in_(AWAITING_HR_STATUSES))
        pending_leaves = awaiting.count()
        recent = awaiting.order_by(LeaveRequest.applied_at.desc(), LeaveRequest.id.desc()).limit(5).all()

        return jsonify({
            "total_employees": total_employees,
            "total_hrs": total_hrs,
            "pending_leaves": pending_leaves,
            "recent_leaves": [serialize_leave_request(lr) for lr in recent]
        }), 200
    except Exception:
        logger.exception("Error loading HR dashboard")
        return jsonify({"message": "Failed to load dashboard"}), 500
    finally:
        db.close()


@hr_staff_bp.route('/employees/reassign', methods=['PUT'])
@roles_required(*HR_ADMIN_ROLES)
def reassign_employee():
    """Move an employee to another HR owner"""
    data = request.get_json(silent=True) or {}

    is_valid, error_msg = validate_required_fields(data, ['employee_id', 'new_hr_id'])
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    db = SessionLocal()
    try:
        profile = company_query(db, EmployeeProfile).filter(
            EmployeeProfile.user_id == data['employee_id']
        ).first()
        if not profile:
            return jsonify({"message": "Employee not found"}), 404

        new_hr = company_query(db, User).filter(
            User.id == data['new_hr_id'], User.role == 'hr', User.is_active.is_(True)
        ).first()
        if not new_hr:
            return jsonify({"message": "HR not found"}), 404

        profile.hr_owner_id = new_hr.id
        db.commit()
        return jsonify({
            "message": "Employee reassigned successfully",
            "employee_id": profile.user_id,
            "hr_owner_id": new_hr.id
        }), 200
    except Exception:
        db.rollback()
        logger.exception("Error reassigning employee")
        return jsonify({"message": "Failed to reassign employee"}), 500
    finally:
        db.close()
