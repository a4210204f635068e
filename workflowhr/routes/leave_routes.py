import logging
from datetime import date
from flask import Blueprint, request, jsonify
from sqlalchemy import func
from workflowhr.auth import token_required, roles_required, is_hr_staff, HR_STAFF_ROLES
from workflowhr.config import Config
from workflowhr.database import SessionLocal, User, LeaveType, LeaveBalance, LeaveRequest, LeaveHistory, LEAVE_STATUSES
from workflowhr.serializers import serialize_leave_request, iso, num
from workflowhr.services.email_service import EmailService
from workflowhr.services.leave_service import LeaveService
from workflowhr.tenancy import company_query, get_company_record, current_company_id
from workflowhr.validators import (
    validate_required_fields, sanitize_input, parse_date, parse_bool, parse_month_year
)
from workflowhr.working_days import company_mask, calculate_leave_days

logger = logging.getLogger(__name__)

leave_bp = Blueprint('leave', __name__, url_prefix='/api/leaves')


def _serialize_leave_type(lt):
    return {
        "id": lt.id,
        "name": lt.name,
        "description": lt.description,
        "max_days_per_year": lt.max_days_per_year,
        "is_paid": lt.is_paid,
        "is_active": lt.is_active,
    }


def _parse_leave_type(data, partial=False):
    fields = {}
    if 'name' in data or not partial:
        name = sanitize_input(data.get('name'))
        if not name:
            raise ValueError("Leave type name is required")
        fields['name'] = name
    if 'max_days_per_year' in data or not partial:
        try:
            max_days = int(data.get('max_days_per_year', Config.DEFAULT_ANNUAL_LEAVE_DAYS))
        except (TypeError, ValueError):
            raise ValueError("max_days_per_year must be an integer")
        if max_days < 0 or max_days > 366:
            raise ValueError("max_days_per_year must be between 0 and 366")
        fields['max_days_per_year'] = max_days
    if 'description' in data:
        fields['description'] = sanitize_input(data.get('description')) or None
    if 'is_paid' in data or not partial:
        fields['is_paid'] = parse_bool(data.get('is_paid'), default=True)
    return fields


def _balances_payload(db, user_id, year):
    balances = company_query(db, LeaveBalance).filter(
        LeaveBalance.user_id == user_id,
        LeaveBalance.year == year
    ).all()
    return [
        {
            "leave_type_id": b.leave_type_id,
            "leave_type": b.leave_type.name,
            "is_paid": b.leave_type.is_paid,
            "year": b.year,
            "total_days": num(b.total_days),
            "used_days": num(b.used_days),
            "remaining_days": num(b.remaining_days),
        }
        for b in balances
    ]


# ============================================================
# LEAVE TYPES
# ============================================================
@leave_bp.route('/types', methods=['GET'])
@token_required
def get_leave_types():
    db = SessionLocal()
    try:
        query = company_query(db, LeaveType)
        if not (is_hr_staff() and parse_bool(request.args.get('include_inactive'))):
            query = query.filter(LeaveType.is_active.is_(True))
        leave_types = query.order_by(LeaveType.name).all()
        return jsonify({"leave_types": [_serialize_leave_type(lt) for lt in leave_types]}), 200
    finally:
        db.close()


@leave_bp.route('/types', methods=['POST'])
@roles_required(*HR_STAFF_ROLES)
def create_leave_type():
    data = request.get_json(silent=True) or {}
    try:
        fields = _parse_leave_type(data)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        if company_query(db, LeaveType).filter(LeaveType.name == fields['name']).first():
            return jsonify({"message": "A leave type with this name already exists"}), 409

        leave_type = LeaveType(company_id=current_company_id(), **fields)
        db.add(leave_type)
        db.commit()
        db.refresh(leave_type)
        return jsonify({
            "message": "Leave type created successfully",
            "leave_type": _serialize_leave_type(leave_type)
        }), 201
    except Exception:
        db.rollback()
        logger.exception("Error creating leave type")
        return jsonify({"message": "Failed to create leave type"}), 500
    finally:
        db.close()


@leave_bp.route('/types/<int:type_id>', methods=['PUT'])
@roles_required(*HR_STAFF_ROLES)
def update_leave_type(type_id):
    data = request.get_json(silent=True) or {}
    try:
        fields = _parse_leave_type(data, partial=True)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        leave_type = get_company_record(db, LeaveType, type_id)
        if not leave_type:
            return jsonify({"message": "Leave type not found"}), 404

        if 'name' in fields:
            clash = company_query(db, LeaveType).filter(
                LeaveType.name == fields['name'], LeaveType.id != type_id
            ).first()
            if clash:
                return jsonify({"message": "A leave type with this name already exists"}), 409
        if 'is_active' in data:
            fields['is_active'] = parse_bool(data.get('is_active'), default=True)

        for key, value in fields.items():
            setattr(leave_type, key, value)
        db.commit()
        return jsonify({
            "message": "Leave type updated successfully",
            "leave_type": _serialize_leave_type(leave_type)
        }), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error updating leave type {type_id}")
        return jsonify({"message": "Failed to update leave type"}), 500
    finally:
        db.close()


@leave_bp.route('/types/<int:type_id>', methods=['DELETE'])
@roles_required(*HR_STAFF_ROLES)
def deactivate_leave_type(type_id):
    db = SessionLocal()
    try:
        leave_type = get_company_record(db, LeaveType, type_id)
        if not leave_type:
            return jsonify({"message": "Leave type not found"}), 404
        leave_type.is_active = False
        db.commit()
        return jsonify({"message": "Leave type deactivated successfully"}), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error deactivating leave type {type_id}")
        return jsonify({"message": "Failed to deactivate leave type"}), 500
    finally:
        db.close()


# ============================================================
# BALANCES & CALCULATION
# ============================================================
@leave_bp.route('/balance', methods=['GET'])
@token_required
def get_my_balance():
    year = request.args.get('year', date.today().year, type=int)
    db = SessionLocal()
    try:
        return jsonify({"balances": _balances_payload(db, request.current_user_id, year)}), 200
    finally:
        db.close()


@leave_bp.route('/balance/<int:user_id>', methods=['GET'])
@token_required
def get_user_balance(user_id):
    if user_id != request.current_user_id and not is_hr_staff():
        return jsonify({"message": "You do not have permission to perform this action"}), 403

    year = request.args.get('year', date.today().year, type=int)
    db = SessionLocal()
    try:
        if not get_company_record(db, User, user_id):
            return jsonify({"message": "User not found"}), 404
        return jsonify({"balances": _balances_payload(db, user_id, year)}), 200
    finally:
        db.close()


@leave_bp.route('/calculate', methods=['GET'])
@token_required
def calculate_days():
    """Preview how many leave days a date range would consume"""
    try:
        start = parse_date(request.args.get('start_date'))
        end = parse_date(request.args.get('end_date'))
    except ValueError as e:
        return jsonify({"message": str(e)}), 400
    if not start or not end:
        return jsonify({"message": "start_date and end_date are required"}), 400
    if end < start:
        return jsonify({"message": "End date cannot be before start date"}), 400

    half_day = parse_bool(request.args.get('half_day'))
    half_day_type = request.args.get('half_day_type', 'start')

    db = SessionLocal()
    try:
        mask = company_mask(db, current_company_id())
        days = calculate_leave_days(mask, start, end, half_day, half_day_type)
        return jsonify({
            "start_date": iso(start),
            "end_date": iso(end),
            "half_day": half_day,
            "total_days": float(days)
        }), 200
    finally:
        db.close()


# ============================================================
# LEAVE REQUESTS
# ============================================================
@leave_bp.route('/requests', methods=['POST'])
@token_required
def create_leave_request():
    data = request.get_json(silent=True) or {}

    is_valid, error_msg = validate_required_fields(data, ['leave_type_id', 'start_date', 'end_date', 'reason'])
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    try:
        start = parse_date(data.get('start_date'))
        end = parse_date(data.get('end_date'))
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        leave_type = get_company_record(db, LeaveType, data.get('leave_type_id'))
        if not leave_type or not leave_type.is_active:
            return jsonify({"message": "Invalid leave type"}), 400

        user = db.query(User).filter(User.id == request.current_user_id).first()
        mask = company_mask(db, current_company_id())
        try:
            leave_request = LeaveService.create_request(
                db, user, leave_type, start, end, sanitize_input(data.get('reason')), mask,
                half_day=parse_bool(data.get('half_day')),
                half_day_type=data.get('half_day_type')
            )
        except ValueError as e:
            db.rollback()
            return jsonify({"message": str(e)}), 400

        db.commit()
        db.refresh(leave_request)
        logger.info(f"Leave request {leave_request.id} submitted by user {user.id}")
        return jsonify({
            "message": "Leave request submitted successfully",
            "leave_request": serialize_leave_request(leave_request)
        }), 201
    except Exception:
        db.rollback()
        logger.exception("Error creating leave request")
        return jsonify({"message": "Failed to submit leave request"}), 500
    finally:
        db.close()


@leave_bp.route('/requests', methods=['GET'])
@token_required
def list_leave_requests():
    """Own requests for employees and team leads, the whole company for HR staff"""
    db = SessionLocal()
    try:
        query = company_query(db, LeaveRequest)

        if is_hr_staff():
            employee_id = request.args.get('employee_id', type=int)
            if employee_id:
                query = query.filter(LeaveRequest.user_id == employee_id)
        else:
            query = query.filter(LeaveRequest.user_id == request.current_user_id)

        status = request.args.get('status')
        if status:
            if status not in LEAVE_STATUSES:
                return jsonify({"message": "Invalid status filter"}), 400
            query = query.filter(LeaveRequest.status == status)

        try:
            start = parse_date(request.args.get('start_date'))
            end = parse_date(request.args.get('end_date'))
        except ValueError as e:
            return jsonify({"message": str(e)}), 400
        if start:
            query = query.filter(LeaveRequest.end_date >= start)
        if end:
            query = query.filter(LeaveRequest.start_date <= end)

        leave_requests = query.order_by(LeaveRequest.applied_at.desc(), LeaveRequest.id.desc()).all()
        return jsonify({"leave_requests": [serialize_leave_request(lr) for lr in leave_requests]}), 200
    finally:
        db.close()


@leave_bp.route('/requests/<int:request_id>', methods=['PUT'])
@roles_required(*HR_STAFF_ROLES)
def decide_leave_request(request_id):
    """HR approval or rejection"""
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if status not in ('approved', 'rejected'):
        return jsonify({"message": "Status must be 'approved' or 'rejected'"}), 400

    db = SessionLocal()
    try:
        leave_request = get_company_record(db, LeaveRequest, request_id)
        if not leave_request:
            return jsonify({"message": "Leave request not found"}), 404

        actor = db.query(User).filter(User.id == request.current_user_id).first()
        try:
            LeaveService.transition(
                db, leave_request, status, actor, 'hr', sanitize_input(data.get('hr_remarks')) or None
            )
        except ValueError as e:
            db.rollback()
            return jsonify({"message": str(e)}), 400
        except PermissionError as e:
            db.rollback()
            return jsonify({"message": str(e)}), 403

        db.commit()
        db.refresh(leave_request)

        EmailService.send_leave_status_email(
            leave_request.user.email, leave_request.user.full_name, leave_request.leave_type.name,
            leave_request.start_date, leave_request.end_date, leave_request.status,
            leave_request.hr_remarks
        )
        return jsonify({
            "message": f"Leave request {status} successfully",
            "leave_request": serialize_leave_request(leave_request)
        }), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error processing leave request {request_id}")
        return jsonify({"message": "Failed to process leave request"}), 500
    finally:
        db.close()


@leave_bp.route('/requests/<int:request_id>', methods=['DELETE'])
@token_required
def cancel_leave_request(request_id):
    db = SessionLocal()
    try:
        leave_request = get_company_record(db, LeaveRequest, request_id)
        if not leave_request or leave_request.user_id != request.current_user_id:
            return jsonify({"message": "Leave request not found"}), 404

        actor = db.query(User).filter(User.id == request.current_user_id).first()
        try:
            LeaveService.transition(db, leave_request, 'cancelled', actor, 'owner')
        except ValueError:
            db.rollback()
            return jsonify({"message": "Only pending leave requests can be cancelled"}), 400

        db.commit()
        return jsonify({"message": "Leave request cancelled successfully"}), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error cancelling leave request {request_id}")
        return jsonify({"message": "Failed to cancel leave request"}), 500
    finally:
        db.close()


@leave_bp.route('/history/<int:user_id>', methods=['GET'])
@token_required
def leave_history(user_id):
    if user_id != request.current_user_id and not is_hr_staff():
        return jsonify({"message": "You do not have permission to perform this action"}), 403

    db = SessionLocal()
    try:
        entries = company_query(db, LeaveHistory).filter(
            LeaveHistory.user_id == user_id
        ).order_by(LeaveHistory.created_at.desc(), LeaveHistory.id.desc()).all()
        return jsonify({
            "history": [
                {
                    "id": h.id,
                    "leave_request_id": h.leave_request_id,
                    "action": h.action,
                    "from_status": h.from_status,
                    "to_status": h.to_status,
                    "action_by": h.action_by,
                    "comment": h.comment,
                    "created_at": iso(h.created_at),
                }
                for h in entries
            ]
        }), 200
    finally:
        db.close()


@leave_bp.route('/unpaid-days', methods=['GET'])
@token_required
def unpaid_days():
    employee_id = request.args.get('employee_id', request.current_user_id, type=int)
    if employee_id != request.current_user_id and not is_hr_staff():
        return jsonify({"message": "You do not have permission to perform this action"}), 403

    try:
        month, year = parse_month_year(request.args.get('month'), request.args.get('year'))
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        if not get_company_record(db, User, employee_id):
            return jsonify({"message": "User not found"}), 404
        mask = company_mask(db, current_company_id())
        days = LeaveService.unpaid_leave_days(db, current_company_id(), employee_id, year, month, mask)
        return jsonify({
            "employee_id": employee_id,
            "month": month,
            "year": year,
            "unpaid_leave_days": float(days)
        }), 200
    finally:
        db.close()


@leave_bp.route('/summary', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def leave_summary():
    db = SessionLocal()
    try:
        rows = company_query(db, LeaveRequest).with_entities(
            LeaveRequest.status, func.count(LeaveRequest.id)
        ).group_by(LeaveRequest.status).all()
        counts = {status: 0 for status in LEAVE_STATUSES}
        counts.update({status: count for status, count in rows})
        return jsonify({"summary": counts, "total": sum(counts.values())}), 200
    finally:
        db.close()
