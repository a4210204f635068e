import logging
from decimal import Decimal
from flask import Blueprint, request, jsonify
from workflowhr.auth import token_required, roles_required, HR_STAFF_ROLES, HR_ADMIN_ROLES
from workflowhr.database import SessionLocal, Company, CompanyWorkingDays, User, LeaveRequest, USER_ROLES
from workflowhr.serializers import iso, num
from workflowhr.services.leave_service import AWAITING_HR_STATUSES
from workflowhr.tenancy import company_query, current_company_id
from workflowhr.validators import sanitize_input, validate_email, parse_bool, parse_month_year
from workflowhr.working_days import (
    DEFAULT_CONFIG, WEEKDAY_FIELDS, get_working_days_config, working_mask, working_days_in_month,
    validate_working_days_config
)

logger = logging.getLogger(__name__)

company_bp = Blueprint('company', __name__, url_prefix='/api/company')

PROFILE_FIELDS = (
    'description', 'industry', 'website', 'phone', 'email', 'address', 'location',
    'mission', 'vision', 'values'
)


def _serialize_company(company):
    data = {"id": company.id, "name": company.name, "founded_year": company.founded_year}
    for field in PROFILE_FIELDS:
        data[field] = getattr(company, field)
    data["updated_at"] = iso(company.updated_at)
    return data


def _serialize_working_days(config):
    if config is None:
        return {**DEFAULT_CONFIG, "is_default": True}
    data = {
        "working_days_per_week": config.working_days_per_week,
        "working_hours_per_day": num(config.working_hours_per_day),
        "is_default": False,
    }
    for field in WEEKDAY_FIELDS:
        data[field] = getattr(config, field)
    return data


# ============================================================
# COMPANY PROFILE
# ============================================================
@company_bp.route('/profile', methods=['GET'])
@token_required
def get_profile():
    db = SessionLocal()
    try:
        company = db.query(Company).filter(Company.id == current_company_id()).first()
        if not company:
            return jsonify({"message": "Company not found"}), 404
        return jsonify({"company": _serialize_company(company)}), 200
    finally:
        db.close()


@company_bp.route('/profile', methods=['PUT'])
@roles_required(*HR_ADMIN_ROLES)
def update_profile():
    data = request.get_json(silent=True) or {}

    name = sanitize_input(data.get('name'))
    if not name:
        return jsonify({"message": "Company name is required"}), 400
    if data.get('email') and not validate_email(sanitize_input(data['email'])):
        return jsonify({"message": "Invalid email format"}), 400

    founded_year = data.get('founded_year')
    if founded_year not in (None, ''):
        try:
            founded_year = int(founded_year)
        except (TypeError, ValueError):
            return jsonify({"message": "founded_year must be a year"}), 400
        if founded_year < 1800 or founded_year > 2100:
            return jsonify({"message": "founded_year must be a year"}), 400
    else:
        founded_year = None

    db = SessionLocal()
    try:
        company = db.query(Company).filter(Company.id == current_company_id()).first()
        if not company:
            return jsonify({"message": "Company not found"}), 404

        company.name = name
        company.founded_year = founded_year
        for field in PROFILE_FIELDS:
            if field in data:
                setattr(company, field, sanitize_input(data.get(field)) or None)

        db.commit()
        db.refresh(company)
        return jsonify({
            "message": "Company profile updated successfully",
            "company": _serialize_company(company)
        }), 200
    except Exception:
        db.rollback()
        logger.exception("Error updating company profile")
        return jsonify({"message": "Failed to update company profile"}), 500
    finally:
        db.close()


@company_bp.route('/dashboard', methods=['GET'])
@token_required
def dashboard():
    db = SessionLocal()
    try:
        users = company_query(db, User).filter(User.is_active.is_(True))
        by_role = {role: 0 for role in USER_ROLES}
        for user in users.all():
            by_role[user.role] += 1

        pending = company_query(db, LeaveRequest).filter(LeaveRequest.status.in_(AWAITING_HR_STATUSES)).count()
        return jsonify({
            "total_employees": by_role['employee'] + by_role['team_lead'],
            "users_by_role": by_role,
            "pending_leaves": pending
        }), 200
    finally:
        db.close()


# ============================================================
# WORKING DAYS
# ============================================================
@company_bp.route('/working-days', methods=['GET'])
@token_required
def get_working_days():
    db = SessionLocal()
    try:
        config = get_working_days_config(db, current_company_id())
        return jsonify({"working_days": _serialize_working_days(config)}), 200
    finally:
        db.close()


@company_bp.route('/working-days', methods=['PUT'])
@roles_required(*HR_STAFF_ROLES)
def update_working_days():
    data = request.get_json(silent=True) or {}

    payload = {
        'working_days_per_week': data.get('working_days_per_week'),
        'working_hours_per_day': data.get('working_hours_per_day'),
    }
    for field in WEEKDAY_FIELDS:
        payload[field] = parse_bool(data.get(field))

    is_valid, error_msg = validate_working_days_config(payload)
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    db = SessionLocal()
    try:
        config = get_working_days_config(db, current_company_id())
        if config is None:
            config = CompanyWorkingDays(company_id=current_company_id())
            db.add(config)

        config.working_days_per_week = int(payload['working_days_per_week'])
        config.working_hours_per_day = Decimal(str(payload['working_hours_per_day']))
        for field in WEEKDAY_FIELDS:
            setattr(config, field, payload[field])

        db.commit()
        db.refresh(config)
        logger.info(f"Working days updated for company {current_company_id()}")
        return jsonify({
            "message": "Working days configuration updated successfully",
            "working_days": _serialize_working_days(config)
        }), 200
    except Exception:
        db.rollback()
        logger.exception("Error updating working days configuration")
        return jsonify({"message": "Failed to update working days configuration"}), 500
    finally:
        db.close()


@company_bp.route('/working-days/calculate', methods=['GET'])
@token_required
def calculate_month():
    try:
        month, year = parse_month_year(request.args.get('month'), request.args.get('year'))
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        mask = working_mask(get_working_days_config(db, current_company_id()))
        return jsonify({
            "month": month,
            "year": year,
            "working_days": working_days_in_month(mask, year, month)
        }), 200
    finally:
        db.close()
