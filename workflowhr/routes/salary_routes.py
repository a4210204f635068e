import logging
from decimal import Decimal
from flask import Blueprint, request, jsonify
from sqlalchemy import func
from workflowhr.auth import token_required, roles_required, HR_STAFF_ROLES
from workflowhr.database import (
    SessionLocal, User, EmployeeProfile, SalaryComponent, EmployeeFixedDeduction, SalarySlip
)
from workflowhr.serializers import serialize_salary_slip, num, iso
from workflowhr.services.email_service import EmailService
from workflowhr.services.salary_service import SalaryService
from workflowhr.tenancy import company_query, get_company_record, current_company_id
from workflowhr.validators import (
    validate_required_fields, sanitize_input, parse_decimal, parse_amount, parse_bool, parse_month_year
)

logger = logging.getLogger(__name__)

salary_bp = Blueprint('salary', __name__, url_prefix='/api/salary')

SLIP_LIST_LIMIT = 50


def _serialize_component(c):
    return {
        "id": c.id,
        "name": c.name,
        "component_type": c.component_type,
        "description": c.description,
        "is_active": c.is_active,
    }


def _serialize_fixed_deduction(d):
    return {
        "id": d.id,
        "user_id": d.user_id,
        "name": d.name,
        "deduction_type": d.deduction_type,
        "amount": num(d.amount),
        "percentage": num(d.percentage),
        "is_active": d.is_active,
        "created_at": iso(d.created_at),
    }


def _parse_fixed_deduction(data):
    """Fixed deduction fields; raises ValueError"""
    name = sanitize_input(data.get('name'))
    if not name:
        raise ValueError("Deduction name is required")
    deduction_type = data.get('deduction_type')
    if deduction_type == 'fixed':
        amount = parse_amount(data.get('amount'), 'Amount')
        if amount <= 0:
            raise ValueError("Amount must be greater than 0")
        return {'name': name, 'deduction_type': 'fixed', 'amount': amount, 'percentage': None}
    if deduction_type == 'percentage':
        percentage = parse_decimal(data.get('percentage'), 'Percentage')
        if percentage <= 0 or percentage > 100:
            raise ValueError("Percentage must be greater than 0 and at most 100")
        return {'name': name, 'deduction_type': 'percentage', 'amount': None, 'percentage': percentage}
    raise ValueError("deduction_type must be 'fixed' or 'percentage'")


def _get_employee_profile(db, employee_id):
    return company_query(db, EmployeeProfile).filter(EmployeeProfile.user_id == employee_id).first()


def _computed_payload(computed):
    payload = {}
    for key, value in computed.items():
        if isinstance(value, list):
            payload[key] = [{"name": item["name"], "amount": float(item["amount"])} for item in value]
        elif isinstance(value, Decimal):
            payload[key] = float(value)
        else:
            payload[key] = value
    return payload


# ============================================================
# SALARY COMPONENTS
# ============================================================
@salary_bp.route('/components', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def list_components():
    db = SessionLocal()
    try:
        components = company_query(db, SalaryComponent).filter(
            SalaryComponent.is_active.is_(True)
        ).order_by(SalaryComponent.component_type, SalaryComponent.name).all()
        return jsonify({"components": [_serialize_component(c) for c in components]}), 200
    finally:
        db.close()


@salary_bp.route('/components', methods=['POST'])
@roles_required(*HR_STAFF_ROLES)
def create_component():
    data = request.get_json(silent=True) or {}

    is_valid, error_msg = validate_required_fields(data, ['name', 'component_type'])
    if not is_valid:
        return jsonify({"message": error_msg}), 400
    if data['component_type'] not in ('addition', 'deduction'):
        return jsonify({"message": "component_type must be 'addition' or 'deduction'"}), 400

    name = sanitize_input(data['name'])
    db = SessionLocal()
    try:
        existing = company_query(db, SalaryComponent).filter(SalaryComponent.name == name).first()
        if existing and existing.is_active:
            return jsonify({"message": "A salary component with this name already exists"}), 409

        if existing:
            component = existing
            component.is_active = True
        else:
            component = SalaryComponent(company_id=current_company_id(), name=name)
            db.add(component)
        component.component_type = data['component_type']
        component.description = sanitize_input(data.get('description')) or None

        db.commit()
        db.refresh(component)
        return jsonify({
            "message": "Salary component created successfully",
            "component": _serialize_component(component)
        }), 201
    except Exception:
        db.rollback()
        logger.exception("Error creating salary component")
        return jsonify({"message": "Failed to create salary component"}), 500
    finally:
        db.close()


@salary_bp.route('/components/<int:component_id>', methods=['PUT'])
@roles_required(*HR_STAFF_ROLES)
def update_component(component_id):
    data = request.get_json(silent=True) or {}
    if 'component_type' in data and data['component_type'] not in ('addition', 'deduction'):
        return jsonify({"message": "component_type must be 'addition' or 'deduction'"}), 400

    db = SessionLocal()
    try:
        component = get_company_record(db, SalaryComponent, component_id)
        if not component:
            return jsonify({"message": "Salary component not found"}), 404

        if 'name' in data:
            name = sanitize_input(data['name'])
            if not name:
                return jsonify({"message": "Component name is required"}), 400
            clash = company_query(db, SalaryComponent).filter(
                SalaryComponent.name == name, SalaryComponent.id != component_id
            ).first()
            if clash:
                return jsonify({"message": "A salary component with this name already exists"}), 409
            component.name = name
        if 'component_type' in data:
            component.component_type = data['component_type']
        if 'description' in data:
            component.description = sanitize_input(data['description']) or None

        db.commit()
        return jsonify({
            "message": "Salary component updated successfully",
            "component": _serialize_component(component)
        }), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error updating salary component {component_id}")
        return jsonify({"message": "Failed to update salary component"}), 500
    finally:
        db.close()


@salary_bp.route('/components/<int:component_id>', methods=['DELETE'])
@roles_required(*HR_STAFF_ROLES)
def delete_component(component_id):
    db = SessionLocal()
    try:
        component = get_company_record(db, SalaryComponent, component_id)
        if not component:
            return jsonify({"message": "Salary component not found"}), 404
        component.is_active = False
        db.commit()
        return jsonify({"message": "Salary component deleted successfully"}), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error deleting salary component {component_id}")
        return jsonify({"message": "Failed to delete salary component"}), 500
    finally:
        db.close()


# ============================================================
# FIXED DEDUCTIONS
# ============================================================
@salary_bp.route('/deductions/<int:employee_id>', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def list_fixed_deductions(employee_id):
    db = SessionLocal()
    try:
        if not get_company_record(db, User, employee_id):
            return jsonify({"message": "Employee not found"}), 404
        deductions = company_query(db, EmployeeFixedDeduction).filter(
            EmployeeFixedDeduction.user_id == employee_id,
            EmployeeFixedDeduction.is_active.is_(True)
        ).order_by(EmployeeFixedDeduction.id).all()
        return jsonify({"deductions": [_serialize_fixed_deduction(d) for d in deductions]}), 200
    finally:
        db.close()


@salary_bp.route('/deductions', methods=['POST'])
@roles_required(*HR_STAFF_ROLES)
def create_fixed_deduction():
    data = request.get_json(silent=True) or {}
    try:
        fields = _parse_fixed_deduction(data)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        if not _get_employee_profile(db, data.get('employee_id')):
            return jsonify({"message": "Employee not found"}), 404

        deduction = EmployeeFixedDeduction(
            company_id=current_company_id(),
            user_id=data['employee_id'],
            created_by=request.current_user_id,
            **fields
        )
        db.add(deduction)
        db.commit()
        db.refresh(deduction)
        return jsonify({
            "message": "Fixed deduction added successfully",
            "deduction": _serialize_fixed_deduction(deduction)
        }), 201
    except Exception:
        db.rollback()
        logger.exception("Error adding fixed deduction")
        return jsonify({"message": "Failed to add fixed deduction"}), 500
    finally:
        db.close()


@salary_bp.route('/deductions/<int:deduction_id>', methods=['PUT'])
@roles_required(*HR_STAFF_ROLES)
def update_fixed_deduction(deduction_id):
    data = request.get_json(silent=True) or {}
    try:
        fields = _parse_fixed_deduction(data)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        deduction = get_company_record(db, EmployeeFixedDeduction, deduction_id)
        if not deduction:
            return jsonify({"message": "Fixed deduction not found"}), 404
        for key, value in fields.items():
            setattr(deduction, key, value)
        if 'is_active' in data:
            deduction.is_active = parse_bool(data['is_active'], default=True)
        db.commit()
        return jsonify({
            "message": "Fixed deduction updated successfully",
            "deduction": _serialize_fixed_deduction(deduction)
        }), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error updating fixed deduction {deduction_id}")
        return jsonify({"message": "Failed to update fixed deduction"}), 500
    finally:
        db.close()


@salary_bp.route('/deductions/<int:deduction_id>', methods=['DELETE'])
@roles_required(*HR_STAFF_ROLES)
def delete_fixed_deduction(deduction_id):
    db = SessionLocal()
    try:
        deduction = get_company_record(db, EmployeeFixedDeduction, deduction_id)
        if not deduction:
            return jsonify({"message": "Fixed deduction not found"}), 404
        db.delete(deduction)
        db.commit()
        return jsonify({"message": "Fixed deduction deleted successfully"}), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error deleting fixed deduction {deduction_id}")
        return jsonify({"message": "Failed to delete fixed deduction"}), 500
    finally:
        db.close()


# ============================================================
# SALARY SLIPS
# ============================================================
def _slip_request(data):
    """(employee_id, month, year) from a slip request body; raises ValueError"""
    is_valid, error_msg = validate_required_fields(data, ['employee_id', 'month', 'year'])
    if not is_valid:
        raise ValueError(error_msg)
    month, year = parse_month_year(data['month'], data['year'])
    return data['employee_id'], month, year


@salary_bp.route('/slips/preview', methods=['POST'])
@roles_required(*HR_STAFF_ROLES)
def preview_slip():
    """Compute a salary slip without saving it"""
    data = request.get_json(silent=True) or {}
    try:
        employee_id, month, year = _slip_request(data)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        profile = _get_employee_profile(db, employee_id)
        if not profile:
            return jsonify({"message": "Employee not found"}), 404
        try:
            computed = SalaryService.calculate_for_employee(
                db, current_company_id(), profile, year, month,
                data.get('additions'), data.get('deductions')
            )
        except ValueError as e:
            return jsonify({"message": str(e)}), 400
        return jsonify({
            "employee_id": profile.user_id,
            "month": month,
            "year": year,
            "calculation": _computed_payload(computed)
        }), 200
    finally:
        db.close()


@salary_bp.route('/slips', methods=['POST'])
@roles_required(*HR_STAFF_ROLES)
def generate_slip():
    data = request.get_json(silent=True) or {}
    try:
        employee_id, month, year = _slip_request(data)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db = SessionLocal()
    try:
        profile = _get_employee_profile(db, employee_id)
        if not profile:
            return jsonify({"message": "Employee not found"}), 404

        try:
            computed = SalaryService.calculate_for_employee(
                db, current_company_id(), profile, year, month,
                data.get('additions'), data.get('deductions')
            )
            slip = SalaryService.create_slip(
                db, current_company_id(), profile.user_id, year, month, computed,
                request.current_user_id, sanitize_input(data.get('notes')) or None
            )
        except ValueError as e:
            db.rollback()
            return jsonify({"message": str(e)}), 400

        db.commit()
        db.refresh(slip)

        email_sent = EmailService.send_salary_slip_email(
            slip.user.email, slip.user.full_name, month, year, f"{slip.net_salary:.2f}"
        )
        return jsonify({
            "message": "Salary slip generated successfully",
            "salary_slip": serialize_salary_slip(slip, include_details=True),
            "email_sent": email_sent
        }), 201
    except Exception:
        db.rollback()
        logger.exception("Error generating salary slip")
        return jsonify({"message": "Failed to generate salary slip"}), 500
    finally:
        db.close()


@salary_bp.route('/slips', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def list_slips():
    db = SessionLocal()
    try:
        query = company_query(db, SalarySlip)
        month = request.args.get('month', type=int)
        year = request.args.get('year', type=int)
        if month:
            query = query.filter(SalarySlip.month == month)
        if year:
            query = query.filter(SalarySlip.year == year)
        slips = query.order_by(SalarySlip.created_at.desc(), SalarySlip.id.desc()).limit(SLIP_LIST_LIMIT).all()
        return jsonify({"salary_slips": [serialize_salary_slip(s) for s in slips]}), 200
    finally:
        db.close()


@salary_bp.route('/slips/employee/<int:employee_id>', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def list_employee_slips(employee_id):
    db = SessionLocal()
    try:
        slips = company_query(db, SalarySlip).filter(
            SalarySlip.user_id == employee_id
        ).order_by(SalarySlip.year.desc(), SalarySlip.month.desc()).all()
        return jsonify({"salary_slips": [serialize_salary_slip(s) for s in slips]}), 200
    finally:
        db.close()


@salary_bp.route('/slips/<int:slip_id>', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def get_slip(slip_id):
    db = SessionLocal()
    try:
        slip = get_company_record(db, SalarySlip, slip_id)
        if not slip:
            return jsonify({"message": "Salary slip not found"}), 404
        return jsonify({"salary_slip": serialize_salary_slip(slip, include_details=True)}), 200
    finally:
        db.close()


@salary_bp.route('/slips/<int:slip_id>', methods=['PUT'])
@roles_required(*HR_STAFF_ROLES)
def update_slip(slip_id):
    """Replace a slip's additions and deductions and recompute its totals"""
    data = request.get_json(silent=True) or {}
    db = SessionLocal()
    try:
        slip = get_company_record(db, SalarySlip, slip_id)
        if not slip:
            return jsonify({"message": "Salary slip not found"}), 404

        try:
            SalaryService.update_slip(db, slip, data.get('additions'), data.get('deductions'))
        except ValueError as e:
            db.rollback()
            return jsonify({"message": str(e)}), 400
        if 'notes' in data:
            slip.notes = sanitize_input(data['notes']) or None

        db.commit()
        db.refresh(slip)
        return jsonify({
            "message": "Salary slip updated successfully",
            "salary_slip": serialize_salary_slip(slip, include_details=True)
        }), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error updating salary slip {slip_id}")
        return jsonify({"message": "Failed to update salary slip"}), 500
    finally:
        db.close()


@salary_bp.route('/slips/<int:slip_id>', methods=['DELETE'])
@roles_required(*HR_STAFF_ROLES)
def delete_slip(slip_id):
    db = SessionLocal()
    try:
        slip = get_company_record(db, SalarySlip, slip_id)
        if not slip:
            return jsonify({"message": "Salary slip not found"}), 404
        db.delete(slip)
        db.commit()
        return jsonify({"message": "Salary slip deleted successfully"}), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error deleting salary slip {slip_id}")
        return jsonify({"message": "Failed to delete salary slip"}), 500
    finally:
        db.close()


@salary_bp.route('/summary', methods=['GET'])
@roles_required(*HR_STAFF_ROLES)
def salary_summary():
    db = SessionLocal()
    try:
        rows = company_query(db, SalarySlip).with_entities(
            SalarySlip.year, SalarySlip.month,
            func.count(SalarySlip.id), func.sum(SalarySlip.net_salary)
        ).group_by(SalarySlip.year, SalarySlip.month).order_by(
            SalarySlip.year.desc(), SalarySlip.month.desc()
        ).all()
        return jsonify({
            "summary": [
                {"year": year, "month": month, "slip_count": count, "total_net_salary": num(total)}
                for year, month, count, total in rows
            ]
        }), 200
    finally:
        db.close()


# ============================================================
# EMPLOYEE SELF SERVICE
# ============================================================
@salary_bp.route('/my/slips', methods=['GET'])
@token_required
def my_slips():
    db = SessionLocal()
    try:
        slips = company_query(db, SalarySlip).filter(
            SalarySlip.user_id == request.current_user_id
        ).order_by(SalarySlip.year.desc(), SalarySlip.month.desc()).all()
        return jsonify({"salary_slips": [serialize_salary_slip(s) for s in slips]}), 200
    finally:
        db.close()


@salary_bp.route('/my/slips/<int:slip_id>', methods=['GET'])
@token_required
def my_slip(slip_id):
    db = SessionLocal()
    try:
        slip = get_company_record(db, SalarySlip, slip_id)
        if not slip or slip.user_id != request.current_user_id:
            return jsonify({"message": "Salary slip not found"}), 404
        return jsonify({"salary_slip": serialize_salary_slip(slip, include_details=True)}), 200
    finally:
        db.close()
