import logging
from flask import Blueprint, request, jsonify
from workflowhr.auth import roles_required
from workflowhr.database import SessionLocal, User, EmployeeProfile, LeaveRequest
from workflowhr.serializers import serialize_employee, serialize_leave_request
from workflowhr.services.email_service import EmailService
from workflowhr.services.leave_service import LeaveService
from workflowhr.tenancy import company_query, get_company_record

logger = logging.getLogger(__name__)

team_lead_bp = Blueprint('team_lead', __name__, url_prefix='/api/team-lead')

DECISIONS = {'approve': 'approved_by_team_lead', 'reject': 'rejected'}


def _pending_for_lead(db):
    return company_query(db, LeaveRequest).filter(
        LeaveRequest.team_lead_id == request.current_user_id,
        LeaveRequest.status == 'pending'
    )


@team_lead_bp.route('/members', methods=['GET'])
@roles_required('team_lead')
def team_members():
    db = SessionLocal()
    try:
        members = company_query(db, User).join(
            EmployeeProfile, EmployeeProfile.user_id == User.id
        ).filter(EmployeeProfile.team_lead_id == request.current_user_id).order_by(User.full_name).all()
        return jsonify({"members": [serialize_employee(u) for u in members]}), 200
    finally:
        db.close()


@team_lead_bp.route('/leave-requests', methods=['GET'])
@roles_required('team_lead')
def pending_requests():
    db = SessionLocal()
    try:
        requests_ = _pending_for_lead(db).order_by(LeaveRequest.applied_at.desc(), LeaveRequest.id.desc()).all()
        return jsonify({"leave_requests": [serialize_leave_request(lr) for lr in requests_]}), 200
    finally:
        db.close()


@team_lead_bp.route('/leave-requests/<int:request_id>/decision', methods=['POST'])
@roles_required('team_lead')
def decide_request(request_id):
    """Approve (forward to HR) or reject a team member's leave request"""
    data = request.get_json(silent=True) or {}
    action = data.get('action')
    if action not in DECISIONS:
        return jsonify({"message": "Action must be 'approve' or 'reject'"}), 400

    db = SessionLocal()
    try:
        leave_request = get_company_record(db, LeaveRequest, request_id)
        if not leave_request or leave_request.team_lead_id != request.current_user_id:
            return jsonify({"message": "Leave request not found"}), 404

        actor = db.query(User).filter(User.id == request.current_user_id).first()
        try:
            LeaveService.transition(
                db, leave_request, DECISIONS[action], actor, 'team_lead', data.get('comment')
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
            leave_request.team_lead_comment
        )
        return jsonify({
            "message": f"Leave request {'approved and forwarded to HR' if action == 'approve' else 'rejected'}",
            "leave_request": serialize_leave_request(leave_request)
        }), 200
    except Exception:
        db.rollback()
        logger.exception(f"Error deciding leave request {request_id}")
        return jsonify({"message": "Failed to process leave request"}), 500
    finally:
        db.close()


@team_lead_bp.route('/dashboard', methods=['GET'])
@roles_required('team_lead')
def dashboard():
    db = SessionLocal()
    try:
        member_count = company_query(db, EmployeeProfile).filter(
            EmployeeProfile.team_lead_id == request.current_user_id
        ).count()
        pending = _pending_for_lead(db)
        recent = company_query(db, LeaveRequest).filter(
            LeaveRequest.team_lead_id == request.current_user_id
        ).order_by(LeaveRequest.applied_at.desc(), LeaveRequest.id.desc()).limit(5).all()

        return jsonify({
            "team_members": member_count,
            "pending_requests": pending.count(),
            "recent_requests": [serialize_leave_request(lr) for lr in recent]
        }), 200
    finally:
        db.close()
