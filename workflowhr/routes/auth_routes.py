import logging
from flask import Blueprint, request, jsonify
from werkzeug.security import generate_password_hash, check_password_hash
from workflowhr.database import SessionLocal, User
from workflowhr.auth import generate_token_pair, decode_token, token_required
from workflowhr.serializers import serialize_employee
from workflowhr.services.company_service import CompanyService
from workflowhr.services.otp_service import OTPService
from workflowhr.validators import validate_email, validate_password, validate_required_fields, sanitize_input

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/signup', methods=['POST'])
def signup():
    """Register a new company and its administrator"""
    data = request.get_json(silent=True) or {}

    is_valid, error_msg = validate_required_fields(data, ['email', 'password', 'full_name', 'company_name'])
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    email = sanitize_input(data.get('email')).lower()
    password = data.get('password')
    full_name = sanitize_input(data.get('full_name'))
    company_name = sanitize_input(data.get('company_name'))

    if not validate_email(email):
        return jsonify({"message": "Invalid email format"}), 400

    is_valid, password_msg = validate_password(password)
    if not is_valid:
        return jsonify({"message": password_msg}), 400

    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == email).first():
            return jsonify({"message": "Email already exists"}), 409

        company = CompanyService.create_company(db, company_name)
        user = User(
            company_id=company.id,
            email=email,
            password_hash=generate_password_hash(password),
            full_name=full_name,
            role='admin'
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"New company {company.id} registered by {email}")
        return jsonify({
            "message": "Company registered successfully",
            **generate_token_pair(user),
            "user": serialize_employee(user),
            "company": {"id": company.id, "name": company.name}
        }), 201

    except Exception:
        db.rollback()
        logger.exception("Signup error")
        return jsonify({"message": "An unexpected error occurred"}), 500
    finally:
        db.close()


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}

    email = sanitize_input(data.get('email', '')).lower()
    password = data.get('password', '')

    if not email or not password:
        return jsonify({"message": "Email and password are required"}), 400

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()

        if not user or not check_password_hash(user.password_hash, password):
            return jsonify({"message": "Invalid credentials"}), 401
        if not user.is_active:
            return jsonify({"message": "Account is deactivated. Contact your HR team."}), 401

        return jsonify({
            "message": "Login successful",
            **generate_token_pair(user),
            "user": serialize_employee(user)
        }), 200

    except Exception:
        logger.exception("Login error")
        return jsonify({"message": "An unexpected error occurred"}), 500
    finally:
        db.close()


@auth_bp.route('/refresh', methods=['POST'])
def refresh():
    """Exchange a refresh token for a new token pair"""
    data = request.get_json(silent=True) or {}
    refresh_token = data.get('refresh_token')
    if not refresh_token:
        return jsonify({"message": "refresh_token is required"}), 400

    try:
        payload = decode_token(refresh_token, expected_type='refresh')
    except ValueError as e:
        return jsonify({"message": str(e)}), 401

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == payload['user_id']).first()
        if not user or not user.is_active:
            return jsonify({"message": "User not found or inactive"}), 401
        return jsonify({"message": "Token refreshed", **generate_token_pair(user)}), 200
    finally:
        db.close()


@auth_bp.route('/logout', methods=['POST'])
@token_required
def logout():
    # Tokens are stateless; the client discards them
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.route('/profile', methods=['GET'])
@token_required
def profile():
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == request.current_user_id).first()
        data = serialize_employee(user)
        data["company_name"] = user.company.name if user.company else None
        return jsonify({"user": data}), 200
    finally:
        db.close()


@auth_bp.route('/change-password', methods=['POST'])
@token_required
def change_password():
    data = request.get_json(silent=True) or {}

    is_valid, error_msg = validate_required_fields(data, ['current_password', 'new_password'])
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    is_valid, password_msg = validate_password(data['new_password'])
    if not is_valid:
        return jsonify({"message": password_msg}), 400

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == request.current_user_id).first()
        if not check_password_hash(user.password_hash, data['current_password']):
            return jsonify({"message": "Current password is incorrect"}), 400

        user.password_hash = generate_password_hash(data['new_password'])
        db.commit()
        return jsonify({"message": "Password changed successfully"}), 200
    except Exception:
        db.rollback()
        logger.exception("Change password error")
        return jsonify({"message": "An unexpected error occurred"}), 500
    finally:
        db.close()


@auth_bp.route('/forgot-password/send-otp', methods=['POST'])
def send_otp():
    """Send OTP for password reset"""
    data = request.get_json(silent=True) or {}
    email = sanitize_input(data.get("email", "")).lower()

    if not email:
        return jsonify({"message": "Email is required"}), 400
    if not validate_email(email):
        return jsonify({"message": "Invalid email format"}), 400

    success, message = OTPService.create_otp(email)
    if success:
        return jsonify({"message": message}), 200
    status_code = 404 if "not registered" in message else 500
    return jsonify({"message": message}), status_code


@auth_bp.route('/forgot-password/verify-otp', methods=['POST'])
def verify_otp():
    data = request.get_json(silent=True) or {}
    email = sanitize_input(data.get("email", "")).lower()
    otp = sanitize_input(data.get("otp", ""))

    if not email or not otp:
        return jsonify({"message": "Email and OTP are required"}), 400

    success, message = OTPService.verify_otp(email, otp)
    return jsonify({"message": message}), 200 if success else 400


@auth_bp.route('/forgot-password/reset', methods=['POST'])
def reset_password():
    """Set a new password using a valid OTP"""
    data = request.get_json(silent=True) or {}

    is_valid, error_msg = validate_required_fields(data, ['email', 'otp', 'new_password'])
    if not is_valid:
        return jsonify({"message": error_msg}), 400

    email = sanitize_input(data['email']).lower()
    new_password = data['new_password']

    is_valid, password_msg = validate_password(new_password)
    if not is_valid:
        return jsonify({"message": password_msg}), 400

    success, message = OTPService.verify_otp(email, sanitize_input(data['otp']), consume=True)
    if not success:
        return jsonify({"message": message}), 400

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            return jsonify({"message": "User not found"}), 404

        user.password_hash = generate_password_hash(new_password)
        db.commit()
        return jsonify({"message": "Password reset successfully"}), 200
    except Exception:
        db.rollback()
        logger.exception("Password reset error")
        return jsonify({"message": "An unexpected error occurred"}), 500
    finally:
        db.close()
