import jwt
from datetime import datetime, timedelta
from functools import wraps
from flask import request, jsonify
from workflowhr.config import Config
from workflowhr.database import SessionLocal, User

HR_STAFF_ROLES = ('admin', 'hr_manager', 'hr')
HR_ADMIN_ROLES = ('admin', 'hr_manager')


def generate_token(user, token_type: str = 'access') -> str:
    """Generate JWT token"""
    if token_type == 'refresh':
        lifetime = timedelta(days=Config.JWT_REFRESH_EXPIRATION_DAYS)
    else:
        lifetime = timedelta(hours=Config.JWT_EXPIRATION_HOURS)
    payload = {
        'user_id': user.id,
        'role': user.role,
        'company_id': user.company_id,
        'type': token_type,
        'exp': datetime.utcnow() + lifetime,
        'iat': datetime.utcnow()
    }
    return jwt.encode(payload, Config.JWT_SECRET_KEY, algorithm=Config.JWT_ALGORITHM)


def generate_token_pair(user) -> dict:
    return {
        'access_token': generate_token(user, 'access'),
        'refresh_token': generate_token(user, 'refresh'),
        'token_type': 'Bearer',
        'expires_in': Config.JWT_EXPIRATION_HOURS * 3600
    }


def decode_token(token: str, expected_type: str = 'access') -> dict:
    """Decode JWT token"""
    try:
        data = jwt.decode(token, Config.JWT_SECRET_KEY, algorithms=[Config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise ValueError("Token has expired")
    except jwt.InvalidTokenError:
        raise ValueError("Invalid token")
    if data.get('type') != expected_type or 'user_id' not in data:
        raise ValueError("Invalid token")
    return data


def get_token_from_header():
    """Extract token from Authorization header"""
    auth_header = request.headers.get('Authorization')
    if not auth_header:
        return None

    # Format: "Bearer <token>"
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        return None
    return parts[1]


def _authenticate():
    """Resolve the calling user onto the request, returning an error response or None"""
    token = get_token_from_header()
    if not token:
        return (jsonify({'message': 'Authentication token is missing'}), 401)

    try:
        data = decode_token(token)
    except ValueError as e:
        return (jsonify({'message': str(e)}), 401)

    # Role, company and active flag are read fresh on every request
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == data['user_id']).first()
        if not user or not user.is_active:
            return (jsonify({'message': 'User not found or inactive'}), 401)
        request.current_user_id = user.id
        request.current_user_role = user.role
        request.current_company_id = user.company_id
        return None
    finally:
        db.close()


def token_required(f):
    """Decorator to require valid JWT token"""
    @wraps(f)
    def decorated(*args, **kwargs):
        error = _authenticate()
        if error:
            return error
        return f(*args, **kwargs)

    return decorated


def roles_required(*roles):
    """Decorator to require a valid JWT token and one of the given roles"""
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            error = _authenticate()
            if error:
                return error
            if request.current_user_role not in roles:
                return jsonify({'message': 'You do not have permission to perform this action'}), 403
            return f(*args, **kwargs)

        return decorated

    return decorator


def is_hr_staff() -> bool:
    return request.current_user_role in HR_STAFF_ROLES
