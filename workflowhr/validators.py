import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple


def validate_email(email: str) -> bool:
    """Validate email format"""
    if not email:
        return False
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_phone(phone: str) -> bool:
    """Validate phone number: 7 to 15 digits, optional leading +"""
    if not phone:
        return False
    phone_cleaned = re.sub(r'[\s\-\(\)]', '', phone)
    return bool(re.match(r'^\+?\d{7,15}$', phone_cleaned))


def validate_password(password: str) -> Tuple[bool, str]:
    """Validate password strength"""
    if not password:
        return False, "Password is required"

    if len(password) < 8:
        return False, "Password must be at least 8 characters long"

    if not re.search(r'[A-Z]', password):
        return False, "Password must contain at least one uppercase letter"

    if not re.search(r'[a-z]', password):
        return False, "Password must contain at least one lowercase letter"

    if not re.search(r'\d', password):
        return False, "Password must contain at least one digit"

    if not re.search(r'[!@#$%^&*(),.?":{}|<>]', password):
        return False, "Password must contain at least one special character"

    return True, "Password is valid"


def validate_required_fields(data: dict, required_fields: list) -> Tuple[bool, str]:
    """Check if all required fields are present and not empty"""
    if not data:
        return False, "Request body is required"

    missing_fields = []
    empty_fields = []

    for field in required_fields:
        if field not in data:
            missing_fields.append(field)
        elif data[field] is None or (isinstance(data[field], str) and not data[field].strip()):
            empty_fields.append(field)

    if missing_fields:
        return False, f"Missing required fields: {', '.join(missing_fields)}"

    if empty_fields:
        return False, f"Empty fields not allowed: {', '.join(empty_fields)}"

    return True, ""


def sanitize_input(text) -> str:
    """Strip surrounding whitespace from user input"""
    if not text:
        return ""
    return str(text).strip()


def parse_date(value) -> Optional[date]:
    """Parse a YYYY-MM-DD string; raises ValueError on bad input"""
    if value is None or value == '':
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")


def parse_decimal(value, field_name: str = 'amount') -> Decimal:
    """Parse a number into a Decimal; raises ValueError on bad input"""
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, TypeError):
        raise ValueError(f"{field_name} must be a number")
    if not result.is_finite():
        raise ValueError(f"{field_name} must be a number")
    return result


# Largest value a DECIMAL(12, 2) money column holds
MAX_AMOUNT = Decimal('9999999999.99')


def parse_amount(value, field_name: str = 'Amount') -> Decimal:
    """Parse a money amount that fits the money columns; raises ValueError"""
    amount = parse_decimal(value, field_name)
    if abs(amount) > MAX_AMOUNT:
        raise ValueError(f"{field_name} must not exceed {MAX_AMOUNT}")
    return amount


def parse_bool(value, default: bool = False) -> bool:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def parse_month_year(month, year) -> Tuple[int, int]:
    """Validate month (1-12) and year (2000-2100); raises ValueError"""
    try:
        month = int(month)
        year = int(year)
    except (TypeError, ValueError):
        raise ValueError("Month and year must be integers")
    if month < 1 or month > 12:
        raise ValueError("Month must be between 1 and 12")
    if year < 2000 or year > 2100:
        raise ValueError("Year must be between 2000 and 2100")
    return month, year
