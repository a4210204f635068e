import secrets
import time

UPPERCASE = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ'
LOWERCASE = 'abcdefghijklmnopqrstuvwxyz'
DIGITS = '0123456789'
SPECIAL = '!@#$%^&*'


class PasswordService:
    """Temporary passwords and employee codes for accounts created by HR"""

    @staticmethod
    def generate_password(length: int = 12) -> str:
        """Random password with at least one character of each class"""
        if length < 4:
            raise ValueError("Password length must be at least 4")
        rng = secrets.SystemRandom()
        chars = [
            rng.choice(UPPERCASE),
            rng.choice(LOWERCASE),
            rng.choice(DIGITS),
            rng.choice(SPECIAL),
        ]
        pool = UPPERCASE + LOWERCASE + DIGITS + SPECIAL
        chars.extend(rng.choice(pool) for _ in range(length - len(chars)))
        rng.shuffle(chars)
        return ''.join(chars)

    @staticmethod
    def generate_employee_code() -> str:
        """EMP + last 6 digits of the millisecond clock + 3 random digits"""
        timestamp = str(int(time.time() * 1000))[-6:]
        suffix = ''.join(secrets.choice(DIGITS) for _ in range(3))
        return f"EMP{timestamp}{suffix}"
