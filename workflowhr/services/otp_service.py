import logging
import secrets
from datetime import datetime, timedelta
from workflowhr.database import SessionLocal, OTP, User
from workflowhr.services.email_service import EmailService
from workflowhr.config import Config

logger = logging.getLogger(__name__)


class OTPService:
    """Service for OTP generation and verification"""

    @staticmethod
    def generate_otp() -> str:
        """Generate random OTP code"""
        return "".join(secrets.choice("0123456789") for _ in range(Config.OTP_LENGTH))

    @staticmethod
    def create_otp(email: str) -> tuple[bool, str]:
        """Create and send OTP for email"""
        db = SessionLocal()
        try:
            user = db.query(User).filter(User.email == email, User.is_active.is_(True)).first()
            if not user:
                return False, "Email not registered"

            otp_code = OTPService.generate_otp()
            expires_at = datetime.utcnow() + timedelta(minutes=Config.OTP_EXPIRATION_MINUTES)

            # Older unused codes for this email stop working
            db.query(OTP).filter(OTP.email == email, OTP.is_used.is_(False)).update({'is_used': True})
            db.add(OTP(email=email, otp_code=otp_code, expires_at=expires_at))
            db.commit()

            if EmailService.send_otp_email(email, otp_code):
                return True, "OTP sent successfully"
            return False, "Failed to send OTP email"

        except Exception:
            db.rollback()
            logger.exception(f"Error creating OTP for {email}")
            return False, "Failed to generate OTP"
        finally:
            db.close()

    @staticmethod
    def verify_otp(email: str, otp_code: str, consume: bool = False) -> tuple[bool, str]:
        """
        Verify OTP code, marking it used when ``consume`` is set.

        Every wrong guess counts against the live code for the email; after
        OTP_MAX_ATTEMPTS failures the code is burned and a new one must be
        requested.
        """
        db = SessionLocal()
        try:
            otp_record = (
                db.query(OTP)
                .filter(
                    OTP.email == email,
                    OTP.is_used.is_(False),
                    OTP.expires_at > datetime.utcnow()
                )
                .order_by(OTP.id.desc())
                .first()
            )

            if not otp_record:
                return False, "Invalid or expired OTP"

            if not secrets.compare_digest(otp_record.otp_code, str(otp_code or '')):
                otp_record.attempts = (otp_record.attempts or 0) + 1
                if otp_record.attempts >= Config.OTP_MAX_ATTEMPTS:
                    otp_record.is_used = True
                    logger.warning(f"OTP for {email} locked after {otp_record.attempts} failed attempts")
                db.commit()
                return False, "Invalid or expired OTP"

            if consume:
                otp_record.is_used = True
                db.commit()

            return True, "OTP verified successfully"

        except Exception:
            db.rollback()
            logger.exception(f"Error verifying OTP for {email}")
            return False, "Failed to verify OTP"
        finally:
            db.close()

    @staticmethod
    def cleanup_expired_otps() -> int:
        """Delete expired OTPs (call this periodically)"""
        db = SessionLocal()
        try:
            deleted = db.query(OTP).filter(OTP.expires_at < datetime.utcnow()).delete()
            db.commit()
            logger.info(f"Cleaned up {deleted} expired OTPs")
            return deleted
        except Exception:
            db.rollback()
            logger.exception("Error cleaning up OTPs")
            raise
        finally:
            db.close()
