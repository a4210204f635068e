import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from markupsafe import escape
from workflowhr.config import Config

logger = logging.getLogger(__name__)

_FOOTER = '<hr><p style="color: #666; font-size: 12px;">This is an automated email from WorkFlowHR. Please do not reply.</p>'


def _wrap(title: str, inner: str) -> str:
    return f"""
        <html>
            <body style="font-family: Arial, sans-serif; padding: 20px;">
                <h2 style="color: #333;">{title}</h2>
                {inner}
                {_FOOTER}
            </body>
        </html>
        """


class EmailService:
    """Service for sending emails"""

    @staticmethod
    def send_email(to_email: str, subject: str, body: str, is_html: bool = True) -> bool:
        """Send email using SMTP. Returns False instead of raising on failure."""
        if not Config.EMAIL_USER or not Config.EMAIL_PASS:
            logger.warning(f"Email configuration not set, skipping '{subject}' to {to_email}")
            return False

        try:
            msg = MIMEMultipart()
            msg['From'] = Config.EMAIL_FROM
            msg['To'] = to_email
            msg['Subject'] = subject

            content_type = 'html' if is_html else 'plain'
            msg.attach(MIMEText(body, content_type))

            with smtplib.SMTP(Config.SMTP_SERVER, Config.SMTP_PORT) as server:
                server.starttls()
                server.login(Config.EMAIL_USER, Config.EMAIL_PASS.strip())
                server.sendmail(Config.EMAIL_FROM, to_email, msg.as_string())

            logger.info(f"Email sent to {to_email}: {subject}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"Email authentication failed: {e}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email sending to {to_email} failed: {e}")
            return False

    @staticmethod
    def send_otp_email(to_email: str, otp_code: str) -> bool:
        subject = "Your WorkFlowHR Password Reset OTP"
        body = _wrap("Password Reset Request", f"""
                <p>You have requested to reset your password.</p>
                <p>Your OTP code is:</p>
                <h1 style="color: #4CAF50; letter-spacing: 5px;">{otp_code}</h1>
                <p>This OTP will expire in {Config.OTP_EXPIRATION_MINUTES} minutes.</p>
                <p>If you did not request this, please ignore this email.</p>
        """)
        return EmailService.send_email(to_email, subject, body)

    @staticmethod
    def send_welcome_email(to_email: str, full_name: str, company_name: str, employee_code: str,
                           temporary_password: str) -> bool:
        """Send login credentials to a newly added employee"""
        subject = f"Welcome to {company_name}"
        full_name, company_name = escape(full_name), escape(company_name)
        body = _wrap(f"Welcome aboard, {full_name}!", f"""
                <p>Your WorkFlowHR account at <strong>{company_name}</strong> has been created.</p>
                <p>Employee ID: <strong>{employee_code}</strong></p>
                <p>Login email: <strong>{to_email}</strong></p>
                <p>Temporary password: <strong>{temporary_password}</strong></p>
                <p>Please change your password after your first login.</p>
        """)
        return EmailService.send_email(to_email, subject, body)

    @staticmethod
    def send_password_reset_email(to_email: str, full_name: str, temporary_password: str) -> bool:
        subject = "Your WorkFlowHR password has been reset"
        full_name = escape(full_name)
        body = _wrap(f"Hello {full_name},", f"""
                <p>Your password was reset by your HR team.</p>
                <p>Temporary password: <strong>{temporary_password}</strong></p>
                <p>Please change your password after logging in.</p>
        """)
        return EmailService.send_email(to_email, subject, body)

    @staticmethod
    def send_leave_status_email(to_email: str, full_name: str, leave_type: str, start_date, end_date,
                                status: str, remarks: str = None) -> bool:
        status_label = status.replace('_', ' ').title()
        subject = f"Leave request {status_label}"
        full_name, leave_type = escape(full_name), escape(leave_type)
        remarks_html = f"<p>Remarks: {escape(remarks)}</p>" if remarks else ""
        body = _wrap(f"Hello {full_name},", f"""
                <p>Your {leave_type} request from {start_date} to {end_date} is now
                <strong>{status_label}</strong>.</p>
                {remarks_html}
        """)
        return EmailService.send_email(to_email, subject, body)

    @staticmethod
    def send_salary_slip_email(to_email: str, full_name: str, month: int, year: int, net_salary) -> bool:
        subject = f"Salary slip for {month:02d}/{year}"
        full_name = escape(full_name)
        body = _wrap(f"Hello {full_name},", f"""
                <p>Your salary slip for {month:02d}/{year} has been generated.</p>
                <p>Net salary: <strong>{net_salary}</strong></p>
                <p>Log in to WorkFlowHR to view the full breakdown.</p>
        """)
        return EmailService.send_email(to_email, subject, body)
