import logging
import os
import urllib.parse
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class Config:
    # Flask Configuration
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-this-in-production')
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = True
    ENVIRONMENT = os.getenv('ENVIRONMENT', 'development')

    # JWT Configuration
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'change-this-jwt-secret')
    JWT_EXPIRATION_HOURS = int(os.getenv('JWT_EXPIRATION_HOURS', 24))
    JWT_REFRESH_EXPIRATION_DAYS = int(os.getenv('JWT_REFRESH_EXPIRATION_DAYS', 7))
    JWT_ALGORITHM = 'HS256'

    # Database Configuration (DATABASE_URL wins, e.g. the Supabase connection string)
    DATABASE_URL = os.getenv('DATABASE_URL')
    DB_HOST = os.getenv('DB_HOST', 'localhost')
    DB_PORT = os.getenv('DB_PORT', '5432')
    DB_USER = os.getenv('DB_USER', 'postgres')
    DB_PASSWORD = os.getenv('DB_PASSWORD', 'postgres')
    DB_NAME = os.getenv('DB_NAME', 'workflowhr_db')

    # Email Configuration
    EMAIL_USER = os.getenv('EMAIL_USER')
    EMAIL_PASS = os.getenv('EMAIL_PASS')
    EMAIL_FROM = os.getenv('EMAIL_FROM', 'noreply@workflowhr.com')
    SMTP_SERVER = os.getenv('SMTP_SERVER', 'smtp.gmail.com')
    SMTP_PORT = int(os.getenv('SMTP_PORT', 587))

    # OTP Configuration
    OTP_EXPIRATION_MINUTES = int(os.getenv('OTP_EXPIRATION_MINUTES', 10))
    OTP_LENGTH = int(os.getenv('OTP_LENGTH', 6))
    OTP_MAX_ATTEMPTS = int(os.getenv('OTP_MAX_ATTEMPTS', 5))

    # Leave Configuration
    DEFAULT_ANNUAL_LEAVE_DAYS = int(os.getenv('DEFAULT_ANNUAL_LEAVE_DAYS', 12))

    # CORS Configuration
    CORS_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()]

    # Logging Configuration
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'text').lower()

    @staticmethod
    def database_url() -> str:
        """Resolve the SQLAlchemy database URL"""
        if Config.DATABASE_URL:
            url = Config.DATABASE_URL
            # Supabase and Heroku hand out postgres:// URLs
            if url.startswith('postgres://'):
                url = 'postgresql://' + url[len('postgres://'):]
            return url
        encoded_password = urllib.parse.quote(Config.DB_PASSWORD)
        return f"postgresql://{Config.DB_USER}:{encoded_password}@{Config.DB_HOST}:{Config.DB_PORT}/{Config.DB_NAME}"

    @staticmethod
    def validate():
        """Validate critical configuration"""
        if not Config.EMAIL_USER or not Config.EMAIL_PASS:
            logger.warning("Email configuration not set. Email features will not work.")
        if Config.SECRET_KEY == 'change-this-in-production':
            logger.warning("Using default SECRET_KEY. Change this in production!")
        if Config.JWT_SECRET_KEY == 'change-this-jwt-secret':
            logger.warning("Using default JWT_SECRET_KEY. Change this in production!")
