"""
Initialize the PostgreSQL database, create tables and seed company defaults.

    python -m workflowhr.init_db            # create database and tables
    python -m workflowhr.init_db --seed     # also backfill default leave types
                                            # and salary components per company
    python -m workflowhr.init_db --purge-otps   # also delete expired reset codes
"""

import argparse
import logging

import psycopg2
from psycopg2 import sql
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

from workflowhr.config import Config
from workflowhr.database import init_db, SessionLocal, Company, CompanyWorkingDays
from workflowhr.logging_config import setup_logging
from workflowhr.services.company_service import CompanyService
from workflowhr.services.otp_service import OTPService
from workflowhr.working_days import DEFAULT_CONFIG

logger = logging.getLogger(__name__)


def create_database_if_not_exists():
    """Create the configured PostgreSQL database if it doesn't exist"""
    conn = psycopg2.connect(
        host=Config.DB_HOST,
        port=Config.DB_PORT,
        user=Config.DB_USER,
        password=Config.DB_PASSWORD,
        dbname='postgres'
    )
    try:
        conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1 FROM pg_database WHERE datname = %s", (Config.DB_NAME,))
            if cursor.fetchone():
                logger.info(f"Database '{Config.DB_NAME}' already exists")
                return False
            cursor.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(Config.DB_NAME)))
            logger.info(f"Database '{Config.DB_NAME}' created")
            return True
    finally:
        conn.close()


def seed_company_defaults():
    """Backfill default calendar, leave types and salary components for every company"""
    db = SessionLocal()
    try:
        companies = db.query(Company).all()
        for company in companies:
            if not db.query(CompanyWorkingDays).filter(CompanyWorkingDays.company_id == company.id).first():
                db.add(CompanyWorkingDays(company_id=company.id, **DEFAULT_CONFIG))
            added_types = CompanyService.add_default_leave_types(db, company.id)
            added_components = CompanyService.add_default_salary_components(db, company.id)
            logger.info(
                f"Company {company.id} '{company.name}': {added_types} leave types, "
                f"{added_components} salary components added"
            )
        db.commit()
        return len(companies)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def initialize_database(seed: bool = False, purge_otps: bool = False):
    # A hosted database (e.g. Supabase) already exists; only local servers need creating
    if not Config.DATABASE_URL:
        create_database_if_not_exists()
    init_db()
    if seed:
        seed_company_defaults()
    if purge_otps:
        OTPService.cleanup_expired_otps()
    logger.info("Database initialization completed")


def main():
    parser = argparse.ArgumentParser(description="Initialize the WorkFlowHR database")
    parser.add_argument('--seed', action='store_true', help="backfill company default settings")
    parser.add_argument('--purge-otps', action='store_true', help="delete expired password-reset codes")
    args = parser.parse_args()

    setup_logging()
    initialize_database(seed=args.seed, purge_otps=args.purge_otps)


if __name__ == '__main__':
    main()
