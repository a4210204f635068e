import logging
from datetime import datetime
from flask import Flask, request, jsonify
from sqlalchemy import text
from werkzeug.exceptions import HTTPException
from workflowhr.config import Config
from workflowhr.database import init_db, SessionLocal
from workflowhr.logging_config import setup_logging

from workflowhr.routes.auth_routes import auth_bp
from workflowhr.routes.employee_routes import employee_bp
from workflowhr.routes.hr_staff_routes import hr_staff_bp
from workflowhr.routes.team_lead_routes import team_lead_bp
from workflowhr.routes.leave_routes import leave_bp
from workflowhr.routes.company_routes import company_bp
from workflowhr.routes.salary_routes import salary_bp
from workflowhr.routes.document_routes import document_bp

logger = logging.getLogger(__name__)

CORS_METHODS = 'GET, POST, PUT, DELETE, OPTIONS'
CORS_HEADERS = 'Content-Type, Authorization'


def _allowed_origin(origin):
    if '*' in Config.CORS_ORIGINS:
        return origin or '*'
    if origin in Config.CORS_ORIGINS:
        return origin
    return None


def create_app():
    setup_logging()
    app = Flask(__name__)
    app.config.from_object(Config)
    Config.validate()

    # ============================================================
    # CORS MIDDLEWARE
    # ============================================================
    @app.after_request
    def add_cors_headers(response):
        origin = _allowed_origin(request.headers.get('Origin'))
        if origin:
            response.headers['Access-Control-Allow-Origin'] = origin
            response.headers['Access-Control-Allow-Credentials'] = 'true' if origin != '*' else 'false'
            response.headers['Access-Control-Allow-Methods'] = CORS_METHODS
            response.headers['Access-Control-Allow-Headers'] = CORS_HEADERS
            if origin != '*':
                response.headers['Vary'] = 'Origin'
        return response

    @app.before_request
    def handle_options():
        """Answer OPTIONS preflight requests"""
        if request.method == 'OPTIONS':
            return jsonify({}), 200

    # ============================================================
    # REGISTER BLUEPRINTS
    # ============================================================
    for blueprint in (auth_bp, employee_bp, hr_staff_bp, team_lead_bp, leave_bp,
                      company_bp, salary_bp, document_bp):
        app.register_blueprint(blueprint)

    # ============================================================
    # HEALTH CHECK ENDPOINTS
    # ============================================================
    @app.route('/')
    def index():
        return jsonify({
            "message": "Welcome to the WorkFlowHR API",
            "version": "1.0",
            "status": "running"
        }), 200

    @app.route('/health')
    def health_check():
        return jsonify({
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "environment": Config.ENVIRONMENT
        }), 200

    @app.route('/test-db')
    def test_db():
        """Test database connection"""
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            return jsonify({"message": "Database connection successful", "status": "connected"}), 200
        except Exception:
            logger.exception("Database connection check failed")
            return jsonify({"message": "Database connection failed", "status": "error"}), 500
        finally:
            db.close()

    # ============================================================
    # ERROR HANDLERS
    # ============================================================
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"message": "Endpoint not found", "status": 404}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"message": "Method not allowed", "status": 405}), 405

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({"message": "Internal server error", "status": 500}), 500

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle all uncaught exceptions"""
        if isinstance(error, HTTPException):
            return jsonify({"message": error.description, "status": error.code}), error.code
        logger.exception(f"Unhandled exception: {error}")
        return jsonify({"message": "An unexpected error occurred", "status": 500}), 500

    return app


app = create_app()


if __name__ == '__main__':
    try:
        init_db()
    except Exception:
        logger.exception("Database initialization failed. Check DATABASE_URL or the DB_* settings.")

    logger.info("WorkFlowHR API starting on http://0.0.0.0:5001")
    app.run(debug=Config.ENVIRONMENT == 'development', host='0.0.0.0', port=5001)
