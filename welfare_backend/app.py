import logging
import os
import time
from datetime import datetime

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from welfare_backend import config
from welfare_backend.about_routes import about_bp
from welfare_backend.admin_routes import admin_bp
from welfare_backend.contact_routes import contact_bp
from welfare_backend.donation_routes import donations_bp
from welfare_backend.donor_routes import donors_bp
from welfare_backend.envelope import ApiError, failure
from welfare_backend.extensions import db
from welfare_backend.project_routes import projects_bp
from welfare_backend.statistics_routes import statistics_bp
from welfare_backend.upload_routes import upload_bp
from welfare_backend.uploads import configure_cloudinary

STARTED_AT = time.time()

app = Flask(__name__)
app.config.from_object(config)
# Allow the admin and public frontends; Authorization must survive preflight
CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
     allow_headers=["Content-Type", "Authorization"], supports_credentials=True)
app.logger.setLevel(getattr(logging, app.config["LOG_LEVEL"], logging.INFO))

db.init_app(app)
app.config["CLOUDINARY_ENABLED"] = configure_cloudinary(app)

if not app.config["SECRET_KEY_FROM_ENV"]:
    app.logger.warning("SECRET_KEY not set. Using a random key; issued tokens will not survive a restart.")

app.register_blueprint(projects_bp, url_prefix="/api/projects")
app.register_blueprint(admin_bp, url_prefix="/api/admin")
app.register_blueprint(donors_bp, url_prefix="/api/donors")
app.register_blueprint(donations_bp, url_prefix="/api/donations")
app.register_blueprint(upload_bp, url_prefix="/api/upload")
app.register_blueprint(statistics_bp, url_prefix="/api/statistics")
app.register_blueprint(contact_bp, url_prefix="/api/contact")
app.register_blueprint(about_bp, url_prefix="/api/about")


def init_db(reset=False):
    """Create all tables (dropping them first when ``reset``)."""
    with app.app_context():
        if reset:
            db.drop_all()
        db.create_all()


# Log each incoming request briefly (kept lightweight)
@app.before_request
def log_request_info():
    app.logger.info(f"Incoming request: method={request.method} path={request.path} origin={request.headers.get('Origin')}")


@app.route("/")
def home():
    return jsonify({"message": "Welfare Organization API", "status": "running", "version": "1.0.0"})


@app.route("/health")
def health():
    return jsonify({
        "status": "OK",
        "timestamp": datetime.utcnow().isoformat(),
        "uptime": round(time.time() - STARTED_AT, 3),
    })


# ---------- ERRORS ----------
@app.errorhandler(ApiError)
def handle_api_error(e):
    return failure(e.message, e.status, error=e.error)


@app.errorhandler(404)
def not_found(e):
    return failure("Route not found", 404)


@app.errorhandler(405)
def method_not_allowed(e):
    return failure("Method not allowed", 405)


@app.errorhandler(413)
def too_large(e):
    limit = app.config["UPLOAD_MAX_BYTES"] // (1024 * 1024)
    return failure(f"File too large. Maximum size is {limit}MB", 413)


@app.errorhandler(HTTPException)
def http_error(e):
    return failure(e.description or e.name, e.code or 500)


@app.errorhandler(Exception)
def unhandled(e):
    app.logger.exception(f"Unhandled error on {request.method} {request.path}: {e}")
    db.session.rollback()
    return failure("Server error", 500, error=str(e))


init_db()


if __name__ == "__main__":
    # Use PORT env var if provided (useful for hosting platforms)
    port = int(os.environ.get("PORT", 5000))
    # Bind to 0.0.0.0 so the service is reachable from outside
    app.run(host="0.0.0.0", port=port, debug=(os.environ.get("FLASK_DEBUG", "False") == "True"))
