from datetime import datetime

from flask import Blueprint, current_app, g

from welfare_backend.auth import ADMIN, admin_required, generate_token
from welfare_backend.envelope import failure, success
from welfare_backend.extensions import db
from welfare_backend.models import Admin
from welfare_backend.schemas import AdminProfileUpdate, AdminRegister, LoginRequest, PasswordReset, load_body

admin_bp = Blueprint("admin", __name__)


def _session(admin):
    return {"token": generate_token(admin.id, ADMIN), "admin": admin.to_dict()}


@admin_bp.route("/register", methods=["POST"])
def register():
    if not current_app.config["ADMIN_REGISTRATION_ENABLED"]:
        return failure("Admin registration is disabled", 403)
    payload = load_body(AdminRegister)
    if Admin.query.filter_by(email=payload.email).first():
        return failure("Admin already exists with this email", 400)
    try:
        admin = Admin(name=payload.name, email=payload.email, role=payload.role)
        admin.set_password(payload.password)
        db.session.add(admin)
        db.session.commit()
        current_app.logger.info(f"Admin {admin.id} registered with role {admin.role}")
        return success(_session(admin), "Admin registered successfully", 201)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Admin registration failed: {e}")
        return failure("Failed to register admin", 500, error=str(e))


@admin_bp.route("/login", methods=["POST"])
def login():
    payload = load_body(LoginRequest)
    admin = Admin.query.filter_by(email=payload.email).first()
    if admin is None or not admin.check_password(payload.password):
        current_app.logger.warning(f"Failed admin login for {payload.email}")
        return failure("Invalid credentials", 401)
    if not admin.is_active:
        return failure("Admin account is deactivated", 401)
    try:
        admin.last_login = datetime.utcnow()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to record login for admin {admin.id}: {e}")
        return failure("Login failed", 500, error=str(e))
    return success(_session(admin), "Login successful")


@admin_bp.route("/profile", methods=["GET"])
@admin_required
def get_profile():
    return success(g.admin.to_dict())


@admin_bp.route("/profile", methods=["PUT"])
@admin_required
def update_profile():
    payload = load_body(AdminProfileUpdate)
    admin = g.admin
    if payload.email and payload.email != admin.email:
        if Admin.query.filter(Admin.email == payload.email, Admin.id != admin.id).first():
            return failure("Email is already in use", 400)
    try:
        if payload.name:
            admin.name = payload.name
        if payload.email:
            admin.email = payload.email
        db.session.commit()
        return success(admin.to_dict(), "Profile updated successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update admin profile {admin.id}: {e}")
        return failure("Failed to update profile", 500, error=str(e))


@admin_bp.route("/reset-password", methods=["PUT"])
@admin_required
def reset_password():
    payload = load_body(PasswordReset)
    admin = g.admin
    if not admin.check_password(payload.current_password):
        return failure("Current password is incorrect", 401)
    try:
        admin.set_password(payload.new_password)
        db.session.commit()
        current_app.logger.info(f"Admin {admin.id} changed their password")
        return success(message="Password updated successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to reset password for admin {admin.id}: {e}")
        return failure("Failed to update password", 500, error=str(e))
