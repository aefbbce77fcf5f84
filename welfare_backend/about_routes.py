from flask import Blueprint, current_app, g

from welfare_backend.auth import admin_required
from welfare_backend.envelope import failure, success
from welfare_backend.extensions import db
from welfare_backend.models import AboutUs
from welfare_backend.schemas import AboutUsUpdate, load_body

about_bp = Blueprint("about", __name__)


@about_bp.route("", methods=["GET"])
@about_bp.route("/", methods=["GET"])
def get_about():
    try:
        return success(AboutUs.get_settings().to_dict())
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to load About Us: {e}")
        return failure("Failed to fetch About Us data", 500, error=str(e))


@about_bp.route("", methods=["PUT"])
@about_bp.route("/", methods=["PUT"])
@admin_required
def update_about():
    payload = load_body(AboutUsUpdate)
    try:
        about = AboutUs.get_settings()
        for key, value in payload.changes().items():
            # blank text keeps what is stored; lists are taken as sent
            if value is None or value == "":
                continue
            setattr(about, key, value)
        db.session.commit()
        current_app.logger.info(f"About Us updated by admin {g.admin.id}")
        return success(about.to_dict(), "About Us updated successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update About Us: {e}")
        return failure("Failed to update About Us", 500, error=str(e))
