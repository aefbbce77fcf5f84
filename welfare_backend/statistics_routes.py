from flask import Blueprint, current_app

from welfare_backend import aggregates
from welfare_backend.auth import admin_required
from welfare_backend.envelope import failure, success

statistics_bp = Blueprint("statistics", __name__)


def _respond(build, label):
    try:
        return success(build())
    except Exception as e:
        current_app.logger.error(f"Failed to build {label} statistics: {e}")
        return failure(f"Failed to fetch {label} statistics", 500, error=str(e))


@statistics_bp.route("/dashboard", methods=["GET"])
@admin_required
def dashboard():
    return _respond(aggregates.dashboard_stats, "dashboard")


@statistics_bp.route("/projects", methods=["GET"])
def projects():
    return _respond(aggregates.project_stats, "project")


@statistics_bp.route("/donations", methods=["GET"])
@admin_required
def donations():
    return _respond(aggregates.donation_stats, "donation")


@statistics_bp.route("/donors", methods=["GET"])
@admin_required
def donors():
    return _respond(aggregates.donor_stats, "donor")
