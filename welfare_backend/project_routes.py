from flask import Blueprint, current_app, g, request

from welfare_backend.auth import admin_required
from welfare_backend.envelope import failure, success
from welfare_backend.extensions import db
from welfare_backend.models import Donation, Project
from welfare_backend.schemas import ProjectCreate, ProjectUpdate, load_body

projects_bp = Blueprint("projects", __name__)


# ---------- PUBLIC ----------
@projects_bp.route("", methods=["GET"])
@projects_bp.route("/", methods=["GET"])
def list_projects():
    status = request.args.get("status")
    location = request.args.get("location")
    category = request.args.get("category")
    try:
        query = Project.query
        if status:
            query = query.filter(Project.status == status)
        if category:
            query = query.filter(Project.category == category)
        if location:
            # case-insensitive substring match
            query = query.filter(Project.location.ilike(f"%{location}%"))
        projects = query.order_by(Project.created_at.desc(), Project.id.desc()).all()
        return success([p.to_dict() for p in projects], count=len(projects))
    except Exception as e:
        current_app.logger.error(f"Failed to list projects: {e}")
        return failure("Failed to fetch projects", 500, error=str(e))


@projects_bp.route("/<int:project_id>", methods=["GET"])
def get_project(project_id):
    try:
        project = db.session.get(Project, project_id)
        if project is None:
            return failure("Project not found", 404)
        return success(project.to_dict())
    except Exception as e:
        current_app.logger.error(f"Failed to fetch project {project_id}: {e}")
        return failure("Failed to fetch project", 500, error=str(e))


# ---------- ADMIN ----------
@projects_bp.route("", methods=["POST"])
@projects_bp.route("/", methods=["POST"])
@admin_required
def create_project():
    payload = load_body(ProjectCreate)
    try:
        project = Project(**payload.changes())
        db.session.add(project)
        db.session.commit()
        current_app.logger.info(f"Project {project.id} created by admin {g.admin.id}")
        return success(project.to_dict(), "Project created successfully", 201)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create project: {e}")
        return failure("Failed to create project", 500, error=str(e))


@projects_bp.route("/<int:project_id>", methods=["PUT"])
@admin_required
def update_project(project_id):
    payload = load_body(ProjectUpdate)
    try:
        project = db.session.get(Project, project_id)
        if project is None:
            return failure("Project not found", 404)
        for key, value in payload.changes().items():
            setattr(project, key, value)
        db.session.commit()
        return success(project.to_dict(), "Project updated successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update project {project_id}: {e}")
        return failure("Failed to update project", 500, error=str(e))


@projects_bp.route("/<int:project_id>", methods=["DELETE"])
@admin_required
def delete_project(project_id):
    try:
        project = db.session.get(Project, project_id)
        if project is None:
            return failure("Project not found", 404)
        # donations outlive the project they were made for
        Donation.query.filter_by(project_id=project_id).update({"project_id": None}, synchronize_session="fetch")
        db.session.delete(project)
        db.session.commit()
        current_app.logger.info(f"Project {project_id} deleted by admin {g.admin.id}")
        return success({}, "Project deleted successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete project {project_id}: {e}")
        return failure("Failed to delete project", 500, error=str(e))
