from flask import Blueprint, current_app, g, request

from welfare_backend.auth import admin_required
from welfare_backend.envelope import failure, pagination, success
from welfare_backend.extensions import db
from welfare_backend.models import ContactMessage, ContactSettings
from welfare_backend.payments import client_ip
from welfare_backend.schemas import ContactSettingsUpdate, ContactSubmit, MessageStatusUpdate, load_body

contact_bp = Blueprint("contact", __name__)


@contact_bp.route("/settings", methods=["GET"])
def get_settings():
    try:
        return success(ContactSettings.get_settings().to_dict())
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to load contact settings: {e}")
        return failure("Failed to fetch contact settings", 500, error=str(e))


@contact_bp.route("/settings", methods=["PUT"])
@admin_required
def update_settings():
    payload = load_body(ContactSettingsUpdate)
    try:
        settings = ContactSettings.get_settings()
        for key, value in payload.changes().items():
            setattr(settings, key, value)
        db.session.commit()
        current_app.logger.info(f"Contact settings updated by admin {g.admin.id}")
        return success(settings.to_dict(), "Contact settings updated successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update contact settings: {e}")
        return failure("Failed to update contact settings", 500, error=str(e))


@contact_bp.route("/submit", methods=["POST"])
def submit():
    payload = load_body(ContactSubmit)
    try:
        settings = ContactSettings.get_settings()
        if not settings.contact_form_enabled:
            return failure("Contact form is currently disabled", 403)
        message = ContactMessage(
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            subject=payload.subject,
            message=payload.message,
            ip_address=client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        db.session.add(message)
        db.session.commit()
        current_app.logger.info(f"Contact message {message.id} received from {message.email}")
        return success(
            message.to_dict(),
            "Your message has been sent successfully. We will get back to you soon!",
            201,
        )
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to store contact message: {e}")
        return failure("Failed to submit contact form", 500, error=str(e))


@contact_bp.route("/messages", methods=["GET"])
@admin_required
def list_messages():
    status = request.args.get("status")
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 20, type=int), 1), 200)
    try:
        query = ContactMessage.query
        if status:
            query = query.filter(ContactMessage.status == status)
        total = query.count()
        messages = (
            query.order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return success([m.to_dict() for m in messages], pagination=pagination(page, limit, total))
    except Exception as e:
        current_app.logger.error(f"Failed to list contact messages: {e}")
        return failure("Failed to fetch contact messages", 500, error=str(e))


@contact_bp.route("/messages/<int:message_id>", methods=["PUT"])
@admin_required
def update_message(message_id):
    payload = load_body(MessageStatusUpdate)
    try:
        message = db.session.get(ContactMessage, message_id)
        if message is None:
            return failure("Message not found", 404)
        message.status = payload.status
        db.session.commit()
        return success(message.to_dict(), "Message status updated")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update contact message {message_id}: {e}")
        return failure("Failed to update message status", 500, error=str(e))


@contact_bp.route("/messages/<int:message_id>", methods=["DELETE"])
@admin_required
def delete_message(message_id):
    try:
        message = db.session.get(ContactMessage, message_id)
        if message is None:
            return failure("Message not found", 404)
        db.session.delete(message)
        db.session.commit()
        return success(message="Message deleted successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete contact message {message_id}: {e}")
        return failure("Failed to delete message", 500, error=str(e))
