import time
from datetime import datetime

import requests
from flask import Blueprint, current_app, g, request

from welfare_backend import aggregates
from welfare_backend.auth import admin_required, optional_donor
from welfare_backend.envelope import failure, pagination, success
from welfare_backend.extensions import db
from welfare_backend.models import Donation, DonationSettings, Project
from welfare_backend.payments import GatewayError, client_ip, lookup_location, register_transaction
from welfare_backend.schemas import (
    BankImagesUpdate,
    DonationCreate,
    DonationSettingsUpdate,
    DonationVerify,
    load_body,
)

donations_bp = Blueprint("donations", __name__)


def make_reference(donation):
    prefix = current_app.config["REFERENCE_PREFIX"]
    return f"{prefix}-{donation.id:08d}-{int(time.time() * 1000)}"


# ---------- SETTINGS ----------
@donations_bp.route("/settings", methods=["GET"])
def get_settings():
    try:
        return success(DonationSettings.get_settings().to_dict())
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to load donation settings: {e}")
        return failure("Failed to fetch donation settings", 500, error=str(e))


@donations_bp.route("/settings", methods=["PUT"])
@admin_required
def update_settings():
    payload = load_body(DonationSettingsUpdate)
    try:
        settings = DonationSettings.get_settings()
        for key, value in payload.changes().items():
            setattr(settings, key, value)
        settings.updated_by_id = g.admin.id
        db.session.commit()
        current_app.logger.info(f"Donation settings updated by admin {g.admin.id}")
        return success(settings.to_dict(), "Donation settings updated successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update donation settings: {e}")
        return failure("Failed to update donation settings", 500, error=str(e))


@donations_bp.route("/settings/upload-images", methods=["POST"])
@admin_required
def update_bank_images():
    payload = load_body(BankImagesUpdate)
    try:
        settings = DonationSettings.get_settings()
        # empty values leave the stored image alone
        if payload.bank_details_image:
            settings.bank_details_image = payload.bank_details_image
        if payload.bank_details_image2:
            settings.bank_details_image2 = payload.bank_details_image2
        settings.updated_by_id = g.admin.id
        db.session.commit()
        return success(
            {
                "bankDetailsImage": settings.bank_details_image,
                "bankDetailsImage2": settings.bank_details_image2,
            },
            "Images uploaded successfully",
        )
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update bank detail images: {e}")
        return failure("Failed to upload images", 500, error=str(e))


# ---------- PUBLIC ----------
@donations_bp.route("", methods=["POST"])
@donations_bp.route("/", methods=["POST"])
def create_donation():
    payload = load_body(DonationCreate)
    if payload.project_id is not None and db.session.get(Project, payload.project_id) is None:
        return failure("Project not found", 404)

    ip = client_ip(request)
    location = lookup_location(ip)
    accepted_privacy = payload.privacy_policy_accepted is not False
    bank_transfer = payload.payment_method == "bank_transfer"
    donor_account = optional_donor()

    try:
        settings = DonationSettings.get_settings()
        donation = Donation(
            donor_name=payload.full_name,
            donor_email=payload.email,
            donor_phone=payload.phone,
            donor_address=payload.address,
            donor_country=payload.country or location.get("country") or "",
            donor_id=donor_account.id if donor_account else None,
            project_id=payload.project_id,
            amount=payload.amount,
            currency=payload.currency,
            payment_method=payload.payment_method,
            payment_gateway="manual" if bank_transfer else "meezan",
            status="pending" if bank_transfer else "processing",
            bank_name=settings.bank_name,
            bank_account_number=settings.account_number or None,
            bank_account_title=settings.account_title,
            bank_swift_code=settings.swift_code,
            bank_iban=settings.iban or None,
            bank_branch=settings.branch_code or None,
            ip_address=ip,
            location=location,
            user_agent=request.headers.get("User-Agent"),
            privacy_policy_accepted=accepted_privacy,
            privacy_policy_accepted_at=datetime.utcnow() if accepted_privacy else None,
            terms_accepted=payload.terms_accepted is not False,
        )
        donation.apply_exchange_rate()
        db.session.add(donation)
        # the reference embeds the row id
        db.session.flush()
        donation.reference = make_reference(donation)
        donation.credit_project()
        db.session.commit()
        current_app.logger.info(
            f"Donation {donation.reference} created: {donation.amount} {donation.currency} via {donation.payment_method}"
        )
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create donation: {e}")
        return failure("Failed to create donation", 500, error=str(e))

    data = {
        "donationId": donation.id,
        "reference": donation.reference,
        "amount": donation.amount,
        "currency": donation.currency,
        "convertedAmount": donation.converted_amount,
        "status": donation.status,
    }
    if bank_transfer:
        return success(data, "Donation request created successfully", 201)

    try:
        form_url, gateway_payload = register_transaction(donation.reference, donation.amount, donation.currency)
    except (GatewayError, requests.RequestException) as e:
        current_app.logger.error(f"Payment gateway registration failed for {donation.reference}: {e}")
        donation.gateway_status = "registration_failed"
        db.session.commit()
        return failure("Failed to get payment URL from Meezan Bank", 500, error=str(e))

    try:
        donation.gateway_status = "registered"
        if isinstance(gateway_payload, dict) and gateway_payload.get("orderId"):
            donation.gateway_order_id = str(gateway_payload["orderId"])
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to record gateway order for {donation.reference}: {e}")
        return failure("Failed to create donation", 500, error=str(e))

    data["formUrl"] = form_url
    return success(data, "Donation request created successfully", 201)


@donations_bp.route("/<int:donation_id>", methods=["GET"])
def get_donation(donation_id):
    try:
        donation = db.session.get(Donation, donation_id)
        if donation is None:
            return failure("Donation not found", 404)
        return success(donation.to_dict())
    except Exception as e:
        current_app.logger.error(f"Failed to fetch donation {donation_id}: {e}")
        return failure("Failed to fetch donation", 500, error=str(e))


# ---------- ADMIN ----------
@donations_bp.route("", methods=["GET"])
@donations_bp.route("/", methods=["GET"])
@admin_required
def list_donations():
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 50, type=int), 1), 200)
    filters = []
    for arg, column in (("status", Donation.status), ("currency", Donation.currency),
                        ("paymentMethod", Donation.payment_method)):
        value = request.args.get(arg)
        if value:
            filters.append(column == value)
    country = (request.args.get("country") or "").strip()
    if country:
        filters.append(Donation.donor_country.ilike(f"%{country}%"))
    project_id = request.args.get("projectId", type=int)
    if project_id:
        filters.append(Donation.project_id == project_id)
    search = (request.args.get("search") or "").strip()
    if search:
        filters.append(aggregates.donation_search(search))

    try:
        query = Donation.query.filter(*filters)
        total = query.count()
        donations = (
            query.order_by(Donation.created_at.desc(), Donation.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return success(
            [d.to_dict() for d in donations],
            summary=aggregates.donation_list_summary(filters),
            pagination=pagination(page, limit, total),
        )
    except Exception as e:
        current_app.logger.error(f"Failed to list donations: {e}")
        return failure("Failed to fetch donations", 500, error=str(e))


@donations_bp.route("/statistics/summary", methods=["GET"])
@admin_required
def donation_summary():
    try:
        return success(aggregates.donation_summary())
    except Exception as e:
        current_app.logger.error(f"Failed to build donation summary: {e}")
        return failure("Failed to fetch donation statistics", 500, error=str(e))


@donations_bp.route("/<int:donation_id>/verify", methods=["PUT"])
@admin_required
def verify_donation(donation_id):
    payload = load_body(DonationVerify)
    try:
        donation = db.session.get(Donation, donation_id)
        if donation is None:
            return failure("Donation not found", 404)

        if payload.bank_reference:
            donation.bank_reference = payload.bank_reference
        if payload.bank_transfer_date:
            donation.bank_transfer_date = payload.bank_transfer_date
        if payload.bank_transfer_slip:
            donation.bank_transfer_slip = payload.bank_transfer_slip
        if payload.transaction_id:
            donation.gateway_transaction_id = payload.transaction_id
        if payload.notes is not None:
            donation.notes = payload.notes
        if payload.status:
            previous = donation.status
            donation.apply_status(payload.status, g.admin)
            current_app.logger.info(
                f"Donation {donation.reference} moved {previous} -> {donation.status} by admin {g.admin.id}"
            )
        db.session.commit()
        return success(donation.to_dict(), "Donation updated successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to verify donation {donation_id}: {e}")
        return failure("Failed to update donation", 500, error=str(e))


@donations_bp.route("/<int:donation_id>", methods=["DELETE"])
@admin_required
def delete_donation(donation_id):
    try:
        donation = db.session.get(Donation, donation_id)
        if donation is None:
            return failure("Donation not found", 404)
        donation.reverse_credits()
        db.session.delete(donation)
        db.session.commit()
        current_app.logger.info(f"Donation {donation_id} deleted by admin {g.admin.id}")
        return success({}, "Donation deleted successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete donation {donation_id}: {e}")
        return failure("Failed to delete donation", 500, error=str(e))
