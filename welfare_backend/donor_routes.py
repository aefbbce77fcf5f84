from flask import Blueprint, current_app, g, request
from sqlalchemy import or_

from welfare_backend.auth import DONOR, admin_required, donor_required, generate_token
from welfare_backend.envelope import failure, pagination, success
from welfare_backend.extensions import db
from welfare_backend.models import Donation, Donor
from welfare_backend.schemas import (
    DonorProfileUpdate,
    DonorRegister,
    DonorStatusUpdate,
    LoginRequest,
    load_body,
)

donors_bp = Blueprint("donors", __name__)

# sortBy values the admin list accepts, mapped to columns
SORT_COLUMNS = {
    "createdAt": Donor.created_at,
    "name": Donor.name,
    "email": Donor.email,
    "totalDonated": Donor.total_donated,
    "donationCount": Donor.donation_count,
}


def _session(donor):
    return {"token": generate_token(donor.id, DONOR), "donor": donor.to_dict()}


# ---------- SELF SERVICE ----------
@donors_bp.route("/register", methods=["POST"])
def register():
    payload = load_body(DonorRegister)
    if Donor.query.filter_by(email=payload.email).first():
        return failure("Donor already exists with this email", 400)
    try:
        donor = Donor(
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            is_anonymous=payload.is_anonymous,
        )
        donor.set_password(payload.password)
        if payload.address:
            donor.set_address(payload.address.model_dump(by_alias=True, exclude_unset=True))
        db.session.add(donor)
        db.session.commit()
        current_app.logger.info(f"Donor {donor.id} registered")
        return success(_session(donor), "Donor registered successfully", 201)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Donor registration failed: {e}")
        return failure("Failed to register donor", 500, error=str(e))


@donors_bp.route("/login", methods=["POST"])
def login():
    payload = load_body(LoginRequest)
    donor = Donor.query.filter_by(email=payload.email).first()
    if donor is None or not donor.check_password(payload.password):
        return failure("Invalid credentials", 401)
    if not donor.is_active:
        return failure("Donor account is deactivated", 401)
    return success(_session(donor), "Login successful")


@donors_bp.route("/profile", methods=["GET"])
@donor_required
def get_profile():
    return success(g.donor.to_dict())


@donors_bp.route("/profile", methods=["PUT"])
@donor_required
def update_profile():
    payload = load_body(DonorProfileUpdate)
    donor = g.donor
    try:
        if payload.name:
            donor.name = payload.name
        if payload.phone is not None:
            donor.phone = payload.phone
        if payload.address is not None:
            donor.set_address(payload.address.model_dump(by_alias=True, exclude_unset=True))
        if payload.is_anonymous is not None:
            donor.is_anonymous = payload.is_anonymous
        db.session.commit()
        return success(donor.to_dict(), "Profile updated successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update donor profile {donor.id}: {e}")
        return failure("Failed to update profile", 500, error=str(e))


@donors_bp.route("/donations", methods=["GET"])
@donor_required
def my_donations():
    try:
        donations = (
            Donation.query.filter_by(donor_id=g.donor.id)
            .order_by(Donation.created_at.desc(), Donation.id.desc())
            .all()
        )
        return success([d.to_dict() for d in donations], count=len(donations))
    except Exception as e:
        current_app.logger.error(f"Failed to fetch donations for donor {g.donor.id}: {e}")
        return failure("Failed to fetch donations", 500, error=str(e))


# ---------- ADMIN ----------
@donors_bp.route("", methods=["GET"])
@donors_bp.route("/", methods=["GET"])
@admin_required
def list_donors():
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 20, type=int), 1), 200)
    search = (request.args.get("search") or "").strip()
    column = SORT_COLUMNS.get(request.args.get("sortBy"), Donor.created_at)
    order = column.asc() if request.args.get("order") == "asc" else column.desc()
    try:
        query = Donor.query
        if search:
            like = f"%{search}%"
            query = query.filter(or_(Donor.name.ilike(like), Donor.email.ilike(like)))
        total = query.count()
        donors = query.order_by(order, Donor.id).offset((page - 1) * limit).limit(limit).all()
        return success([d.to_dict() for d in donors], pagination=pagination(page, limit, total))
    except Exception as e:
        current_app.logger.error(f"Failed to list donors: {e}")
        return failure("Failed to fetch donors", 500, error=str(e))


@donors_bp.route("/<int:donor_id>", methods=["GET"])
@admin_required
def get_donor(donor_id):
    try:
        donor = db.session.get(Donor, donor_id)
        if donor is None:
            return failure("Donor not found", 404)
        donations = (
            Donation.query.filter_by(donor_id=donor_id)
            .order_by(Donation.created_at.desc(), Donation.id.desc())
            .all()
        )
        data = donor.to_dict()
        data["donations"] = [d.to_dict() for d in donations]
        return success(data)
    except Exception as e:
        current_app.logger.error(f"Failed to fetch donor {donor_id}: {e}")
        return failure("Failed to fetch donor", 500, error=str(e))


@donors_bp.route("/<int:donor_id>/status", methods=["PUT"])
@admin_required
def set_donor_status(donor_id):
    payload = load_body(DonorStatusUpdate)
    try:
        donor = db.session.get(Donor, donor_id)
        if donor is None:
            return failure("Donor not found", 404)
        donor.is_active = payload.is_active
        db.session.commit()
        state = "activated" if donor.is_active else "deactivated"
        current_app.logger.info(f"Donor {donor_id} {state} by admin {g.admin.id}")
        return success(donor.to_dict(), f"Donor {state} successfully")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update donor {donor_id} status: {e}")
        return failure("Failed to update donor status", 500, error=str(e))
