from functools import wraps

from flask import current_app, g, request
# token support (URLSafeTimedSerializer works across itsdangerous versions)
from itsdangerous import URLSafeTimedSerializer as Serializer, BadSignature, SignatureExpired

from welfare_backend.envelope import failure
from welfare_backend.extensions import db
from welfare_backend.models import Admin, Donor

ADMIN = "admin"
DONOR = "donor"


def _serializer():
    return Serializer(current_app.config["SECRET_KEY"], salt="auth-token")


def generate_token(subject_id, subject_type):
    # URLSafeTimedSerializer.dumps returns a string
    return _serializer().dumps({"id": subject_id, "type": subject_type})


def decode_token(token):
    """Return the token payload; raises SignatureExpired / BadSignature."""
    return _serializer().loads(token, max_age=current_app.config["TOKEN_EXPIRY"])


def bearer_token(req):
    auth = req.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


def _authenticate(model, subject_type, label):
    """Resolve the bearer token to an active ``model`` row, or return an error response."""
    token = bearer_token(request)
    if not token:
        return None, failure("Not authorized to access this route", 401)
    try:
        payload = decode_token(token)
    except SignatureExpired:
        return None, failure("Not authorized to access this route", 401, error="Token expired")
    except BadSignature:
        return None, failure("Not authorized to access this route", 401, error="Invalid token")

    if not isinstance(payload, dict) or payload.get("type") != subject_type:
        return None, failure(f"Access denied. {label} only.", 403)

    account = db.session.get(model, payload["id"]) if payload.get("id") is not None else None
    if account is None:
        return None, failure(f"{label} not found", 401)
    if not account.is_active:
        return None, failure(f"{label} account is deactivated", 401)
    return account, None


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        admin, error = _authenticate(Admin, ADMIN, "Admin")
        if error:
            return error
        g.admin = admin
        return view(*args, **kwargs)
    return wrapper


def donor_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        donor, error = _authenticate(Donor, DONOR, "Donor")
        if error:
            return error
        g.donor = donor
        return view(*args, **kwargs)
    return wrapper


def optional_donor():
    """Signed-in donor for public routes; anonymous callers (or bad tokens) get None."""
    token = bearer_token(request)
    if not token:
        return None
    try:
        payload = decode_token(token)
    except (SignatureExpired, BadSignature):
        current_app.logger.info("Ignoring invalid donor token on public route")
        return None
    if not isinstance(payload, dict) or payload.get("type") != DONOR:
        return None
    donor = db.session.get(Donor, payload["id"]) if payload.get("id") is not None else None
    if donor is None or not donor.is_active:
        return None
    return donor
