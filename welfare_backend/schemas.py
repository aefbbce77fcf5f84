"""
Request schemas for the welfare API.

Every JSON body is validated here before it reaches the database. Field names
are snake_case in Python and camelCase on the wire (``fullName``,
``projectId``...). A failed validation becomes a 400 envelope whose message
names the offending field.
"""
import math
import re
from datetime import datetime, timezone
from typing import Annotated, Dict, List, Optional

from flask import request
from pydantic import BaseModel, ConfigDict, Field, ValidationError, BeforeValidator, field_validator, model_validator
from pydantic.alias_generators import to_camel

from welfare_backend.envelope import ApiError
from welfare_backend.models import (
    ADMIN_ROLES,
    CURRENCIES,
    DONATION_STATUSES,
    EXCHANGE_RATES,
    MESSAGE_STATUSES,
    PAYMENT_METHODS,
    PROJECT_CATEGORIES,
    PROJECT_STATUSES,
)

EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")


def parse_date(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Invalid date: {value}")
    else:
        raise ValueError(f"Invalid date: {value}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _blank_to_none(value):
    return None if value == "" else value


def _parse_amount(value):
    # unparseable amounts become NaN so the donation checks report them in order
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


DateField = Annotated[Optional[datetime], BeforeValidator(parse_date)]


def _wire(value):
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [_wire(v) for v in value]
    if isinstance(value, dict):
        return {k: _wire(v) for k, v in value.items()}
    return value


def _check_choice(value, choices, label):
    if value is not None and value not in choices:
        raise ValueError(f"Invalid {label}. Accepted values: {', '.join(choices)}")
    return value


def _check_email(value, message="Please provide a valid email"):
    if value is None:
        return value
    if not EMAIL_RE.match(value):
        raise ValueError(message)
    return value.lower()


class RequestSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    def changes(self):
        """Fields the client sent, keyed by model attribute, nested values in wire format."""
        return {name: _wire(getattr(self, name)) for name in self.model_fields_set}


def describe(exc):
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()))
    if err["type"] == "value_error":
        return err["msg"].removeprefix("Value error, ")
    if err["type"] == "missing":
        return f"{field} is required"
    return f"{field}: {err['msg']}" if field else err["msg"]


def load_body(schema):
    """Validate the JSON (or form) body against ``schema`` or raise a 400 ApiError."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ApiError("Request body must be a JSON object")
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise ApiError(describe(e), 400)


# ---------- Accounts ----------

class AddressIn(RequestSchema):
    street: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class AdminRegister(RequestSchema):
    name: str
    email: str
    password: str
    role: str = "admin"

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v):
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v

    @field_validator("role")
    @classmethod
    def _role(cls, v):
        return _check_choice(v, ADMIN_ROLES, "role")


class DonorRegister(AdminRegister):
    role: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[AddressIn] = None
    is_anonymous: bool = False


class LoginRequest(RequestSchema):
    email: Optional[str] = None
    password: Optional[str] = None

    @model_validator(mode="after")
    def _present(self):
        if not self.email or not self.password:
            raise ValueError("Please provide email and password")
        self.email = self.email.lower()
        return self


class PasswordReset(RequestSchema):
    current_password: Optional[str] = None
    new_password: Optional[str] = None

    @model_validator(mode="after")
    def _present(self):
        if not self.current_password or not self.new_password:
            raise ValueError("Please provide current and new password")
        if len(self.new_password) < 6:
            raise ValueError("Password must be at least 6 characters")
        return self


class AdminProfileUpdate(RequestSchema):
    name: Optional[str] = None
    email: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return _check_email(v)


class DonorProfileUpdate(RequestSchema):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[AddressIn] = None
    is_anonymous: Optional[bool] = None


class DonorStatusUpdate(RequestSchema):
    is_active: bool


# ---------- Projects ----------

class ProjectFields(RequestSchema):
    image: Optional[str] = None
    images: Optional[List[str]] = None
    category: Optional[str] = None
    status: Optional[str] = None
    date: DateField = None
    start_date: DateField = None
    end_date: DateField = None
    beneficiaries: Optional[int] = Field(None, ge=0)
    target_amount: Optional[float] = Field(None, ge=0)

    @field_validator("title", "description", "location", check_fields=False)
    @classmethod
    def _not_blank(cls, v, info):
        if v is None or not v:
            raise ValueError(f"Project {info.field_name} is required")
        return v

    @field_validator("category")
    @classmethod
    def _category(cls, v):
        return _check_choice(v, PROJECT_CATEGORIES, "category")

    @field_validator("status")
    @classmethod
    def _status(cls, v):
        return _check_choice(v, PROJECT_STATUSES, "status")

    def changes(self):
        sent = self.model_fields_set
        out = {}
        for name in ("title", "description", "location", "category", "status",
                     "end_date", "beneficiaries", "target_amount"):
            # only end_date may be cleared with an explicit null
            if name in sent and (getattr(self, name) is not None or name == "end_date"):
                out[name] = getattr(self, name)
        if "images" in sent or "image" in sent:
            images = list(self.images or [])
            if self.image and self.image not in images:
                images.insert(0, self.image)
            out["images"] = images
        if "start_date" in sent or "date" in sent:
            out["start_date"] = self.start_date or self.date
        return out


class ProjectCreate(ProjectFields):
    title: str = Field(max_length=100)
    description: str
    location: str

    @model_validator(mode="after")
    def _needs_image(self):
        if not self.image and not self.images:
            raise ValueError("At least one project image is required")
        return self

    def changes(self):
        out = super().changes()
        out["category"] = out.get("category") or "healthcare"
        out["status"] = out.get("status") or "active"
        out["beneficiaries"] = out.get("beneficiaries") or 0
        out["target_amount"] = out.get("target_amount") or 0
        if not out.get("start_date"):
            # let the column default fill it in
            out.pop("start_date", None)
        return out


class ProjectUpdate(ProjectFields):
    title: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    location: Optional[str] = None


# ---------- Donations ----------

class DonorContact(RequestSchema):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None


class DonationCreate(RequestSchema):
    # nested donor object (older form) or flat fields (current form)
    donor: Optional[DonorContact] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    project_id: Annotated[Optional[int], BeforeValidator(_blank_to_none)] = None
    amount: Annotated[Optional[float], BeforeValidator(_parse_amount)] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    privacy_policy_accepted: Optional[bool] = None
    terms_accepted: Optional[bool] = None

    @model_validator(mode="after")
    def _validate(self):
        donor = self.donor or DonorContact()
        self.full_name = donor.name or self.full_name
        self.email = donor.email or self.email
        self.phone = donor.phone or self.phone or ""
        self.address = donor.address or self.address or ""
        self.country = donor.country or self.country or ""

        if not self.full_name or not self.email:
            raise ValueError("Full name and email are required")
        if not EMAIL_RE.match(self.email):
            raise ValueError("Please provide a valid email address")
        self.email = self.email.lower()
        if self.amount is None or not math.isfinite(self.amount) or self.amount < 1:
            raise ValueError("Valid donation amount is required")
        self.currency = (self.currency or "PKR").upper()
        if self.currency not in CURRENCIES:
            raise ValueError(f"Invalid currency. Accepted currencies: {', '.join(CURRENCIES)}")
        if not math.isfinite(self.amount * EXCHANGE_RATES.get(self.currency, 1)):
            raise ValueError("Valid donation amount is required")
        self.payment_method = self.payment_method or "bank_transfer"
        if self.payment_method not in PAYMENT_METHODS:
            raise ValueError(f"Invalid payment method. Accepted methods: {', '.join(PAYMENT_METHODS)}")
        return self


class DonationVerify(RequestSchema):
    status: Optional[str] = None
    bank_reference: Optional[str] = None
    bank_transfer_date: DateField = None
    bank_transfer_slip: Optional[str] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def _status(cls, v):
        return _check_choice(v, DONATION_STATUSES, "status")


class ReceiptTemplate(RequestSchema):
    subject: Optional[str] = None
    body: Optional[str] = None


class DonationSettingsUpdate(RequestSchema):
    bank_details_image: Optional[str] = None
    bank_details_image2: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    account_title: Optional[str] = None
    iban: Optional[str] = None
    swift_code: Optional[str] = None
    branch_code: Optional[str] = None
    branch_address: Optional[str] = None
    international_bank_name: Optional[str] = None
    international_account_number: Optional[str] = None
    international_swift_code: Optional[str] = None
    international_routing_number: Optional[str] = None
    payment_instructions: Optional[str] = None
    privacy_policy_text: Optional[str] = None
    accepted_currencies: Optional[List[str]] = None
    default_currency: Optional[str] = None
    exchange_rates: Optional[Dict[str, float]] = None
    enabled_payment_methods: Optional[List[str]] = None
    donation_receipt_email: Optional[ReceiptTemplate] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    notify_on_donation: Optional[bool] = None
    notification_emails: Optional[List[str]] = None

    @field_validator("accepted_currencies")
    @classmethod
    def _currencies(cls, v):
        for code in v or []:
            _check_choice(code, CURRENCIES, "currency")
        return v

    @field_validator("default_currency")
    @classmethod
    def _default_currency(cls, v):
        return _check_choice(v, CURRENCIES, "currency")

    @field_validator("exchange_rates")
    @classmethod
    def _rates(cls, v):
        for code in v or {}:
            _check_choice(code, CURRENCIES, "currency")
        return v

    @field_validator("enabled_payment_methods")
    @classmethod
    def _methods(cls, v):
        for method in v or []:
            _check_choice(method, PAYMENT_METHODS, "payment method")
        return v


class BankImagesUpdate(RequestSchema):
    bank_details_image: Optional[str] = None
    bank_details_image2: Optional[str] = None


# ---------- Contact ----------

class AddressEntry(RequestSchema):
    label: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    is_primary: bool = False


class PhoneEntry(RequestSchema):
    label: Optional[str] = None
    number: Optional[str] = None
    is_primary: bool = False


class EmailEntry(RequestSchema):
    label: Optional[str] = None
    address: Optional[str] = None
    is_primary: bool = False


class WorkingHours(RequestSchema):
    weekdays: Optional[str] = None
    weekends: Optional[str] = None
    holidays: Optional[str] = None


class SocialMedia(RequestSchema):
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    instagram: Optional[str] = None
    linkedin: Optional[str] = None
    youtube: Optional[str] = None


class MapSettings(RequestSchema):
    embed_url: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ContactSettingsUpdate(RequestSchema):
    organization_name: Optional[str] = None
    addresses: Optional[List[AddressEntry]] = None
    phones: Optional[List[PhoneEntry]] = None
    emails: Optional[List[EmailEntry]] = None
    working_hours: Optional[WorkingHours] = None
    social_media: Optional[SocialMedia] = None
    map_settings: Optional[MapSettings] = None
    contact_form_enabled: Optional[bool] = None
    auto_reply_enabled: Optional[bool] = None
    auto_reply_message: Optional[str] = None
    notification_email: Optional[str] = None

    @field_validator("organization_name")
    @classmethod
    def _org(cls, v):
        if not v:
            raise ValueError("Organization name cannot be empty")
        return v


class ContactSubmit(RequestSchema):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None

    @model_validator(mode="after")
    def _required(self):
        if not self.name or not self.email or not self.message:
            raise ValueError("Name, email and message are required")
        self.email = _check_email(self.email)
        return self


class MessageStatusUpdate(RequestSchema):
    status: str

    @field_validator("status")
    @classmethod
    def _status(cls, v):
        return _check_choice(v, MESSAGE_STATUSES, "status")


# ---------- About us ----------

class CoreValues(RequestSchema):
    compassion: str = ""
    excellence: str = ""
    equity: str = ""
    transparency: str = ""


class Achievements(RequestSchema):
    patients_treated: str = ""
    medical_camps: str = ""
    partner_hospitals: str = ""
    awards: str = ""


class TeamMember(RequestSchema):
    name: str
    role: str
    image: str


class Certificate(RequestSchema):
    title: str
    issuer: str
    year: str
    image: str


class AboutUsUpdate(RequestSchema):
    mission: Optional[str] = None
    vision: Optional[str] = None
    values: Optional[CoreValues] = None
    achievements: Optional[Achievements] = None
    team_members: Optional[List[TeamMember]] = None
    certificates: Optional[List[Certificate]] = None
