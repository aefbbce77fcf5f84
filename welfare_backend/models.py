from datetime import datetime
import math

from pydantic.alias_generators import to_camel
from sqlalchemy import update
from werkzeug.security import generate_password_hash, check_password_hash

from welfare_backend.extensions import db


CURRENCIES = ("PKR", "USD", "EUR", "GBP", "AED", "SAR")
# Static PKR conversion rates (1 unit of currency = N PKR)
EXCHANGE_RATES = {"PKR": 1, "USD": 280, "EUR": 300, "GBP": 350, "AED": 76, "SAR": 75}
CURRENCY_SYMBOLS = {"PKR": "₨", "USD": "$", "EUR": "€", "GBP": "£"}

PAYMENT_METHODS = ("bank_transfer", "credit_card", "debit_card", "jazzcash", "easypaisa", "paypal")
PAYMENT_GATEWAYS = ("manual", "meezan", "stripe", "paypal", "razorpay")
DONATION_STATUSES = ("pending", "processing", "completed", "failed", "cancelled", "refunded")
# statuses that take a donation back out of project/donor totals
REVERSAL_STATUSES = ("failed", "cancelled", "refunded")

PROJECT_CATEGORIES = ("healthcare", "education", "emergency", "food", "shelter", "other")
PROJECT_STATUSES = ("active", "ongoing", "completed", "upcoming")
ADMIN_ROLES = ("admin", "superadmin")
MESSAGE_STATUSES = ("new", "read", "replied", "archived")

DEFAULT_BANK_NAME = "Meezan Bank Limited"
DEFAULT_ACCOUNT_TITLE = "Pakistan Medico International"
DEFAULT_SWIFT_CODE = "MEZNPKKA"


def iso(value):
    return value.isoformat() if value else None


def camel_dict(obj, exclude=()):
    """Serialize every column of ``obj`` with camelCase keys."""
    out = {"id": obj.id, "_id": obj.id}
    for column in obj.__table__.columns:
        if column.key in exclude or column.key == "id":
            continue
        value = getattr(obj, column.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        out[to_camel(column.key)] = value
    return out


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PasswordMixin:
    """Salted password storage. Hashing happens in set_password, never implicitly."""
    password_hash = db.Column(db.String(255), nullable=False)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash or not password:
            return False
        return check_password_hash(self.password_hash, password)


class SingletonMixin:
    @classmethod
    def get_settings(cls):
        """Load the single settings row, creating it with defaults on first access."""
        settings = cls.query.order_by(cls.id).first()
        if settings is None:
            settings = cls()
            db.session.add(settings)
            db.session.commit()
        return settings


# ---------------- PROJECTS ----------------
class Project(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    location = db.Column(db.String(255), nullable=False, index=True)
    images = db.Column(db.JSON, nullable=False, default=list)
    category = db.Column(db.String(20), nullable=False, default="healthcare", index=True)
    start_date = db.Column(db.DateTime, default=datetime.utcnow)
    end_date = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="active", index=True)
    beneficiaries = db.Column(db.Integer, default=0)
    target_amount = db.Column(db.Float, nullable=False, default=0)
    raised_amount = db.Column(db.Float, nullable=False, default=0)
    donation_count = db.Column(db.Integer, nullable=False, default=0)

    @property
    def percentage_raised(self):
        if not self.target_amount:
            return 0
        # round half up, like the frontend does
        return int(math.floor(self.raised_amount / self.target_amount * 100 + 0.5))

    @classmethod
    def credit(cls, project_id, amount, count=1):
        """Atomically add ``amount``/``count`` to the funding counters (negative to reverse)."""
        stmt = (
            update(cls)
            .where(cls.id == project_id)
            .values(raised_amount=cls.raised_amount + amount, donation_count=cls.donation_count + count)
            .execution_options(synchronize_session="fetch")
        )
        db.session.execute(stmt)

    def summary(self):
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "image": self.images[0] if self.images else None,
        }

    def to_dict(self):
        images = self.images or []
        return {
            "id": self.id,
            "_id": self.id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "image": images[0] if images else None,
            "images": images,
            "category": self.category,
            "startDate": iso(self.start_date),
            "endDate": iso(self.end_date),
            "status": self.status,
            "beneficiaries": self.beneficiaries,
            "targetAmount": self.target_amount,
            "raisedAmount": self.raised_amount,
            "donationCount": self.donation_count,
            "percentageRaised": self.percentage_raised,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


# ---------------- ACCOUNTS ----------------
class Donor(PasswordMixin, TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(40), nullable=True)
    street = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    country = db.Column(db.String(100), nullable=True, index=True)
    postal_code = db.Column(db.String(20), nullable=True)
    is_anonymous = db.Column(db.Boolean, nullable=False, default=False)
    total_donated = db.Column(db.Float, nullable=False, default=0)
    donation_count = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    @classmethod
    def credit(cls, donor_id, amount, count=1):
        stmt = (
            update(cls)
            .where(cls.id == donor_id)
            .values(total_donated=cls.total_donated + amount, donation_count=cls.donation_count + count)
            .execution_options(synchronize_session="fetch")
        )
        db.session.execute(stmt)

    def set_address(self, address):
        address = address or {}
        for key, attr in (("street", "street"), ("city", "city"), ("country", "country"), ("postalCode", "postal_code")):
            if key in address:
                setattr(self, attr, address[key])

    def to_dict(self):
        return {
            "id": self.id,
            "_id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": {
                "street": self.street,
                "city": self.city,
                "country": self.country,
                "postalCode": self.postal_code,
            },
            "isAnonymous": self.is_anonymous,
            "totalDonated": self.total_donated,
            "donationCount": self.donation_count,
            "isActive": self.is_active,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class Admin(PasswordMixin, TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default="admin")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_login = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "_id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "lastLogin": iso(self.last_login),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


# ---------------- DONATIONS ----------------
class Donation(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(64), unique=True, nullable=True, index=True)

    # contact details as given on the donation form
    donor_name = db.Column(db.String(150), nullable=False)
    donor_email = db.Column(db.String(255), nullable=False, index=True)
    donor_phone = db.Column(db.String(40), nullable=True)
    donor_address = db.Column(db.String(255), nullable=True)
    donor_country = db.Column(db.String(100), nullable=True, index=True)
    # registered donor account, when the donor was signed in
    donor_id = db.Column(db.Integer, db.ForeignKey("donor.id"), nullable=True, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True, index=True)

    amount = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="PKR", index=True)
    exchange_rate = db.Column(db.Float, nullable=False, default=1)
    converted_amount = db.Column(db.Float, nullable=False, default=0)

    payment_method = db.Column(db.String(20), nullable=False, default="bank_transfer")
    payment_gateway = db.Column(db.String(20), nullable=False, default="manual")
    gateway_transaction_id = db.Column(db.String(128), nullable=True)
    gateway_order_id = db.Column(db.String(128), nullable=True)
    gateway_status = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    bank_name = db.Column(db.String(128), default=DEFAULT_BANK_NAME)
    bank_account_number = db.Column(db.String(64), nullable=True)
    bank_account_title = db.Column(db.String(128), default=DEFAULT_ACCOUNT_TITLE)
    bank_swift_code = db.Column(db.String(32), default=DEFAULT_SWIFT_CODE)
    bank_iban = db.Column(db.String(64), nullable=True)
    bank_branch = db.Column(db.String(128), nullable=True)
    bank_reference = db.Column(db.String(128), nullable=True)
    bank_transfer_date = db.Column(db.DateTime, nullable=True)
    bank_transfer_slip = db.Column(db.String(500), nullable=True)

    ip_address = db.Column(db.String(64), nullable=True)
    location = db.Column(db.JSON, nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)

    privacy_policy_accepted = db.Column(db.Boolean, nullable=False, default=False)
    privacy_policy_accepted_at = db.Column(db.DateTime, nullable=True)
    terms_accepted = db.Column(db.Boolean, nullable=False, default=False)

    verified_by_id = db.Column(db.Integer, db.ForeignKey("admin.id"), nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)

    card_last4 = db.Column(db.String(4), nullable=True)
    card_brand = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    receipt_sent = db.Column(db.Boolean, nullable=False, default=False)
    receipt_sent_at = db.Column(db.DateTime, nullable=True)

    # whether this donation is currently counted in project/donor totals
    project_credited = db.Column(db.Boolean, nullable=False, default=False)
    donor_credited = db.Column(db.Boolean, nullable=False, default=False)

    project = db.relationship("Project")
    donor_account = db.relationship("Donor")
    verified_by = db.relationship("Admin")

    def apply_exchange_rate(self):
        if self.currency and self.currency != "PKR" and self.currency in EXCHANGE_RATES:
            self.exchange_rate = EXCHANGE_RATES[self.currency]
            self.converted_amount = self.amount * self.exchange_rate
        else:
            self.exchange_rate = 1
            self.converted_amount = self.amount or 0

    @property
    def credited_amount(self):
        return self.converted_amount or self.amount

    def credit_project(self):
        if self.project_id and not self.project_credited:
            Project.credit(self.project_id, self.credited_amount, 1)
            self.project_credited = True

    def credit_donor(self):
        if self.donor_id and not self.donor_credited:
            Donor.credit(self.donor_id, self.credited_amount, 1)
            self.donor_credited = True

    def reverse_credits(self):
        if self.project_credited:
            if self.project_id:
                Project.credit(self.project_id, -self.credited_amount, -1)
            self.project_credited = False
        if self.donor_credited:
            if self.donor_id:
                Donor.credit(self.donor_id, -self.credited_amount, -1)
            self.donor_credited = False

    def apply_status(self, status, admin=None):
        """Move to ``status`` and keep project/donor totals in step. Any transition is allowed."""
        self.status = status
        if status == "completed":
            self.credit_project()
            self.credit_donor()
            if admin is not None:
                self.verified_by_id = admin.id
            self.verified_at = datetime.utcnow()
            # receipt emails are not wired up yet; only the flag is recorded
            if not self.receipt_sent:
                self.receipt_sent = True
                self.receipt_sent_at = datetime.utcnow()
        elif status in REVERSAL_STATUSES:
            self.reverse_credits()

    @property
    def formatted_amount(self):
        symbol = CURRENCY_SYMBOLS.get(self.currency, self.currency)
        return f"{symbol} {self.amount:,.2f}"

    @property
    def bank_summary(self):
        if self.bank_account_number:
            return f"{self.bank_name} - A/C {self.bank_account_number[-4:]}"
        return self.bank_name

    def to_dict(self):
        return {
            "id": self.id,
            "_id": self.id,
            "reference": self.reference,
            "donor": {
                "name": self.donor_name,
                "email": self.donor_email,
                "phone": self.donor_phone,
                "address": self.donor_address,
                "country": self.donor_country,
            },
            "donorId": self.donor_id,
            "project": self.project.summary() if self.project else None,
            "projectId": self.project_id,
            "amount": self.amount,
            "currency": self.currency,
            "exchangeRate": self.exchange_rate,
            "convertedAmount": self.converted_amount,
            "formattedAmount": self.formatted_amount,
            "paymentMethod": self.payment_method,
            "paymentGateway": self.payment_gateway,
            "gatewayTransactionId": self.gateway_transaction_id,
            "gatewayOrderId": self.gateway_order_id,
            "gatewayStatus": self.gateway_status,
            "status": self.status,
            "bankName": self.bank_name,
            "bankAccountNumber": self.bank_account_number,
            "bankAccountTitle": self.bank_account_title,
            "bankSwiftCode": self.bank_swift_code,
            "bankIBAN": self.bank_iban,
            "bankBranch": self.bank_branch,
            "bankReference": self.bank_reference,
            "bankTransferDate": iso(self.bank_transfer_date),
            "bankTransferSlip": self.bank_transfer_slip,
            "bankSummary": self.bank_summary,
            "ipAddress": self.ip_address,
            "location": self.location or {},
            "userAgent": self.user_agent,
            "privacyPolicyAccepted": self.privacy_policy_accepted,
            "privacyPolicyAcceptedAt": iso(self.privacy_policy_accepted_at),
            "termsAccepted": self.terms_accepted,
            "verifiedBy": {"id": self.verified_by.id, "name": self.verified_by.name, "email": self.verified_by.email} if self.verified_by else None,
            "verifiedAt": iso(self.verified_at),
            "cardLast4": self.card_last4,
            "cardBrand": self.card_brand,
            "notes": self.notes,
            "receiptSent": self.receipt_sent,
            "receiptSentAt": iso(self.receipt_sent_at),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


# ---------------- SINGLETON SETTINGS / CONTENT ----------------
def _default_currencies():
    return ["PKR", "USD", "EUR", "GBP"]


def _default_exchange_rates():
    return {code: rate for code, rate in EXCHANGE_RATES.items() if code != "PKR"}


def _default_working_hours():
    return {
        "weekdays": "Monday - Friday: 9:00 AM - 6:00 PM",
        "weekends": "Saturday: 10:00 AM - 4:00 PM",
        "holidays": "Sunday: Closed",
    }


class DonationSettings(SingletonMixin, TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    bank_details_image = db.Column(db.String(500), default="")
    bank_details_image2 = db.Column(db.String(500), default="")
    bank_name = db.Column(db.String(128), default=DEFAULT_BANK_NAME)
    account_number = db.Column(db.String(64), default="")
    account_title = db.Column(db.String(128), default=DEFAULT_ACCOUNT_TITLE)
    iban = db.Column(db.String(64), default="")
    swift_code = db.Column(db.String(32), default=DEFAULT_SWIFT_CODE)
    branch_code = db.Column(db.String(32), default="")
    branch_address = db.Column(db.String(255), default="")
    international_bank_name = db.Column(db.String(128), nullable=True)
    international_account_number = db.Column(db.String(64), nullable=True)
    international_swift_code = db.Column(db.String(32), nullable=True)
    international_routing_number = db.Column(db.String(32), nullable=True)
    payment_instructions = db.Column(db.Text, default=(
        'Please mention "Donation" in the transaction description. '
        'After payment, email the transfer receipt to donations@pmiofficial.com'
    ))
    privacy_policy_text = db.Column(db.Text, default=(
        "Your donation information will be kept confidential and used only "
        "for donation processing and receipt purposes."
    ))
    accepted_currencies = db.Column(db.JSON, default=_default_currencies)
    default_currency = db.Column(db.String(3), default="PKR")
    exchange_rates = db.Column(db.JSON, default=_default_exchange_rates)
    enabled_payment_methods = db.Column(db.JSON, default=lambda: ["bank_transfer"])
    donation_receipt_email = db.Column(db.JSON, default=lambda: {"subject": "", "body": ""})
    contact_email = db.Column(db.String(255), default="donations@pmiofficial.com")
    contact_phone = db.Column(db.String(40), default="+92 333 2107502")
    notify_on_donation = db.Column(db.Boolean, default=True)
    notification_emails = db.Column(db.JSON, default=list)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("admin.id"), nullable=True)

    def to_dict(self):
        return camel_dict(self)


class ContactSettings(SingletonMixin, TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    organization_name = db.Column(db.String(255), nullable=False, default=DEFAULT_ACCOUNT_TITLE)
    addresses = db.Column(db.JSON, default=list)
    phones = db.Column(db.JSON, default=list)
    emails = db.Column(db.JSON, default=list)
    working_hours = db.Column(db.JSON, default=_default_working_hours)
    social_media = db.Column(db.JSON, default=dict)
    map_settings = db.Column(db.JSON, default=dict)
    contact_form_enabled = db.Column(db.Boolean, nullable=False, default=True)
    auto_reply_enabled = db.Column(db.Boolean, nullable=False, default=True)
    auto_reply_message = db.Column(db.Text, default="Thank you for contacting us. We will get back to you within 24 hours.")
    notification_email = db.Column(db.String(255), default="admin@welfare.org")

    def to_dict(self):
        return camel_dict(self)


class ContactMessage(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(40), nullable=True)
    subject = db.Column(db.String(255), nullable=True)
    message = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="new", index=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)

    def to_dict(self):
        return camel_dict(self)


class AboutUs(SingletonMixin, TimestampMixin, db.Model):
    __tablename__ = "about_us"
    id = db.Column(db.Integer, primary_key=True)
    mission = db.Column(db.Text, default="")
    vision = db.Column(db.Text, default="")
    values = db.Column(db.JSON, default=lambda: {"compassion": "", "excellence": "", "equity": "", "transparency": ""})
    achievements = db.Column(db.JSON, default=lambda: {"patientsTreated": "", "medicalCamps": "", "partnerHospitals": "", "awards": ""})
    team_members = db.Column(db.JSON, default=list)
    certificates = db.Column(db.JSON, default=list)

    def to_dict(self):
        return camel_dict(self)
