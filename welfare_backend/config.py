import os
from dotenv import load_dotenv

# Load local .env if present (for local development). The file is gitignored.
basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '.env'))


def _flag(name, default):
    return str(os.environ.get(name, default)).lower() in ('1', 'true', 'yes')


# Database: DATABASE_URL wins (Render/Heroku style), otherwise a local sqlite file
db_url = os.environ.get("DATABASE_URL")
if db_url and db_url.startswith("postgres://"):
    db_url = db_url.replace("postgres://", "postgresql://", 1)
SQLALCHEMY_DATABASE_URI = db_url or f"sqlite:///{os.path.join(basedir, os.environ.get('DONATIONS_DB', 'welfare.db'))}"
SQLALCHEMY_TRACK_MODIFICATIONS = False
SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

# Secret key used to sign auth tokens
SECRET_KEY = os.environ.get("SECRET_KEY") or os.environ.get("JWT_SECRET")
SECRET_KEY_FROM_ENV = bool(SECRET_KEY)
if not SECRET_KEY:
    SECRET_KEY = os.urandom(24).hex()
# token expiry in seconds (30 days)
TOKEN_EXPIRY = int(os.environ.get("TOKEN_EXPIRY", 30 * 24 * 3600))

CORS_ORIGINS = [o.strip() for o in os.environ.get(
    "CORS_ORIGINS",
    r"http://localhost:5173,http://localhost:3000,https://.*\.vercel\.app"
).split(',') if o.strip()]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Uploads are buffered in memory; 5MB per file, 10 files per request
UPLOAD_MAX_BYTES = int(os.environ.get("UPLOAD_MAX_BYTES", 5 * 1024 * 1024))
UPLOAD_MAX_FILES = 10
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp", "application/pdf"}
# Whole-request cap: every file at its limit plus form overhead
MAX_CONTENT_LENGTH = UPLOAD_MAX_BYTES * UPLOAD_MAX_FILES + 1024 * 1024

CLOUDINARY_CLOUD_NAME = os.environ.get("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.environ.get("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.environ.get("CLOUDINARY_API_SECRET")
CLOUDINARY_FOLDER = os.environ.get("CLOUDINARY_FOLDER", "welfare_organization")

# Meezan Bank hosted payment page (register.do API)
MEEZAN_USERNAME = os.environ.get("MEEZAN_USERNAME", "")
MEEZAN_PASSWORD = os.environ.get("MEEZAN_PASSWORD", "")
MEEZAN_REGISTER_URL = os.environ.get("MEEZAN_REGISTER_URL", "https://acquiring.meezanbank.com/payment/rest/register.do")
MEEZAN_RETURN_URL = os.environ.get("MEEZAN_RETURN_URL", "http://localhost:3000/donate/success")
MEEZAN_CANCEL_URL = os.environ.get("MEEZAN_CANCEL_URL", "http://localhost:3000/donation/cancel")
MEEZAN_TIMEOUT = float(os.environ.get("MEEZAN_TIMEOUT", 30))

GEO_API_URL = os.environ.get("GEO_API_URL", "http://ip-api.com/json/{ip}")
GEO_TIMEOUT = float(os.environ.get("GEO_TIMEOUT", 5))

REFERENCE_PREFIX = os.environ.get("REFERENCE_PREFIX", "PMI")

# Open admin registration is how the first admin is bootstrapped; switch off once one exists
ADMIN_REGISTRATION_ENABLED = _flag("ADMIN_REGISTRATION_ENABLED", "True")
