import io
from functools import wraps

import cloudinary
import cloudinary.uploader
from flask import current_app, g, request
from werkzeug.utils import secure_filename

from welfare_backend.envelope import failure

# Max width 1200px, automatic quality and format (WebP where supported)
TRANSFORMATION = [
    {"width": 1200, "crop": "limit"},
    {"quality": "auto"},
    {"fetch_format": "auto"},
]


class BufferedUpload:
    """An uploaded file held in memory until it is handed to Cloudinary."""

    def __init__(self, filename, mimetype, data):
        self.filename = filename
        self.mimetype = mimetype
        self.data = data

    @property
    def size(self):
        return len(self.data)


def configure_cloudinary(app):
    cloud_name = app.config.get("CLOUDINARY_CLOUD_NAME")
    api_key = app.config.get("CLOUDINARY_API_KEY")
    api_secret = app.config.get("CLOUDINARY_API_SECRET")
    if not cloud_name or not api_key or not api_secret:
        app.logger.warning("Cloudinary credentials not set. Image uploads are disabled until CLOUDINARY_* env vars are configured.")
        return False
    cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)
    return True


def buffered_files(field, multiple=False):
    """Read the multipart file(s) in ``field`` into memory, rejecting bad types and sizes
    before the view runs. The buffers are left on ``g.uploads``."""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            files = [f for f in request.files.getlist(field) if f and f.filename]
            if not files:
                return failure("No files uploaded" if multiple else "No file uploaded", 400)
            max_files = current_app.config["UPLOAD_MAX_FILES"] if multiple else 1
            if len(files) > max_files:
                return failure(f"Too many files. At most {max_files} allowed per request", 400)

            allowed = current_app.config["ALLOWED_MIME_TYPES"]
            limit = current_app.config["UPLOAD_MAX_BYTES"]
            buffers = []
            for f in files:
                if f.mimetype not in allowed:
                    current_app.logger.warning(f"Rejected upload {f.filename} with type {f.mimetype}")
                    return failure("Invalid file type. Only JPEG, PNG, WebP images and PDF files are allowed.", 400)
                data = f.read(limit + 1)
                if len(data) > limit:
                    return failure(f"File too large. Maximum size is {limit // (1024 * 1024)}MB", 413)
                buffers.append(BufferedUpload(secure_filename(f.filename), f.mimetype, data))
            g.uploads = buffers
            return view(*args, **kwargs)
        return wrapper
    return decorator


def upload_buffer(upload):
    """Push one buffered file to Cloudinary and return the API result dict."""
    return cloudinary.uploader.upload(
        io.BytesIO(upload.data),
        folder=current_app.config["CLOUDINARY_FOLDER"],
        resource_type="auto",
        transformation=TRANSFORMATION,
    )


def destroy_image(public_id):
    return cloudinary.uploader.destroy(public_id)
