from flask import Blueprint, current_app, g, request

from welfare_backend.auth import admin_required
from welfare_backend.envelope import failure, success
from welfare_backend.uploads import buffered_files, destroy_image, upload_buffer

upload_bp = Blueprint("upload", __name__)


def _uploads_enabled():
    return current_app.config.get("CLOUDINARY_ENABLED", False)


@upload_bp.route("/image", methods=["POST"])
@admin_required
@buffered_files("image")
def upload_image():
    if not _uploads_enabled():
        return failure("Image uploads are not configured", 503)
    upload = g.uploads[0]
    try:
        result = upload_buffer(upload)
    except Exception as e:
        current_app.logger.error(f"Cloudinary upload failed for {upload.filename}: {e}")
        return failure("Failed to upload image", 500, error=str(e))
    current_app.logger.info(f"Uploaded {upload.filename} ({upload.size} bytes) as {result.get('public_id')}")
    return success(
        {
            "url": result.get("secure_url"),
            "publicId": result.get("public_id"),
            "format": result.get("format"),
            "width": result.get("width"),
            "height": result.get("height"),
            "size": result.get("bytes"),
        },
        "Image uploaded successfully",
    )


@upload_bp.route("/images", methods=["POST"])
@admin_required
@buffered_files("images", multiple=True)
def upload_images():
    if not _uploads_enabled():
        return failure("Image uploads are not configured", 503)
    uploaded = []
    try:
        for upload in g.uploads:
            result = upload_buffer(upload)
            uploaded.append({
                "url": result.get("secure_url"),
                "publicId": result.get("public_id"),
                "format": result.get("format"),
            })
    except Exception as e:
        current_app.logger.error(f"Cloudinary batch upload failed after {len(uploaded)} files: {e}")
        return failure("Failed to upload images", 500, error=str(e))
    return success(uploaded, f"{len(uploaded)} images uploaded successfully")


@upload_bp.route("/image", methods=["DELETE"])
@admin_required
def delete_image():
    public_id = request.args.get("publicId")
    if not public_id:
        return failure("Public ID is required. Use: /api/upload/image?publicId=YOUR_PUBLIC_ID", 400)
    if not _uploads_enabled():
        return failure("Image uploads are not configured", 503)
    try:
        result = destroy_image(public_id)
    except Exception as e:
        current_app.logger.error(f"Cloudinary destroy failed for {public_id}: {e}")
        return failure("Failed to delete image", 500, error=str(e))

    outcome = result.get("result")
    current_app.logger.info(f"Cloudinary destroy {public_id}: {outcome}")
    if outcome == "ok":
        return success({"publicId": public_id, "result": outcome}, "Image deleted successfully")
    if outcome == "not found":
        return failure("Image not found or already deleted", 404)
    return failure("Failed to delete image", 400, result=outcome)
