#!/usr/bin/env python3
"""Check Cloudinary configuration with a round-trip upload"""

import io
import sys

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from welfare_backend import config
from welfare_backend.uploads import TRANSFORMATION

# 10x10 red PNG
PNG_DATA = bytes.fromhex(
    "89504e470d0a1a0a0000000d494844520000000a0000000a"
    "0802000000027de8cf0000001849444154789cc360f8cfc060"
    "000300000c0002b29e6e080000000049454e44ae426082"
)


def main():
    print("=" * 60)
    print("CLOUDINARY CONFIGURATION CHECK")
    print("=" * 60)

    cloud_name = config.CLOUDINARY_CLOUD_NAME
    api_key = config.CLOUDINARY_API_KEY
    api_secret = config.CLOUDINARY_API_SECRET

    print("\nEnvironment Variables:")
    print(f"  CLOUDINARY_CLOUD_NAME: {cloud_name if cloud_name else 'NOT SET'}")
    print(f"  CLOUDINARY_API_KEY: {api_key[:6] + '...' if api_key else 'NOT SET'}")
    print(f"  CLOUDINARY_API_SECRET: {'set' if api_secret else 'NOT SET'}")
    print(f"  CLOUDINARY_FOLDER: {config.CLOUDINARY_FOLDER}")

    if not cloud_name or not api_key or not api_secret:
        print("\nERROR: Missing Cloudinary credentials. Add these to welfare_backend/.env:")
        print("CLOUDINARY_CLOUD_NAME=your_cloud_name")
        print("CLOUDINARY_API_KEY=your_api_key")
        print("CLOUDINARY_API_SECRET=your_api_secret")
        return 1

    cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    print("\nUploading test image...")
    try:
        result = cloudinary.uploader.upload(
            io.BytesIO(PNG_DATA),
            folder=config.CLOUDINARY_FOLDER,
            resource_type="auto",
            transformation=TRANSFORMATION,
        )
    except cloudinary.exceptions.Error as e:
        print(f"Upload failed: {e}")
        return 1
    print("Upload successful!")
    print(f"  URL: {result.get('secure_url')}")
    print(f"  Public ID: {result.get('public_id')}")

    try:
        outcome = cloudinary.uploader.destroy(result.get("public_id"))
        print(f"Cleanup: {outcome.get('result')}")
    except cloudinary.exceptions.Error as e:
        print(f"Cleanup failed (delete {result.get('public_id')} by hand): {e}")

    print("\n" + "=" * 60)
    print("Cloudinary is working correctly")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
