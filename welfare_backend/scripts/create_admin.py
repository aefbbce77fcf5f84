#!/usr/bin/env python3
"""Bootstrap an admin account from the command line.

    python -m welfare_backend.scripts.create_admin "Jane Doe" jane@example.org s3cret!! --role superadmin

An existing account with the same email gets the new password and is re-activated.
"""
import argparse
import sys

from welfare_backend.app import app
from welfare_backend.extensions import db
from welfare_backend.models import ADMIN_ROLES, Admin


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create or reset an admin account")
    parser.add_argument("name")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--role", default="admin", choices=ADMIN_ROLES)
    args = parser.parse_args(argv)

    if len(args.password) < 6:
        print("Password must be at least 6 characters")
        return 1

    email = args.email.strip().lower()
    with app.app_context():
        admin = Admin.query.filter_by(email=email).first()
        created = admin is None
        if created:
            admin = Admin(name=args.name, email=email)
            db.session.add(admin)
        admin.role = args.role
        admin.is_active = True
        admin.set_password(args.password)
        db.session.commit()
        print(f"{'Created' if created else 'Updated'} admin id={admin.id} email={admin.email} role={admin.role}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
