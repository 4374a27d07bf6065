#!/usr/bin/env python3
"""
Create or update a library user and optionally print a session token.
Usage:
  python create_user.py --email admin@example.com --password secret123 --role ADMIN --token

This script must be run from the project root and will use the app's SQLAlchemy
configuration. It creates the user if missing, otherwise resets the password
and roles.
"""
import argparse
import sys

from werkzeug.security import generate_password_hash

from app import create_app
from models import db, User
from services.auth import issue_token


def main(argv=None):
    parser = argparse.ArgumentParser(description='Create or update a library user')
    parser.add_argument('--email', '-e', required=True, help='login email')
    parser.add_argument('--password', '-p', required=True, help='login password')
    parser.add_argument('--firstname', default='Library')
    parser.add_argument('--lastname', default='User')
    parser.add_argument('--role', '-r', action='append', dest='roles', help='role name, repeatable (default USER)')
    parser.add_argument('--token', action='store_true', help='print a session token for the user')
    parser.add_argument('--db-uri', help='optional DB URI to override app config')
    args = parser.parse_args(argv)

    config = {}
    if args.db_uri:
        config['SQLALCHEMY_DATABASE_URI'] = args.db_uri

    roles = ','.join(sorted({r.strip().upper() for r in (args.roles or ['USER']) if r.strip()}))
    email = args.email.strip().lower()

    app = create_app(config)
    with app.app_context():
        db.create_all()
        user = User.query.filter_by(email=email).first()
        if not user:
            user = User(
                firstname=args.firstname,
                lastname=args.lastname,
                email=email,
                password_hash=generate_password_hash(args.password),
                roles=roles,
                enabled=True,
            )
            db.session.add(user)
            message = f"Created new user: {email} ({roles})"
        else:
            user.password_hash = generate_password_hash(args.password)
            user.roles = roles
            user.enabled = True
            message = f"Updated existing user '{email}' ({roles}) and set new password"
        db.session.commit()
        print(message)
        if args.token:
            print(issue_token(user))
    return 0


if __name__ == '__main__':
    try:
        sys.exit(main())
    except Exception as e:
        print('Error:', e)
        sys.exit(1)
