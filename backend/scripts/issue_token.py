"""Print a bearer token for local testing against the running API.

Tokens are signed with the configured JWT secret and issuer, the same
way the auth service signs them.
Usage: python scripts/issue_token.py USER_ID [--email EMAIL] [--minutes N]
"""

import sys
import argparse
import pathlib

# Ensure backend folder is on sys.path so `learning_service` can be imported
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from learning_service.auth import create_access_token


def main(user_id: str, email: str = None, minutes: int = None):
    token = create_access_token(user_id, email=email, expires_minutes=minutes)
    print(f'Authorization: Bearer {token}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('user_id', help='Subject of the token (the auth service user id)')
    parser.add_argument('--email', help='Optional email claim')
    parser.add_argument('--minutes', type=int, help='Lifetime in minutes (defaults to config)')
    args = parser.parse_args()
    main(args.user_id, email=args.email, minutes=args.minutes)
