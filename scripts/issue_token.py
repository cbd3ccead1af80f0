import argparse
import os
import sys

# Add project root to path
sys.path.append(os.getcwd())

from venue_reservations.core.security import create_access_token
from venue_reservations.models import Role


def issue_token(user_id: str, role: str, minutes: int | None = None) -> str:
    return create_access_token(user_id, Role(role.upper()).value, expires_minutes=minutes)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Issue a bearer token for the staff API")
    parser.add_argument("user_id", help="Value stored as the token subject")
    parser.add_argument("--role", default="STAFF", choices=["STAFF", "ADMIN", "staff", "admin"])
    parser.add_argument("--minutes", type=int, default=None, help="Lifetime, defaults to settings")
    args = parser.parse_args()

    print(issue_token(args.user_id, args.role, args.minutes))
