"""Issue an access token for manual API testing.

Usage:
    python scripts/issue_token.py [USER_ID] [--minutes N]
"""

import argparse
import sys
import uuid
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from tubely.modules.auth.jwt import create_access_token  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Issue a Tubely access token")
    parser.add_argument("user_id", nargs="?", help="User UUID (random if omitted)")
    parser.add_argument("--minutes", type=int, default=None, help="Token lifetime in minutes")
    args = parser.parse_args()

    try:
        user_id = uuid.UUID(args.user_id) if args.user_id else uuid.uuid4()
    except ValueError:
        print(f"✗ Error: '{args.user_id}' is not a valid UUID")
        return 1

    token = create_access_token(user_id, expires_minutes=args.minutes)

    print(f"User ID: {user_id}")
    print(f"Token:   {token}")
    print()
    print("Example:")
    print(f'  curl -H "Authorization: Bearer {token}" http://localhost:8091/videos')
    return 0


if __name__ == "__main__":
    sys.exit(main())
