"""Authentication module."""

from tubely.modules.auth.jwt import (
    create_access_token,
    get_current_user_id,
    get_user_id_from_token,
    validate_token,
)

__all__ = [
    "create_access_token",
    "get_current_user_id",
    "get_user_id_from_token",
    "validate_token",
]
