"""
Authentication utilities for extracting user info from Cognito tokens.
"""
from typing import Optional

from shared.models import Tester


def _claims(event: dict) -> dict:
    try:
        return event['requestContext']['authorizer']['claims'] or {}
    except (KeyError, TypeError):
        return {}


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    return _claims(event).get('sub')


def get_user_groups(event: dict) -> list:
    """Extract user groups (customer, tester, admin) from Cognito claims."""
    groups = _claims(event).get('cognito:groups', '')
    if isinstance(groups, str):
        return groups.split(',') if groups else []
    return groups or []


def is_admin(event: dict) -> bool:
    """Check if user belongs to admin (staff) group."""
    return 'admin' in get_user_groups(event)


def is_tester(event: dict) -> bool:
    """Check if user belongs to tester group."""
    return 'tester' in get_user_groups(event)


def get_user_profile(event: dict) -> Optional[Tester]:
    """Build the caller's display profile from the standard Cognito claims."""
    claims = _claims(event)
    user_id = claims.get('sub')
    if not user_id:
        return None
    return Tester(
        id=user_id,
        username=claims.get('cognito:username') or claims.get('preferred_username'),
        first_name=claims.get('given_name'),
        last_name=claims.get('family_name'),
        full_name=claims.get('name'),
        email=claims.get('email'),
        phone=claims.get('phone_number'),
    )
