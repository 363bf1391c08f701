"""
User resolution: map email addresses to workspace users.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from errors import UserNotFound
from normalize.models import User

logger = logging.getLogger(__name__)

# how many known users to include in a not-found diagnostic
SAMPLE_SIZE = 10


def find_user_by_email(users: Sequence[User], email: str) -> Optional[User]:
    """Return the user whose email equals `email` (case-insensitive), else the first whose email contains it.

    The substring fallback is deliberately loose: with several matching emails the first one in
    iteration order wins.
    """
    target = (email or '').strip().lower()
    if not target:
        return None
    for u in users:
        if u.email and u.email.lower() == target:
            return u
    for u in users:
        if u.email and target in u.email.lower():
            return u
    return None


def describe_users(users: Sequence[User], limit: int = SAMPLE_SIZE) -> List[str]:
    return [f"{u.name} ({u.email or 'no email'})" for u in list(users)[:limit]]


def resolve_user(users: Sequence[User], email: str) -> User:
    """Resolve a single email or raise UserNotFound with a sample of known users."""
    user = find_user_by_email(users, email)
    if user is None:
        raise UserNotFound(email, len(users), describe_users(users))
    return user


def resolve_users(users: Sequence[User], emails: Sequence[str]) -> Tuple[List[User], List[str]]:
    """Resolve each email independently; returns (found users, emails that matched nobody).

    A user matched by more than one email is kept once, at its first position.
    """
    found: List[User] = []
    not_found: List[str] = []
    seen = set()
    for email in emails:
        user = find_user_by_email(users, email)
        if user is None:
            not_found.append(email)
        elif user.user_id in seen:
            logger.warning("Email %s resolves to %s, who is already in the team; skipping duplicate", email, user.name)
        else:
            seen.add(user.user_id)
            found.append(user)
    for email in not_found:
        logger.warning("Could not find user with email %s", email)
    return found, not_found
