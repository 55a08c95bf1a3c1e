"""Local mock authentication.

There is no credential check; login only shapes a User record.
"""

import re
from urllib.parse import quote

from murmur_models import User

AVATAR_URL = "https://api.dicebear.com/8.x/initials/svg?seed={seed}"


def avatar_for(name: str) -> str:
    return AVATAR_URL.format(seed=quote(name, safe=""))


def display_name_from_email(email: str) -> str:
    """``jane.doe@example.com`` -> ``Jane Doe``."""
    local_part = email.split("@")[0]
    spaced = re.sub(r"[^a-zA-Z0-9]", " ", local_part)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)


def login(email: str, password: str) -> User:
    if not email or not password:
        raise ValueError("Please enter both email and password.")
    name = display_name_from_email(email)
    return User(name=name, email=email, avatar=avatar_for(name))


def sign_up(name: str, email: str, password: str) -> User:
    if not name or not email or not password:
        raise ValueError("Please fill in all fields.")
    return User(name=name, email=email, avatar=avatar_for(name))


def social_login(provider: str) -> User:
    if not provider.strip():
        raise ValueError("Unknown login provider.")
    provider = provider.strip()
    name = f"{provider[:1].upper()}{provider[1:]} User"
    return User(
        name=name,
        email=f"{provider.lower()}.user@example.com",
        avatar=avatar_for(name),
    )
