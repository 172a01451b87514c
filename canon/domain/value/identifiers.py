"""Strongly typed identifiers for identity entities.

Using NewType for strong typing prevents mixing up user and identity IDs
and makes the code more self-documenting.
"""

from typing import NewType
from uuid import UUID

UserId = NewType("UserId", UUID)
UserIdentityId = NewType("UserIdentityId", UUID)
