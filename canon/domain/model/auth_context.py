"""Request-scoped authentication context."""

from typing import Optional

from canon.domain.model.common import DomainModel
from canon.domain.model.user import User
from canon.domain.value import AuthMethod, UserId


class AuthContext(DomainModel):
    """Who is making the current request, if anyone.

    An unauthenticated context is a normal value; gates decide whether
    it is acceptable for a route.
    """

    user_id: Optional[UserId] = None
    user: Optional[User] = None
    auth_method: AuthMethod = AuthMethod.NONE

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin

    @classmethod
    def anonymous(cls) -> "AuthContext":
        return cls()

    @classmethod
    def for_user(cls, user: User, method: AuthMethod) -> "AuthContext":
        return cls(user_id=user.id, user=user, auth_method=method)
