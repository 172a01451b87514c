"""Domain layer errors.

Resolution misses are not errors: resolvers return ``None``. These
exceptions cover operations that cannot complete as requested.
"""


class DomainError(Exception):
    """Base domain error."""

    pass


class BusinessRuleViolationError(DomainError):
    """Business rule violation error."""

    pass


class NotFoundError(DomainError):
    """Raised when an operation targets a resource that does not exist."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class IdentityConflictError(DomainError):
    """A (provider, provider_id) credential already belongs to another user.

    Callers decide how to present it (error page, merge prompt); it must
    never be resolved by guessing which account to use.
    """

    code = "identity_conflict"

    def __init__(
        self,
        provider: str,
        provider_id: str,
        owner_user_id: str | None = None,
        requested_user_id: str | None = None,
    ):
        self.provider = provider
        self.provider_id = provider_id
        self.owner_user_id = owner_user_id
        self.requested_user_id = requested_user_id
        super().__init__(
            f"Identity {provider}:{provider_id} is already linked to another user"
        )


class AlreadyLinkedError(IdentityConflictError):
    """Explicit link attempt for a credential owned by a different user."""

    code = "already_linked"


class LastIdentityError(BusinessRuleViolationError):
    """Raised when unlinking would leave a user without any login method."""

    def __init__(self, user_id: str, provider: str):
        self.user_id = user_id
        self.provider = provider
        super().__init__(
            f"Cannot unlink {provider}: it is the only identity of user {user_id}"
        )
