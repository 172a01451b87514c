"""Base service class for domain services."""


class Service:
    """Base class for all domain services.

    Domain services hold the identity rules that span users, identities
    and the credential cache.
    """

    pass
