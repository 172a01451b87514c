"""Unit tests for identity management use cases."""

from dishka import AsyncContainer
import pytest

from canon.application.usecase.auth.login import LoginRequest, LoginUseCase
from canon.application.usecase.identity import (
    LinkIdentityUseCase,
    ListIdentitiesUseCase,
    SetPrimaryIdentityUseCase,
    UnlinkIdentityUseCase,
)
from canon.application.usecase.identity.link_identity import LinkIdentityUseCaseRequest
from canon.application.usecase.identity.list_identities import ListIdentitiesRequest
from canon.application.usecase.identity.set_primary_identity import (
    SetPrimaryIdentityRequest,
)
from canon.application.usecase.identity.unlink_identity import UnlinkIdentityRequest
from canon.domain.error import LastIdentityError
from canon.domain.value import AuthProvider
from tests.harness import create_env_fixture

unit_env = create_env_fixture()


async def login(container: AsyncContainer, provider_id: str = "g-1") -> str:
    login_use_case = await container.get(LoginUseCase)
    response = await login_use_case.execute(
        LoginRequest(provider=AuthProvider.GOOGLE, provider_id=provider_id)
    )
    return response.user.user_id


class TestIdentityUseCases:
    """Link, list, promote and unlink through the use case layer."""

    @pytest.mark.asyncio
    async def test_full_identity_lifecycle(self, unit_env: AsyncContainer):
        user_id = await login(unit_env)
        link = await unit_env.get(LinkIdentityUseCase)
        list_identities = await unit_env.get(ListIdentitiesUseCase)
        set_primary = await unit_env.get(SetPrimaryIdentityUseCase)
        unlink = await unit_env.get(UnlinkIdentityUseCase)

        linked = await link.execute(
            LinkIdentityUseCaseRequest(
                user_id=user_id,
                provider=AuthProvider.WHATSAPP,
                provider_id="919876543210",
                metadata={"channel": "bot"},
            )
        )
        assert not linked.is_primary

        await set_primary.execute(
            SetPrimaryIdentityRequest(user_id=user_id, identity_id=linked.identity_id)
        )
        listed = await list_identities.execute(ListIdentitiesRequest(user_id=user_id))
        assert [(i.provider, i.is_primary) for i in listed.identities] == [
            (AuthProvider.WHATSAPP, True),
            (AuthProvider.GOOGLE, False),
        ]

        await unlink.execute(
            UnlinkIdentityRequest(user_id=user_id, provider=AuthProvider.GOOGLE)
        )
        listed = await list_identities.execute(ListIdentitiesRequest(user_id=user_id))
        assert [i.provider for i in listed.identities] == [AuthProvider.WHATSAPP]

        with pytest.raises(LastIdentityError):
            await unlink.execute(
                UnlinkIdentityRequest(user_id=user_id, provider=AuthProvider.WHATSAPP)
            )
