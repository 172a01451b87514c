"""Find duplicate accounts use case."""

from pydantic import BaseModel

from canon.domain.service import UserService


class DuplicateGroupInfo(BaseModel):
    """Accounts sharing one email or phone value, oldest first."""

    field: str
    value: str
    user_ids: list[str]


class FindDuplicatesResponse(BaseModel):
    """Find duplicates response."""

    groups: list[DuplicateGroupInfo]


class FindDuplicatesUseCase:
    """Use case for reporting likely duplicate accounts.

    Merging stays a manual operation; this only surfaces candidates.
    """

    def __init__(self, user_service: UserService) -> None:
        """Initialize find duplicates use case.

        Args:
            user_service: User domain service
        """
        self.user_service = user_service

    async def execute(self) -> FindDuplicatesResponse:
        groups = await self.user_service.find_duplicate_candidates()
        return FindDuplicatesResponse(
            groups=[
                DuplicateGroupInfo(
                    field=group.field,
                    value=group.value,
                    user_ids=[str(uid) for uid in group.user_ids],
                )
                for group in groups
            ]
        )
