from abc import ABC, abstractmethod


class UserDirectory(ABC):
    """Lookup of group membership, owned by the identity service."""

    @abstractmethod
    async def get_group_members(self, tenant_id: int, group_id: str) -> list[str]:
        """Return the user ids in a group."""


class LocalUserDirectory(UserDirectory):
    """Static group membership."""

    def __init__(self, groups: dict[str, list[str]] | None = None) -> None:
        self._groups = groups or {}

    async def get_group_members(self, tenant_id: int, group_id: str) -> list[str]:
        return list(self._groups.get(group_id, []))
