import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from folderstore.models.folder import FileEntryType

from ..db.models.file import FileDO
from ..db.models.folder import FolderTreeDO
from ..db.models.security import SecurityDO, TagLinkDO

logger = logging.getLogger(__name__)


class FileStore:
    """File records residing in folders.

    The folder store only needs file metadata: counts, title collisions,
    used space and the cascade on folder deletion. Content is stored
    elsewhere.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def create_file(
        self,
        tenant_id: int,
        folder_id: int,
        title: str,
        create_by: str,
        content_length: int = 0,
    ) -> FileDO:
        """Create a file record in a folder."""
        file_do = FileDO(
            tenant_id=tenant_id,
            folder_id=folder_id,
            title=title,
            content_length=content_length,
            current_version=True,
            create_by=create_by,
        )
        self.db.add(file_do)
        await self.db.flush()
        return file_do

    async def get_file(self, tenant_id: int, file_id: int) -> FileDO | None:
        stmt = select(FileDO).where(
            FileDO.tenant_id == tenant_id,
            FileDO.id == file_id,
            FileDO.current_version.is_(True),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_files(self, tenant_id: int, folder_id: int) -> list[FileDO]:
        """List the current files directly inside a folder."""
        stmt = (
            select(FileDO)
            .where(
                FileDO.tenant_id == tenant_id,
                FileDO.folder_id == folder_id,
                FileDO.current_version.is_(True),
            )
            .order_by(FileDO.title)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_files(self, folder_id: int) -> int:
        """Count the current files directly inside a folder."""
        stmt = select(func.count()).where(
            FileDO.folder_id == folder_id, FileDO.current_version.is_(True)
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def count_files_in_subtree(self, tenant_id: int, folder_id: int) -> int:
        """Count the current files in a folder and all of its subfolders."""
        stmt = (
            select(func.count(FileDO.id))
            .join(FolderTreeDO, FolderTreeDO.folder_id == FileDO.folder_id)
            .where(
                FileDO.tenant_id == tenant_id,
                FileDO.current_version.is_(True),
                FolderTreeDO.parent_id == folder_id,
            )
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def find_title_conflicts(
        self, tenant_id: int, source_folder_id: int, dest_folder_id: int
    ) -> list[FileDO]:
        """Files of the source folder whose title already exists in the destination.

        Titles are compared case-insensitively.
        """
        other = aliased(FileDO)
        stmt = (
            select(FileDO)
            .join(other, func.lower(other.title) == func.lower(FileDO.title))
            .where(
                FileDO.tenant_id == tenant_id,
                FileDO.current_version.is_(True),
                FileDO.folder_id == source_folder_id,
                other.tenant_id == tenant_id,
                other.current_version.is_(True),
                other.folder_id == dest_folder_id,
            )
            .distinct()
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_used_space(self, tenant_id: int, user_id: str) -> int:
        """Total content length of the files created by a user."""
        stmt = select(func.coalesce(func.sum(FileDO.content_length), 0)).where(
            FileDO.tenant_id == tenant_id,
            FileDO.create_by == user_id,
            FileDO.current_version.is_(True),
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def delete_in_folders(self, tenant_id: int, folder_ids: list[int]) -> int:
        """Delete every file residing in the given folders.

        Tag links and security rows of the files go with them. Returns the
        number of deleted file ids.
        """
        result = await self.db.execute(
            select(FileDO.id).where(
                FileDO.tenant_id == tenant_id, FileDO.folder_id.in_(folder_ids)
            )
        )
        file_ids = [str(file_id) for file_id in set(result.scalars().all())]
        if not file_ids:
            return 0

        await self.db.execute(
            delete(FileDO)
            .where(FileDO.tenant_id == tenant_id, FileDO.folder_id.in_(folder_ids))
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(TagLinkDO)
            .where(
                TagLinkDO.tenant_id == tenant_id,
                TagLinkDO.entry_type == FileEntryType.FILE.value,
                TagLinkDO.entry_id.in_(file_ids),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(SecurityDO)
            .where(
                SecurityDO.tenant_id == tenant_id,
                SecurityDO.entry_type == FileEntryType.FILE.value,
                SecurityDO.entry_id.in_(file_ids),
            )
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Deleted {len(file_ids)} files in {len(folder_ids)} folders")
        return len(file_ids)
