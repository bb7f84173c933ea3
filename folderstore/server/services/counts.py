import logging

from sqlalchemy import select, update

from ..db.models.folder import FolderDO, FolderTreeDO
from ..db.session import DatabaseSessionManager
from .file import FileStore
from .tree import FolderTree

logger = logging.getLogger(__name__)


class FolderCounter:
    """Maintains the cached child counts of folders.

    The counts are a cache. They are recomputed after the mutation that
    changed them has committed, and a failure here is logged rather than
    raised so it never fails the mutation itself.
    """

    def __init__(self, session_manager: DatabaseSessionManager) -> None:
        self.session_manager = session_manager

    async def recalculate(self, folder_id: int) -> None:
        """Recompute the counts of a folder and all of its ancestors."""
        if not folder_id:
            return
        try:
            async with self.session_manager.session() as session:
                result = await session.execute(
                    select(FolderTreeDO.parent_id).where(
                        FolderTreeDO.folder_id == folder_id
                    )
                )
                tree = FolderTree(session)
                files = FileStore(session)
                for ancestor_id in result.scalars().all():
                    await session.execute(
                        update(FolderDO)
                        .where(FolderDO.id == ancestor_id)
                        .values(
                            folders_count=await tree.count_children(ancestor_id),
                            files_count=await files.count_files(ancestor_id),
                        )
                        .execution_options(synchronize_session=False)
                    )
                await session.commit()
        except Exception:
            logger.exception(f"Failed to recalculate counts for folder {folder_id}")
