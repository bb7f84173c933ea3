import logging

from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models.folder import FolderTreeDO
from ..exceptions import FolderNotFoundException, InvalidOperationException

logger = logging.getLogger(__name__)


class FolderTree:
    """Closure table of the folder hierarchy.

    Every folder has a level 0 self-link plus one row per ancestor recording
    the distance to it. All methods run inside the transaction of the session
    they were given and never commit.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_ancestor_path(self, folder_id: int) -> list[int]:
        """Return the ids from the root down to the parent of the folder."""
        stmt = (
            select(FolderTreeDO.parent_id)
            .where(FolderTreeDO.folder_id == folder_id, FolderTreeDO.level > 0)
            .order_by(FolderTreeDO.level.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_root(self, folder_id: int) -> int:
        """Return the topmost ancestor of the folder (itself for a root)."""
        stmt = (
            select(FolderTreeDO.parent_id)
            .where(FolderTreeDO.folder_id == folder_id)
            .order_by(FolderTreeDO.level.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        root_id = result.scalar_one_or_none()
        if root_id is None:
            raise FolderNotFoundException(f"Folder {folder_id} has no tree entries")
        return root_id

    async def get_descendants(
        self, folder_id: int, min_level: int = 1, max_level: int | None = None
    ) -> set[int]:
        """Return folders below `folder_id` at a distance within the bounds.

        `min_level=1` skips the self-link, `max_level=1` keeps direct children.
        """
        stmt = select(FolderTreeDO.folder_id).where(
            FolderTreeDO.parent_id == folder_id, FolderTreeDO.level >= min_level
        )
        if max_level is not None:
            stmt = stmt.where(FolderTreeDO.level <= max_level)
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def is_ancestor(self, ancestor_id: int, folder_id: int) -> bool:
        """Return True if `ancestor_id` is `folder_id` or one of its ancestors."""
        stmt = select(FolderTreeDO.level).where(
            FolderTreeDO.parent_id == ancestor_id, FolderTreeDO.folder_id == folder_id
        )
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def count_children(self, folder_id: int) -> int:
        """Count the direct child folders."""
        stmt = select(func.count()).where(
            FolderTreeDO.parent_id == folder_id, FolderTreeDO.level == 1
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def insert_subtree(self, folder_id: int, parent_id: int) -> None:
        """Link a new folder below `parent_id`.

        Adds the self-link and copies every edge of the parent one level up.
        """
        stmt = select(FolderTreeDO.parent_id, FolderTreeDO.level).where(
            FolderTreeDO.folder_id == parent_id
        )
        result = await self.db.execute(stmt)
        rows = [{"folder_id": folder_id, "parent_id": folder_id, "level": 0}]
        for ancestor_id, level in result.all():
            rows.append(
                {"folder_id": folder_id, "parent_id": ancestor_id, "level": level + 1}
            )
        await self.db.execute(insert(FolderTreeDO), rows)

    async def relocate_subtree(self, folder_id: int, new_parent_id: int) -> None:
        """Re-link a folder and everything below it under `new_parent_id`.

        Edges inside the moved subtree are kept so relative depths are
        preserved. Edges to the former ancestors are replaced with edges to
        the new parent's ancestry.
        """
        result = await self.db.execute(
            select(FolderTreeDO.folder_id, FolderTreeDO.level).where(
                FolderTreeDO.parent_id == folder_id
            )
        )
        subtree = {descendant: level for descendant, level in result.all()}
        if not subtree:
            raise FolderNotFoundException(f"Folder {folder_id} has no tree entries")
        if new_parent_id in subtree:
            raise InvalidOperationException(
                f"Cannot move folder {folder_id} into its own subtree"
            )

        await self.db.execute(
            delete(FolderTreeDO)
            .where(
                FolderTreeDO.folder_id.in_(list(subtree)),
                FolderTreeDO.parent_id.not_in(list(subtree)),
            )
            .execution_options(synchronize_session=False)
        )

        result = await self.db.execute(
            select(FolderTreeDO.parent_id, FolderTreeDO.level).where(
                FolderTreeDO.folder_id == new_parent_id
            )
        )
        new_ancestry = result.all()
        rows = [
            {
                "folder_id": descendant,
                "parent_id": ancestor_id,
                "level": depth + level + 1,
            }
            for descendant, depth in subtree.items()
            for ancestor_id, level in new_ancestry
        ]
        if rows:
            await self.db.execute(insert(FolderTreeDO), rows)
        logger.debug(
            f"Relocated {len(subtree)} folders under {new_parent_id} ({len(rows)} edges)"
        )

    async def delete_subtree(self, folder_id: int) -> set[int]:
        """Remove all edges of the folder and its descendants.

        Returns the ids of the removed subtree, including `folder_id`.
        """
        ids = await self.get_descendants(folder_id, min_level=0)
        ids.add(folder_id)
        await self.db.execute(
            delete(FolderTreeDO)
            .where(
                or_(
                    FolderTreeDO.folder_id.in_(list(ids)),
                    FolderTreeDO.parent_id.in_(list(ids)),
                )
            )
            .execution_options(synchronize_session=False)
        )
        return ids
