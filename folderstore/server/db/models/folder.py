import time

from sqlalchemy import BigInteger, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from folderstore.server.db.base import Base


def _now_ms() -> int:
    return int(time.time() * 1000)


class FolderDO(Base):
    """Folder database model."""

    __tablename__ = "files_folder"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Folder id, unique across tenants."""

    tenant_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)

    parent_id: Mapped[int] = mapped_column(Integer, index=True, default=0)
    """Parent folder id, 0 for self-rooted folders."""

    title: Mapped[str] = mapped_column(String(400), nullable=False)

    folder_type: Mapped[int] = mapped_column(Integer, default=0)

    create_by: Mapped[str] = mapped_column(String(38), nullable=False)
    create_on: Mapped[int] = mapped_column(BigInteger, default=_now_ms)
    modified_by: Mapped[str] = mapped_column(String(38), nullable=False)
    modified_on: Mapped[int] = mapped_column(BigInteger, default=_now_ms)

    folders_count: Mapped[int] = mapped_column(Integer, default=0)
    """Cached number of direct child folders."""

    files_count: Mapped[int] = mapped_column(Integer, default=0)
    """Cached number of direct child files."""

    __table_args__ = (Index("ix_files_folder_tenant_parent", "tenant_id", "parent_id"),)

    def __repr__(self) -> str:
        return f"<FolderDO(id={self.id}, parent_id={self.parent_id}, title='{self.title}')>"


class FolderTreeDO(Base):
    """Closure table row: `parent_id` is an ancestor of `folder_id`."""

    __tablename__ = "files_folder_tree"

    parent_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    """Ancestor folder id."""

    folder_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    """Descendant folder id."""

    level: Mapped[int] = mapped_column(Integer, nullable=False)
    """Distance from descendant to ancestor, 0 for the self-link."""

    def __repr__(self) -> str:
        return f"<FolderTreeDO(folder_id={self.folder_id}, parent_id={self.parent_id}, level={self.level})>"


class BunchObjectDO(Base):
    """Binding of a symbolic `module/bunch/data` key to a folder."""

    __tablename__ = "files_bunch_objects"

    tenant_id: Mapped[int] = mapped_column(Integer, primary_key=True)

    right_node: Mapped[str] = mapped_column(String(255), primary_key=True)
    """Symbolic key."""

    left_node: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    """Bound folder id as a string."""
