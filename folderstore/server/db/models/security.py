import time

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from folderstore.server.db.base import Base


class TagDO(Base):
    """Tag owned by a user, e.g. a favorite or recent marker."""

    __tablename__ = "files_tag"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner: Mapped[str] = mapped_column(String(38), nullable=False)
    flag: Mapped[int] = mapped_column(Integer, default=0)


class TagLinkDO(Base):
    """Link from a tag to a file or folder entry."""

    __tablename__ = "files_tag_link"

    tenant_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tag_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entry_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    entry_type: Mapped[int] = mapped_column(Integer, primary_key=True)
    create_on: Mapped[int] = mapped_column(
        BigInteger, default=lambda: int(time.time() * 1000)
    )


class SecurityDO(Base):
    """Share grant on a file or folder entry."""

    __tablename__ = "files_security"

    tenant_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entry_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    entry_type: Mapped[int] = mapped_column(Integer, primary_key=True)
    subject: Mapped[str] = mapped_column(String(38), primary_key=True)
    owner: Mapped[str] = mapped_column(String(38), nullable=False)
    share: Mapped[int] = mapped_column(Integer, default=0)
    timestamp: Mapped[int] = mapped_column(
        BigInteger, default=lambda: int(time.time() * 1000)
    )
