import time

from sqlalchemy import BigInteger, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from folderstore.server.db.base import Base


class FileDO(Base):
    """File record. Content lives outside of the folder store."""

    __tablename__ = "files_file"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    folder_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(400), nullable=False)
    content_length: Mapped[int] = mapped_column(BigInteger, default=0)
    current_version: Mapped[bool] = mapped_column(Boolean, default=True)
    create_by: Mapped[str] = mapped_column(String(38), nullable=False)
    create_on: Mapped[int] = mapped_column(
        BigInteger, default=lambda: int(time.time() * 1000)
    )
    modified_on: Mapped[int] = mapped_column(
        BigInteger,
        default=lambda: int(time.time() * 1000),
        onupdate=lambda: int(time.time() * 1000),
    )

    def __repr__(self) -> str:
        return f"<FileDO(id={self.id}, folder_id={self.folder_id}, title='{self.title}')>"
