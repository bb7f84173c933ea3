"""Folder related API data models."""

from dataclasses import dataclass, field

from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.mixins.json import DataClassJSONMixin

from .base import BaseEnum, BaseResponse


class FolderType(int, BaseEnum):
    """Folder type tag.

    The root folder of a subtree carries the type that classifies the whole
    subtree. Ordinary user folders are DEFAULT.
    """

    DEFAULT = 0
    COMMON = 1
    BUNCH = 2
    TRASH = 3
    USER = 5
    SHARE = 6
    PROJECTS = 8
    FAVORITES = 10
    RECENT = 11
    TEMPLATES = 12
    PRIVACY = 13


class FileEntryType(int, BaseEnum):
    """Entry type used to key tag links and security rows."""

    FOLDER = 1
    FILE = 2


class FilterType(int, BaseEnum):
    """Listing filter."""

    NONE = 0
    FILES_ONLY = 1
    FOLDERS_ONLY = 2
    DOCUMENTS_ONLY = 3
    PRESENTATIONS_ONLY = 4
    SPREADSHEETS_ONLY = 5
    IMAGES_ONLY = 7
    BY_USER = 8
    BY_DEPARTMENT = 9
    ARCHIVE_ONLY = 10
    BY_EXTENSION = 11
    MEDIA_ONLY = 12


FILE_ONLY_FILTERS = frozenset(
    {
        FilterType.FILES_ONLY,
        FilterType.BY_EXTENSION,
        FilterType.DOCUMENTS_ONLY,
        FilterType.IMAGES_ONLY,
        FilterType.PRESENTATIONS_ONLY,
        FilterType.SPREADSHEETS_ONLY,
        FilterType.ARCHIVE_ONLY,
        FilterType.MEDIA_ONLY,
    }
)
"""Filters that only ever select files, so folder listings are empty."""


class SortedByType(str, BaseEnum):
    """Sort key for folder listings."""

    DATE_AND_TIME = "dateandtime"
    AZ = "az"
    AUTHOR = "author"
    DATE_AND_TIME_CREATION = "dateandtimecreation"
    SIZE = "size"
    TYPE = "type"


@dataclass
class OrderBy:
    """Ordering of a folder listing."""

    sorted_by: SortedByType = SortedByType.DATE_AND_TIME
    is_asc: bool = False


@dataclass
class FolderVO(DataClassJSONMixin):
    """Object representing a folder in the API."""

    id: int
    parent_id: int = field(metadata=field_options(alias="parentId"))
    title: str
    folder_type: int = field(metadata=field_options(alias="folderType"))
    create_by: str = field(metadata=field_options(alias="createBy"))
    create_on: int = field(metadata=field_options(alias="createOn"))
    modified_by: str = field(metadata=field_options(alias="modifiedBy"))
    modified_on: int = field(metadata=field_options(alias="modifiedOn"))
    folders_count: int = field(metadata=field_options(alias="foldersCount"))
    files_count: int = field(metadata=field_options(alias="filesCount"))
    root_folder_id: int = field(metadata=field_options(alias="rootFolderId"))
    root_folder_type: int = field(metadata=field_options(alias="rootFolderType"))
    root_folder_creator: str = field(
        metadata=field_options(alias="rootFolderCreator")
    )
    shared: bool = False

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class FolderInfoVO(BaseResponse):
    """Response model for a single folder."""

    folder: FolderVO | None = None


@dataclass
class FolderListVO(BaseResponse):
    """Response model for a folder listing."""

    total: int = 0
    folders: list[FolderVO] = field(default_factory=list)


@dataclass
class FolderCreateDTO(DataClassJSONMixin):
    """Request model for creating a folder."""

    parent_id: int = field(metadata=field_options(alias="parentId"))
    title: str

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class FolderRenameDTO(DataClassJSONMixin):
    """Request model for renaming a folder."""

    title: str


@dataclass
class FolderMoveCopyDTO(DataClassJSONMixin):
    """Request model for moving, copying or checking folders.

    Exactly one of `dest_id` (a folder in this store) or `dest_key` (a folder
    in a foreign store) must be set.
    """

    folder_ids: list[int] = field(metadata=field_options(alias="folderIds"))
    dest_id: int | None = field(metadata=field_options(alias="destId"), default=None)
    dest_key: str | None = field(
        metadata=field_options(alias="destKey"), default=None
    )

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class FolderMoveCopyVO(BaseResponse):
    """Response model for move and copy, listing the resulting ids."""

    ids: list[str] = field(default_factory=list)


@dataclass
class ConflictItemVO(DataClassJSONMixin):
    """A file whose title collides in the destination."""

    id: int
    title: str


@dataclass
class ConflictListVO(BaseResponse):
    """Response model for a move/copy pre-check."""

    conflicts: list[ConflictItemVO] = field(default_factory=list)


@dataclass
class BunchFolderVO(BaseResponse):
    """Response model for bunch folder resolution."""

    folder_id: int = field(metadata=field_options(alias="folderId"), default=0)


@dataclass
class UploadLimitVO(BaseResponse):
    """Response model for the upload size ceiling of a folder."""

    max_upload_size: int = field(
        metadata=field_options(alias="maxUploadSize"), default=0
    )
