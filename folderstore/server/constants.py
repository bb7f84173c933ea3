"""Constants shared by the folder store services."""

from folderstore.models.folder import FolderType

ROOT_PARENT_ID = 0
"""Parent id of self-rooted folders, also the unset id sentinel."""

FILES_MODULE = "files"

BUNCH_MY = "my"
BUNCH_COMMON = "common"
BUNCH_SHARE = "share"
BUNCH_RECENT = "recent"
BUNCH_FAVORITES = "favorites"
BUNCH_TEMPLATES = "templates"
BUNCH_PRIVACY = "privacy"
BUNCH_TRASH = "trash"
BUNCH_PROJECTS = "projects"

BUNCH_FOLDER_TYPES: dict[str, FolderType] = {
    BUNCH_MY: FolderType.USER,
    BUNCH_COMMON: FolderType.COMMON,
    BUNCH_TRASH: FolderType.TRASH,
    BUNCH_SHARE: FolderType.SHARE,
    BUNCH_RECENT: FolderType.RECENT,
    BUNCH_FAVORITES: FolderType.FAVORITES,
    BUNCH_TEMPLATES: FolderType.TEMPLATES,
    BUNCH_PRIVACY: FolderType.PRIVACY,
    BUNCH_PROJECTS: FolderType.PROJECTS,
}

# Roots created on behalf of the user named in the key discriminator.
USER_OWNED_BUNCHES = frozenset({BUNCH_MY, BUNCH_TRASH, BUNCH_PRIVACY})

DISPLAY_TITLES: dict[FolderType, str] = {
    FolderType.USER: "My Documents",
    FolderType.COMMON: "Common Documents",
    FolderType.SHARE: "Shared with Me",
    FolderType.RECENT: "Recent",
    FolderType.FAVORITES: "Favorites",
    FolderType.TRASH: "Trash",
    FolderType.PRIVACY: "Private Room",
    FolderType.PROJECTS: "Project Documents",
    FolderType.TEMPLATES: "Templates",
}

# System roots that cannot be deleted. BUNCH folders belong to other modules
# and are removed together with their binding.
PROTECTED_FOLDER_TYPES = frozenset(
    t for t in FolderType if t not in (FolderType.DEFAULT, FolderType.BUNCH)
)

DEFAULT_MAX_TITLE_LENGTH = 170
