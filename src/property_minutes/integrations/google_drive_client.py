"""Google Drive integration client for browsing folders and filing documents."""

from typing import Any, Dict, List, Optional

from ..core.models import FolderListing, FolderNode
from ..utils.exceptions import FolderResolutionFailed, MoveRenameFailed
from ..utils.validators import InputValidator
from .base_client import GoogleServiceClient, build_service

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
ROOT_FOLDER = "root"
FOLDER_FIELDS = "id, name, parents"


def _folder_node(file: Dict[str, Any]) -> FolderNode:
    parents = file.get("parents") or []
    return FolderNode(id=file["id"], name=file["name"], parent_id=parents[0] if parents else None)


def folder_query(parent_id: Optional[str] = None, name: Optional[str] = None) -> str:
    """Drive search for non-trashed folders directly under ``parent_id``."""
    parent = InputValidator.escape_drive_query_value(parent_id or ROOT_FOLDER)
    query = f"mimeType='{FOLDER_MIME_TYPE}' and '{parent}' in parents and trashed=false"

    if name is not None:
        query += f" and name='{InputValidator.escape_drive_query_value(name)}'"

    return query


class GoogleDriveClient(GoogleServiceClient):
    """Resolves destination folders and files documents into them."""

    SERVICE_NAME = "google_drive"

    def __init__(self, credentials: Any = None, service: Any = None, rate_limit: int = 100):
        super().__init__(build_service("drive", "v3", credentials, service), rate_limit)

    async def _list_folders(self, query: str, page_size: int = 100) -> List[FolderNode]:
        folders: List[FolderNode] = []
        page_token = None

        while True:
            response = await self._execute(
                lambda: self.service.files().list(
                    q=query,
                    fields=f"nextPageToken, files({FOLDER_FIELDS})",
                    orderBy="name",
                    pageSize=page_size,
                    pageToken=page_token,
                ),
                endpoint="files.list",
            )

            folders.extend(_folder_node(file) for file in response.get("files", []))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        return folders

    async def get_folder(self, folder_id: str) -> FolderNode:
        try:
            file = await self._execute(
                lambda: self.service.files().get(fileId=folder_id, fields=FOLDER_FIELDS),
                endpoint="files.get",
            )
        except Exception as e:
            self.logger.error(f"Failed to get folder {folder_id}: {e}")
            raise FolderResolutionFailed(
                f"Failed to get folder: {e}", {"folder_id": folder_id}
            )

        return _folder_node(file)

    async def get_folder_path(self, folder_id: str) -> List[FolderNode]:
        """Breadcrumb from below the Drive root down to ``folder_id``.

        Ancestors without a parent are the Drive root and are left out.
        """
        breadcrumb: List[FolderNode] = []
        seen = set()
        current_id: Optional[str] = folder_id

        while current_id and current_id != ROOT_FOLDER and current_id not in seen:
            seen.add(current_id)
            folder = await self.get_folder(current_id)

            if folder.parent_id is None and breadcrumb:
                break

            breadcrumb.append(folder)
            current_id = folder.parent_id

        breadcrumb.reverse()
        return breadcrumb

    async def list_children(self, parent_id: Optional[str] = None) -> FolderListing:
        """Folders under ``parent_id`` (the Drive root when omitted), by name."""
        try:
            children = await self._list_folders(folder_query(parent_id))
        except Exception as e:
            self.logger.error(f"Failed to list folders: {e}")
            raise FolderResolutionFailed(
                f"Failed to list folders: {e}", {"parent_id": parent_id}
            )

        if not parent_id or parent_id == ROOT_FOLDER:
            return FolderListing(children=children)

        breadcrumb = await self.get_folder_path(parent_id)
        return FolderListing(
            children=children,
            breadcrumb=breadcrumb,
            current=breadcrumb[-1] if breadcrumb else None,
        )

    async def find_folder_by_name(
        self, name: str, parent_id: Optional[str] = None
    ) -> Optional[FolderNode]:
        """First non-trashed folder named exactly ``name`` under the parent."""
        try:
            matches = await self._list_folders(folder_query(parent_id, name))
        except Exception as e:
            self.logger.error(f"Failed to search folder '{name}': {e}")
            raise FolderResolutionFailed(
                f"Failed to search folder '{name}': {e}", {"parent_id": parent_id}
            )

        # Drive name matching is not guaranteed case-sensitive
        for folder in matches:
            if folder.name == name:
                return folder
        return None

    async def create_folder(self, name: str, parent_id: Optional[str] = None) -> FolderNode:
        metadata: Dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            metadata["parents"] = [parent_id]

        try:
            file = await self._execute(
                lambda: self.service.files().create(body=metadata, fields=FOLDER_FIELDS),
                endpoint="files.create",
                method="POST",
            )
        except Exception as e:
            self.logger.error(f"Failed to create folder '{name}': {e}")
            raise FolderResolutionFailed(
                f"Failed to create folder '{name}': {e}", {"parent_id": parent_id}
            )

        self.logger.info(f"Created folder '{name}' ({file['id']})")
        return _folder_node(file)

    async def find_or_create(self, name: str, parent_id: Optional[str] = None) -> FolderNode:
        """Existing folder named ``name`` under the parent, created if missing."""
        folder = await self.find_folder_by_name(name, parent_id)
        if folder:
            return folder
        return await self.create_folder(name, parent_id)

    async def ensure_folder_path(
        self, path: str, parent_id: Optional[str] = None
    ) -> FolderNode:
        """Find or create each ``/``-separated segment of ``path`` in turn."""
        segments = InputValidator.normalize_folder_path(path)
        if not segments:
            raise FolderResolutionFailed(f"Folder path is empty: {path!r}")

        folder = None
        for segment in segments:
            folder = await self.find_or_create(segment, parent_id)
            parent_id = folder.id

        return folder

    async def move_and_rename(
        self, document_id: str, target_folder_id: str, new_name: str
    ) -> None:
        """Make ``target_folder_id`` the only parent and rename in one update."""
        try:
            file = await self._execute(
                lambda: self.service.files().get(fileId=document_id, fields="parents"),
                endpoint="files.get",
            )
            previous_parents = ",".join(file.get("parents", []))

            await self._execute(
                lambda: self.service.files().update(
                    fileId=document_id,
                    addParents=target_folder_id,
                    removeParents=previous_parents,
                    body={"name": new_name},
                    fields="id, name, parents",
                ),
                endpoint="files.update",
                method="PATCH",
                document_id=document_id,
            )
        except Exception as e:
            self.logger.error(f"Failed to move document {document_id}: {e}")
            raise MoveRenameFailed(
                f"Failed to move document into folder: {e}",
                {"document_id": document_id, "folder_id": target_folder_id},
            )

        self.logger.info(f"Document {document_id} filed as '{new_name}' in {target_folder_id}")
