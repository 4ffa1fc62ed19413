"""Attachment storage and transient archive packaging."""

import asyncio
import os
import shutil
import stat
import zipfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional

from quickmail.core.models import ArchiveDescriptor, User
from quickmail.core.services import FileArea, FileAreaKey
from quickmail.utils.errors import (
    AttachmentPackagingError,
    FileSystemError,
    InvalidPathError,
)
from quickmail.utils.logging import get_logger
from quickmail.utils.paths import FILES_DIR, TEMP_DIR
from quickmail.utils.security import PathSecurity

logger = get_logger(__name__)

SECURE_DIR_PERMS = stat.S_IRWXU  # Owner-only access
ARCHIVE_NAME = "attachment.zip"


class LocalFileArea(FileArea):
    """File areas kept on the local filesystem.

    Layout: ``<root>/<context_id>/<component>/<area>/<item_id>/<filename>``
    """

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root else FILES_DIR

    def path_for(self, key: FileAreaKey) -> Path:
        """Directory backing an area (not created)."""
        for part in (key.component, key.area):
            if not PathSecurity.validate_filename(part):
                raise InvalidPathError(f"Invalid file area component: {part}")

        directory = self.root / str(key.context_id) / key.component / key.area / str(key.item_id)
        if not PathSecurity.validate_path(directory, self.root):
            raise InvalidPathError(f"File area escapes storage root: {directory}")

        return directory

    def _ensure_dir(self, key: FileAreaKey) -> Path:
        directory = self.path_for(key)

        try:
            directory.mkdir(parents=True, exist_ok=True)
            os.chmod(directory, SECURE_DIR_PERMS)

        except OSError as e:
            raise FileSystemError(f"Failed to create file area {directory}") from e

        return directory

    def list_files(self, key: FileAreaKey) -> List[Path]:
        directory = self.path_for(key)

        if not directory.exists():
            return []

        try:
            return sorted(
                (f for f in directory.iterdir() if f.is_file()), key=lambda f: f.name
            )

        except OSError as e:
            raise FileSystemError(f"Failed to list files in {directory}") from e

    def copy_area(self, source: FileAreaKey, target: FileAreaKey) -> List[str]:
        files = self.list_files(source)
        self.delete_area(target)

        if not files:
            return []

        target_dir = self._ensure_dir(target)
        names = []

        for file_path in files:
            try:
                shutil.copy2(file_path, target_dir / file_path.name)
            except OSError as e:
                raise FileSystemError(f"Failed to copy attachment {file_path.name}") from e
            names.append(file_path.name)

        logger.debug(f"Copied {len(names)} file(s) from {source} to {target}")
        return names

    def delete_area(self, key: FileAreaKey) -> int:
        directory = self.path_for(key)

        if not directory.exists():
            return 0

        removed = len(self.list_files(key))

        try:
            shutil.rmtree(directory)

        except OSError as e:
            raise FileSystemError(f"Failed to delete file area {directory}") from e

        logger.debug(f"Deleted {removed} file(s) from {key}")
        return removed

    def store_file(self, key: FileAreaKey, filename: str, content: bytes) -> Path:
        """Write an uploaded file into an area under a sanitized name."""
        try:
            safe_name = PathSecurity.sanitize_filename(filename)
        except ValueError as e:
            raise InvalidPathError(f"Invalid filename: {filename}") from e

        file_path = self._ensure_dir(key) / safe_name

        try:
            with open(file_path, "wb") as f:
                f.write(content)
            os.chmod(str(file_path), stat.S_IRUSR | stat.S_IWUSR)

        except OSError as e:
            raise FileSystemError(f"Failed to save attachment {safe_name}") from e

        logger.debug(f"Stored {safe_name} in {key}")
        return file_path


class AttachmentPackager:
    """Zips a message's attachment area into a transient archive.

    The archive path is namespaced by acting user and message id, so
    concurrent sends never share a file and repackaging the same message
    overwrites the previous archive.
    """

    def __init__(self, file_area: FileArea, temp_root: Optional[Path] = None):
        self.file_area = file_area
        self.temp_root = Path(temp_root) if temp_root else TEMP_DIR

    def archive_path(self, acting_user: User, message_id: int) -> Path:
        return self.temp_root / "quickmail" / str(acting_user.id) / str(message_id) / ARCHIVE_NAME

    def build(
        self, key: FileAreaKey, acting_user: User, message_id: int
    ) -> Optional[ArchiveDescriptor]:
        """Write the archive, or return None when the area holds no files.

        Raises:
            AttachmentPackagingError: If the archive cannot be written
        """
        files = self.file_area.list_files(key)

        if not files:
            return None

        path = self.archive_path(acting_user, message_id)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                for file_path in files:
                    archive.write(file_path, arcname=file_path.name)

        except (OSError, zipfile.BadZipFile) as e:
            path.unlink(missing_ok=True)
            raise AttachmentPackagingError(
                "Failed to package attachments",
                details={"message_id": message_id, "error": str(e)},
            ) from e

        logger.debug(f"Packaged {len(files)} attachment(s) into {path}")
        return ArchiveDescriptor(name=ARCHIVE_NAME, path=path)

    def release(self, archive: Optional[ArchiveDescriptor]) -> None:
        """Remove a previously built archive; a missing file is not an error."""
        if archive is None:
            return

        try:
            archive.path.unlink(missing_ok=True)
            self._prune(archive.path.parent)
            logger.debug(f"Released archive {archive.path}")

        except OSError as e:
            logger.error(f"Failed to remove archive {archive.path}: {e}")

    def _prune(self, directory: Path) -> None:
        """Remove the message and user directories once they are empty."""
        stop = self.temp_root / "quickmail"

        while directory != stop and stop in directory.parents:
            if not directory.exists() or any(directory.iterdir()):
                return

            directory.rmdir()
            directory = directory.parent

    @asynccontextmanager
    async def package(
        self, key: FileAreaKey, acting_user: User, message_id: int
    ) -> AsyncIterator[Optional[ArchiveDescriptor]]:
        """Build the archive for the duration of a dispatch.

        Usage:
            async with packager.package(key, user, message_id) as archive:
                await mailer.deliver(..., archive=archive)
        """
        archive = await asyncio.to_thread(self.build, key, acting_user, message_id)

        try:
            yield archive
        finally:
            self.release(archive)

