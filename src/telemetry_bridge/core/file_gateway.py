import asyncio
import errno
import os
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, TypeVar, Union
from ..models.config import DownloadMember, UploadMember
from ..utils.exceptions import AccessDeniedError, NotFoundError, ValidationError
from ..utils.logging import get_logger
from .config_validator import ConfigIndex

logger = get_logger(__name__)

Policy = TypeVar("Policy", UploadMember, DownloadMember)


class AsyncReader(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


def normalize_relative_path(raw: str) -> str:
    """Turn an untrusted client path into a clean relative path.

    Backslashes become ``/``, empty and ``.`` segments disappear and a
    leading separator is ignored. A ``..`` segment is an escape attempt.
    """
    segments = []
    for segment in raw.replace("\\", "/").split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            raise AccessDeniedError()
        segments.append(segment)
    return "/".join(segments)


def confine(root: Union[str, Path], relative: str) -> Path:
    """Resolve ``relative`` under ``root`` and refuse anything outside it.

    Both sides are canonicalized (symlinks followed) before the prefix
    comparison, so links pointing out of the root are refused as well.
    """
    try:
        root_real = os.path.realpath(root)
        target = os.path.realpath(os.path.join(root_real, relative))
    except (ValueError, OSError):
        raise AccessDeniedError() from None
    if target != root_real and not target.startswith(root_real.rstrip(os.sep) + os.sep):
        raise AccessDeniedError()
    return Path(target)


class FileGateway:
    """Upload, download and browse policies taken from the schema"""

    def __init__(self, index: ConfigIndex, base_directory: Union[str, Path],
                 staging_directory: Union[str, Path], default_upload_directory: Union[str, Path],
                 chunk_size: int = 64 * 1024):
        self.index = index
        self.base_directory = Path(base_directory)
        self.staging_directory = self.resolve_directory(staging_directory)
        self.default_upload_directory = self.resolve_directory(default_upload_directory)
        self.chunk_size = chunk_size

    def resolve_directory(self, directory: Union[str, Path]) -> Path:
        """Relative directories are taken relative to the base directory"""
        path = Path(directory).expanduser()
        return path if path.is_absolute() else self.base_directory / path

    @staticmethod
    def _select(policies: Sequence[Policy], button_name: Optional[str], label: str) -> Policy:
        if button_name:
            for policy in policies:
                if policy.button_name == button_name:
                    return policy
            raise NotFoundError(f"No {label} config found for button: {button_name}")
        if len(policies) == 1:
            return policies[0]
        if not policies:
            raise NotFoundError(f"No {label} config found")
        raise ValidationError(f"Multiple {label} configs found, button_name is required")

    def upload_policy(self, button_name: Optional[str] = None) -> UploadMember:
        return self._select(self.index.uploads, button_name, "upload")

    def download_policy(self, button_name: Optional[str] = None) -> DownloadMember:
        return self._select(self.index.downloads, button_name, "download")

    @staticmethod
    def clean_filename(filename: Optional[str]) -> str:
        """Keep only the base name of a client supplied filename"""
        name = (filename or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
        if name in ("", ".", "..") or "\x00" in name:
            raise ValidationError("Invalid filename")
        return name

    # Upload

    async def receive_upload(self, stream: AsyncReader, filename: Optional[str],
                             button_name: Optional[str] = None) -> str:
        """Stage an incoming upload, then apply the upload policy to it"""
        staged, size = await self._stage(stream)
        return await self.store_upload(staged, filename, size, button_name)

    async def _stage(self, stream: AsyncReader) -> Tuple[Path, int]:
        await asyncio.to_thread(self.staging_directory.mkdir, parents=True, exist_ok=True)
        staged = self.staging_directory / f"{uuid.uuid4().hex}.part"
        size = 0
        try:
            with open(staged, "wb") as handle:
                while True:
                    chunk = await stream.read(self.chunk_size)
                    if not chunk:
                        break
                    await asyncio.to_thread(handle.write, chunk)
                    size += len(chunk)
        except Exception:
            await asyncio.to_thread(self._discard, staged)
            raise
        return staged, size

    async def store_upload(self, staged: Path, filename: Optional[str], size: int,
                           button_name: Optional[str] = None) -> str:
        """Check a staged file against the policy and move it into place.

        Extension is checked before size. Whatever goes wrong, the staged
        file is removed, so a rejected upload never persists.
        """
        try:
            policy = self.upload_policy(button_name)
            name = self.clean_filename(filename)
            if Path(name).suffix not in policy.allowed_extensions:
                raise ValidationError("File type not allowed")
            if policy.max_file_size is not None and size > policy.max_file_size:
                raise ValidationError("File size exceeds limit")
            target_directory = self.resolve_directory(policy.upload_directory)
            destination = await asyncio.to_thread(self._finalize, staged, target_directory, name)
        except Exception:
            await asyncio.to_thread(self._discard, staged)
            raise
        logger.info(f"Stored upload {name} ({size} bytes) for {policy.button_name} at {destination}")
        return name

    @staticmethod
    def _finalize(staged: Path, directory: Path, name: str) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        destination = directory / name
        try:
            os.replace(staged, destination)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            # Staging area lives on another filesystem
            shutil.move(str(staged), str(destination))
        return destination

    @staticmethod
    def _discard(staged: Path) -> None:
        try:
            staged.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove rejected upload {staged}: {str(e)}")

    # Download / browse

    async def resolve_download(self, filename: Optional[str], button_name: Optional[str] = None) -> Path:
        policy = self.download_policy(button_name)
        if not filename:
            raise ValidationError("No filename provided in download request")
        relative = normalize_relative_path(filename)
        if Path(relative).suffix not in policy.allowed_extensions:
            raise ValidationError("File type not allowed")
        target = confine(self.resolve_directory(policy.root_directory), relative)
        if not await asyncio.to_thread(target.is_file):
            raise NotFoundError("File not found")
        logger.info(f"Serving download {relative} for {policy.button_name}")
        return target

    async def browse(self, path: Optional[str] = None, button_name: Optional[str] = None) -> Dict[str, Any]:
        """List the immediate children of a directory under a download root"""
        policy = self.download_policy(button_name)
        relative = normalize_relative_path(path or "")
        target = confine(self.resolve_directory(policy.root_directory), relative)
        directories, files = await asyncio.to_thread(self._list_children, target)
        return {"path": relative, "directories": directories, "files": files}

    @staticmethod
    def _list_children(directory: Path) -> Tuple[List[str], List[str]]:
        if not directory.exists():
            raise NotFoundError("Directory not found")
        if not directory.is_dir():
            raise ValidationError("Not a directory")
        directories: List[str] = []
        files: List[str] = []
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_dir():
                    directories.append(entry.name)
                elif entry.is_file():
                    files.append(entry.name)
        return sorted(directories), sorted(files)

    # Default upload directory

    async def list_files(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._list_files, self.default_upload_directory)

    @staticmethod
    def _list_files(directory: Path) -> List[Dict[str, Any]]:
        if not directory.is_dir():
            return []
        listing = []
        with os.scandir(directory) as entries:
            for entry in sorted(entries, key=lambda e: e.name):
                if not entry.is_file():
                    continue
                stats = entry.stat()
                listing.append({
                    "filename": entry.name,
                    "size": stats.st_size,
                    "modified": datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc).isoformat(),
                })
        return listing

    async def delete_file(self, filename: str) -> None:
        relative = normalize_relative_path(filename or "")
        if not relative or "/" in relative:
            raise AccessDeniedError()
        target = confine(self.default_upload_directory, relative)
        if not await asyncio.to_thread(target.is_file):
            raise NotFoundError("File not found")
        await asyncio.to_thread(target.unlink)
        logger.info(f"Deleted {relative} from {self.default_upload_directory}")
