"""ZIP extraction into per-archive scratch directories."""

from __future__ import annotations

import shutil
import stat
import tempfile
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import structlog

from ..errors import ExtractionError
from ..logging_conf import get_logger


@dataclass
class ExtractedArchive:
    """Scratch directory holding the members of one archive."""

    directory: Path
    members: list[Path] = field(default_factory=list)

    def cleanup(self) -> None:
        shutil.rmtree(self.directory, ignore_errors=True)


def _safe_member_path(member_name: str) -> Path:
    normalized = member_name.replace("\\", "/")
    relative = PurePosixPath(normalized)
    if relative.is_absolute():
        raise ExtractionError(f"Unsafe absolute path in archive: {member_name}")
    parts = [part for part in relative.parts if part not in ("", ".")]
    if not parts or ".." in parts:
        raise ExtractionError(f"Unsafe path in archive: {member_name}")
    return Path(*parts)


class ArchiveExtractor:
    """Unpack archives, producing the file members in archive order."""

    def __init__(self, work_dir: Path | None = None, logger: structlog.BoundLogger | None = None) -> None:
        self.work_dir = work_dir
        self.logger = logger or get_logger("extractor")

    def extract(self, archive_path: Path) -> ExtractedArchive:
        try:
            if self.work_dir is not None:
                self.work_dir.mkdir(parents=True, exist_ok=True)
            scratch = Path(
                tempfile.mkdtemp(prefix=f"{archive_path.name}-", suffix="-unzip", dir=self.work_dir)
            )
        except OSError as exc:
            raise ExtractionError(f"Cannot create scratch directory for {archive_path}: {exc}") from exc

        extracted = ExtractedArchive(directory=scratch)
        try:
            with zipfile.ZipFile(archive_path) as archive:
                for member in archive.infolist():
                    if member.is_dir():
                        continue
                    mode = (member.external_attr >> 16) & 0xFFFF
                    if stat.S_IFMT(mode) == stat.S_IFLNK:
                        raise ExtractionError(f"Unsafe link in archive: {member.filename}")
                    target = scratch / _safe_member_path(member.filename)
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(member, "r") as source, target.open("wb") as sink:
                        shutil.copyfileobj(source, sink)
                    # A repeated member name overwrites the earlier copy on disk.
                    if target not in extracted.members:
                        extracted.members.append(target)
        except ExtractionError:
            extracted.cleanup()
            raise
        except (
            zipfile.BadZipFile,
            zipfile.LargeZipFile,
            zlib.error,
            OSError,
            EOFError,
            RuntimeError,
        ) as exc:
            # zlib.error: corrupt deflate stream. RuntimeError: encrypted member
            # without a password or an unsupported compression method.
            extracted.cleanup()
            raise ExtractionError(f"Cannot extract {archive_path}: {exc}") from exc

        self.logger.debug(
            "archive_extracted", archive=str(archive_path), members=len(extracted.members)
        )
        return extracted


__all__ = ["ArchiveExtractor", "ExtractedArchive"]
