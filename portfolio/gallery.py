"""
Gallery limits, checked before anything is uploaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from portfolio.models import PendingFile

GALLERY_MAX_FILES = 10
GALLERY_MAX_FILE_SIZE = 5 * 1024 * 1024


@dataclass
class GallerySelection:
    accepted: list[PendingFile] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _megabytes(size: int) -> str:
    value = size / 1024 / 1024
    return f"{value:g}"


def select_gallery_files(
    files: list[PendingFile],
    existing_count: int = 0,
    max_files: int = GALLERY_MAX_FILES,
    max_file_size: int = GALLERY_MAX_FILE_SIZE,
) -> GallerySelection:
    """
    Keep the files that fit the gallery caps, in order.

    At most ``max_files - existing_count`` files are considered; each one
    larger than ``max_file_size`` is skipped with its own warning.
    """
    selection = GallerySelection()
    allowable = max(0, max_files - existing_count)
    if len(files) > allowable:
        selection.warnings.append(
            f"You can only add {allowable} more image(s) (max {max_files} in total)."
        )
    for pending in files[:allowable]:
        if pending.size > max_file_size:
            selection.warnings.append(
                f"{pending.filename} is larger than {_megabytes(max_file_size)}MB "
                "and was skipped."
            )
            continue
        selection.accepted.append(pending)
    return selection


def kept_gallery(existing: list[str], removed: list[str]) -> list[str]:
    """Existing gallery URLs minus the ones marked for removal."""
    removed_set = set(removed)
    return [url for url in existing if url not in removed_set]
