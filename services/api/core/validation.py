"""
Upload structure validation for Markify.

Classifies a batch of submitted files into one of the accepted upload shapes
and enforces the strict two-level project layout:

    <root>/
        *.md            Markdown documents (at least one)
        images/         optional, images only
            *.png|jpg|jpeg|gif|webp|svg

Validation is a pure function of its input: no I/O, no shared state, and the
first violation found in input order decides the rejection reason.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

MARKDOWN_EXTENSION = ".md"
IMAGES_FOLDER = "images"
ALLOWED_IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")


class UploadMode(str, Enum):
    INDEPENDENT = "independent"
    FOLDER = "folder"
    ARCHIVE = "archive"


class UploadCase(str, Enum):
    SINGLE_FILE = "single-file"
    MULTI_FILE = "multi-file"
    SINGLE_MD_PROJECT = "single-md-project"
    MULTI_MD_PROJECT = "multi-md-project"


class RejectionKind(str, Enum):
    EMPTY_SELECTION = "EmptySelection"
    HIDDEN_FILE = "HiddenFileRejected"
    INVALID_EXTENSION = "InvalidExtension"
    MULTIPLE_ROOTS = "MultipleRoots"
    UNAUTHORIZED_FOLDER = "UnauthorizedFolder"
    UNAUTHORIZED_FILE_IN_IMAGES = "UnauthorizedFileInImages"
    STRUCTURE_TOO_DEEP = "StructureTooDeep"
    NO_ROOT_MARKDOWN = "NoRootMarkdown"


# ---------- Candidates -------------------------------------------------------

def _check_name_and_size(name: Any, size: Any) -> None:
    if not isinstance(name, str) or not name:
        raise ValueError("Upload candidate name must be a non-empty string")
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise ValueError(f"Upload candidate size must be a non-negative integer, got {size!r}")


@dataclass(frozen=True)
class FlatCandidate:
    """A file picked on its own, without any folder path."""
    name: str
    size: int = 0

    def __post_init__(self) -> None:
        _check_name_and_size(self.name, self.size)

    @property
    def path(self) -> str:
        return self.name


@dataclass(frozen=True)
class PathedCandidate:
    """A file that arrived with a slash-separated path relative to the upload root."""
    name: str
    relative_path: str
    size: int = 0

    def __post_init__(self) -> None:
        _check_name_and_size(self.name, self.size)
        path = self.relative_path
        if not isinstance(path, str) or not path:
            raise ValueError("relative_path must be a non-empty string")
        if path.startswith("/"):
            raise ValueError(f"relative_path must be relative: {path!r}")
        if ".." in path.split("/"):
            raise ValueError(f"relative_path must not contain '..' segments: {path!r}")
        # The validated name and the stored path must be the same file
        if path.rsplit("/", 1)[-1] != self.name:
            raise ValueError(
                f"relative_path {path!r} does not end with the file name {self.name!r}"
            )

    @property
    def path(self) -> str:
        return self.relative_path


UploadCandidate = Union[FlatCandidate, PathedCandidate]


def normalize_relative_path(path: str) -> str:
    """Convert backslashes to '/' and drop a leading './'."""
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def make_candidate(
    name: str,
    size: int = 0,
    relative_path: Optional[str] = None,
) -> UploadCandidate:
    """
    Build the right candidate variant for a submitted file.

    A missing, empty or name-equal relative path yields a FlatCandidate.

    Raises:
        ValueError: if the input violates the candidate contract
            (empty name, negative size, absolute path, '..' segments, or a
            path whose last segment is not `name`).
    """
    if relative_path is None or relative_path == "" or relative_path == name:
        return FlatCandidate(name=name, size=size)
    return PathedCandidate(
        name=name,
        relative_path=normalize_relative_path(relative_path),
        size=size,
    )


# ---------- Outcome ----------------------------------------------------------

@dataclass(frozen=True)
class ValidationOutcome:
    accepted: bool
    mode: UploadMode
    case_id: Optional[UploadCase] = None
    filtered: Tuple[UploadCandidate, ...] = ()
    reason: Optional[str] = None
    rejection: Optional[RejectionKind] = None
    # Folder root or archive wrapper removed to compute effective paths
    stripped_root: Optional[str] = None

    def effective_path(self, candidate: UploadCandidate) -> str:
        path = candidate.path
        prefix = f"{self.stripped_root}/" if self.stripped_root else None
        if prefix and path.startswith(prefix):
            return path[len(prefix):]
        return path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "mode": self.mode.value,
            "case_id": self.case_id.value if self.case_id else None,
            "reason": self.reason,
            "rejection": self.rejection.value if self.rejection else None,
            "stripped_root": self.stripped_root,
            "files": [c.path for c in self.filtered],
        }


def _reject(mode: UploadMode, kind: RejectionKind, reason: str) -> ValidationOutcome:
    return ValidationOutcome(accepted=False, mode=mode, reason=reason, rejection=kind)


# ---------- Helpers ----------------------------------------------------------

def _segments(candidate: UploadCandidate) -> List[str]:
    return [s for s in candidate.path.split("/") if s]


def _is_hidden(candidate: UploadCandidate) -> bool:
    if candidate.name.startswith("."):
        return True
    return any(part.startswith(".") for part in _segments(candidate))


def _is_markdown(name: str) -> bool:
    return name.lower().endswith(MARKDOWN_EXTENSION)


def _is_allowed_image(name: str) -> bool:
    lowered = name.lower()
    return any(lowered.endswith(ext) for ext in ALLOWED_IMAGE_EXTENSIONS)


def detect_mode(candidates: Sequence[UploadCandidate]) -> UploadMode:
    """Folder upload if any candidate carries a path with a '/', else independent files."""
    for c in candidates:
        if isinstance(c, PathedCandidate) and "/" in c.relative_path:
            return UploadMode.FOLDER
    return UploadMode.INDEPENDENT


def detect_archive_wrapper(candidates: Sequence[UploadCandidate]) -> Optional[str]:
    """
    Return the single enclosing folder shared by every archive entry, if any.

    A top folder literally named 'images' is never treated as a wrapper.
    """
    top_segments = set()
    for c in candidates:
        parts = _segments(c)
        if len(parts) < 2:
            return None
        top_segments.add(parts[0])
        if len(top_segments) > 1:
            return None
    if len(top_segments) != 1:
        return None
    wrapper = top_segments.pop()
    if wrapper.lower() == IMAGES_FOLDER:
        return None
    return wrapper


def _check_project_entry(
    candidate: UploadCandidate,
    parts: List[str],
) -> Optional[Tuple[RejectionKind, str]]:
    """Apply the two-level rules to an effective path split into segments."""
    depth = len(parts)
    effective = "/".join(parts)

    if depth == 1:
        if not _is_markdown(candidate.name):
            return (
                RejectionKind.INVALID_EXTENSION,
                f"Invalid root file '{effective}': only .md files are allowed at the project root.",
            )
        return None

    if depth == 2:
        folder = parts[0]
        if folder.lower() != IMAGES_FOLDER:
            return (
                RejectionKind.UNAUTHORIZED_FOLDER,
                f"Unauthorized folder '{folder}' found: only an 'images/' subfolder is allowed.",
            )
        if not _is_allowed_image(candidate.name):
            return (
                RejectionKind.UNAUTHORIZED_FILE_IN_IMAGES,
                f"Unauthorized file in images folder: '{candidate.name}' "
                f"(allowed: {', '.join(ALLOWED_IMAGE_EXTENSIONS)}).",
            )
        return None

    nested = "/".join(parts[:2])
    return (
        RejectionKind.STRUCTURE_TOO_DEEP,
        f"Structure too deep: nested folder '{nested}' is not supported ({candidate.path}).",
    )


def _hidden_rejection(mode: UploadMode, candidate: UploadCandidate) -> ValidationOutcome:
    return _reject(
        mode,
        RejectionKind.HIDDEN_FILE,
        f"Hidden files are not allowed: '{candidate.path}'.",
    )


def _scan_project(
    mode: UploadMode,
    items: Tuple[UploadCandidate, ...],
    root: Optional[str],
    require_root: bool,
) -> ValidationOutcome:
    """
    Single left-to-right pass shared by folder and archive uploads.

    Args:
        root: Leading segment stripped from every path before the depth rules.
        require_root: If True, every candidate must live under `root`
            (folder uploads); otherwise `root` is only stripped when present.
    """
    root_markdown = 0

    for c in items:
        if _is_hidden(c):
            return _hidden_rejection(mode, c)

        parts = _segments(c)
        if require_root:
            if len(parts) < 2:
                return _reject(
                    mode,
                    RejectionKind.MULTIPLE_ROOTS,
                    f"File '{c.path}' is outside any folder: a folder upload must have one root folder.",
                )
            if parts[0] != root:
                return _reject(
                    mode,
                    RejectionKind.MULTIPLE_ROOTS,
                    f"Multiple root folders detected: '{c.path}' is outside '{root}/'.",
                )
            parts = parts[1:]
        elif root is not None:
            parts = parts[1:]

        problem = _check_project_entry(c, parts)
        if problem is not None:
            kind, reason = problem
            return _reject(mode, kind, reason)

        if len(parts) == 1:
            root_markdown += 1

    if root_markdown == 0:
        return _reject(
            mode,
            RejectionKind.NO_ROOT_MARKDOWN,
            "No markdown files found in the root of the upload.",
        )

    case = UploadCase.SINGLE_MD_PROJECT if root_markdown == 1 else UploadCase.MULTI_MD_PROJECT
    return ValidationOutcome(
        accepted=True,
        mode=mode,
        case_id=case,
        filtered=items,
        stripped_root=root,
    )


# ---------- Public API -------------------------------------------------------

def validate_upload_structure(
    candidates: Sequence[UploadCandidate],
    mode: Optional[UploadMode] = None,
) -> ValidationOutcome:
    """
    Validate a batch of upload candidates.

    Args:
        candidates: Files in submission order. Never mutated.
        mode: Upload mode. Detected from the candidate paths when omitted;
            archive mode must always be requested explicitly.

    Returns:
        ValidationOutcome. Rejections are returned, never raised.

    Raises:
        TypeError: if an element is not an UploadCandidate.
    """
    items = tuple(candidates)
    for c in items:
        if not isinstance(c, (FlatCandidate, PathedCandidate)):
            raise TypeError(f"Expected an upload candidate, got {type(c).__name__}")

    if mode is None:
        mode = detect_mode(items)

    if not items:
        return _reject(mode, RejectionKind.EMPTY_SELECTION, "No files selected.")

    if mode is UploadMode.INDEPENDENT:
        for c in items:
            if _is_hidden(c):
                return _hidden_rejection(mode, c)
            if not _is_markdown(c.name):
                return _reject(
                    mode,
                    RejectionKind.INVALID_EXTENSION,
                    f"Upload failed, only .md files are allowed here: '{c.name}'.",
                )
        case = UploadCase.SINGLE_FILE if len(items) == 1 else UploadCase.MULTI_FILE
        return ValidationOutcome(accepted=True, mode=mode, case_id=case, filtered=items)

    if mode is UploadMode.FOLDER:
        first = _segments(items[0])
        root = first[0] if len(first) > 1 else None
        return _scan_project(mode, items, root=root, require_root=True)

    wrapper = detect_archive_wrapper(items)
    return _scan_project(mode, items, root=wrapper, require_root=False)
