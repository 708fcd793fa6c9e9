"""
Image reference scanning for Markdown documents.

Used by the archive upload to detect images that no document points at.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Set

# ![alt](path "optional title")
_MD_IMAGE_RE = re.compile(r'!\[([^\]]*)\]\(([^)\s]+)(?:\s+"[^"]*")?\)')
# <img src="path">
_HTML_IMAGE_RE = re.compile(r'<img[^>]+src=["\']([^"\']+)["\']', re.IGNORECASE)

_REMOTE_PREFIXES = ("http://", "https://", "data:")


def normalize_reference(ref: str) -> str:
    ref = re.split(r"[?#]", ref, maxsplit=1)[0]
    ref = ref.replace("\\", "/")
    while ref.startswith("./"):
        ref = ref[2:]
    return ref.strip("/")


def extract_image_references(markdown_text: str) -> Set[str]:
    """
    Collect local image targets from Markdown and inline HTML.

    Remote (http/https) and data: URLs are ignored.
    """
    refs: Set[str] = set()
    targets = [m.group(2) for m in _MD_IMAGE_RE.finditer(markdown_text)]
    targets += [m.group(1) for m in _HTML_IMAGE_RE.finditer(markdown_text)]

    for url in targets:
        if url.lower().startswith(_REMOTE_PREFIXES):
            continue
        normalized = normalize_reference(url)
        if normalized:
            refs.add(normalized)
    return refs


def find_orphaned_images(references: Iterable[str], image_paths: Iterable[str]) -> List[str]:
    """
    Return the image paths (in input order) that no reference points at.

    An image counts as referenced when a reference matches its full effective
    path (e.g. 'images/pic.png') or when both share the same file name.
    Comparison is case-insensitive.
    """
    known: Set[str] = set()
    for ref in references:
        normalized = normalize_reference(ref).lower()
        known.add(normalized)
        known.add(normalized.rsplit("/", 1)[-1])

    orphans: List[str] = []
    for path in image_paths:
        lowered = path.lower()
        name = lowered.rsplit("/", 1)[-1]
        if lowered in known or name in known:
            continue
        orphans.append(path)
    return orphans
