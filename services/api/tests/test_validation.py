"""
Tests for upload structure validation.

Run with: pytest tests/test_validation.py -v
"""
import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.validation import (
    FlatCandidate,
    PathedCandidate,
    RejectionKind,
    UploadCase,
    UploadMode,
    detect_archive_wrapper,
    detect_mode,
    make_candidate,
    validate_upload_structure,
)


def flat(*names):
    return [FlatCandidate(name=n, size=10) for n in names]


def pathed(*paths):
    return [PathedCandidate(name=p.rsplit("/", 1)[-1], relative_path=p, size=10) for p in paths]


class TestCandidates:
    """Tests for the candidate variants and make_candidate."""

    def test_no_path_is_flat(self):
        """Missing, empty or name-equal paths give a flat candidate."""
        assert isinstance(make_candidate("a.md", 1), FlatCandidate)
        assert isinstance(make_candidate("a.md", 1, ""), FlatCandidate)
        assert isinstance(make_candidate("a.md", 1, "a.md"), FlatCandidate)

    def test_path_is_pathed(self):
        c = make_candidate("a.md", 1, "proj/a.md")
        assert isinstance(c, PathedCandidate)
        assert c.path == "proj/a.md"

    def test_backslashes_normalized(self):
        """Windows separators become '/'."""
        c = make_candidate("pic.png", 1, "proj\\images\\pic.png")
        assert c.path == "proj/images/pic.png"

    def test_empty_name_raises(self):
        with pytest.raises(ValueError):
            make_candidate("", 1)

    def test_negative_size_raises(self):
        with pytest.raises(ValueError):
            make_candidate("a.md", -1)

    def test_bool_size_raises(self):
        with pytest.raises(ValueError):
            FlatCandidate(name="a.md", size=True)

    def test_absolute_path_raises(self):
        with pytest.raises(ValueError):
            make_candidate("a.md", 1, "/etc/a.md")

    def test_parent_segment_raises(self):
        """'..' segments are refused, also after normalization."""
        with pytest.raises(ValueError):
            make_candidate("a.md", 1, "proj/../a.md")
        with pytest.raises(ValueError):
            make_candidate("a.md", 1, "proj\\..\\a.md")

    def test_path_must_end_with_name(self):
        """The stored path cannot point at a different file than the validated name."""
        with pytest.raises(ValueError):
            make_candidate("doc.md", 1, "proj/evil.html")
        with pytest.raises(ValueError):
            make_candidate("a.md", 1, "b.md")
        with pytest.raises(ValueError):
            PathedCandidate(name="a.md", relative_path="proj/images/a.md.png")

    def test_non_candidate_raises_type_error(self):
        """Contract violations are programming errors, not rejections."""
        with pytest.raises(TypeError):
            validate_upload_structure([{"name": "a.md"}])


class TestModeDetection:
    """Tests for upload mode detection."""

    def test_flat_is_independent(self):
        assert detect_mode(flat("a.md", "b.md")) is UploadMode.INDEPENDENT

    def test_any_path_is_folder(self):
        items = flat("a.md") + pathed("proj/b.md")
        assert detect_mode(items) is UploadMode.FOLDER

    def test_empty_is_independent(self):
        assert detect_mode([]) is UploadMode.INDEPENDENT


class TestIndependentUploads:
    """Tests for single and multiple .md file uploads."""

    def test_single_markdown_accepted(self):
        """Scenario: one readme.md."""
        items = flat("readme.md")
        outcome = validate_upload_structure(items)
        assert outcome.accepted
        assert outcome.case_id is UploadCase.SINGLE_FILE
        assert outcome.mode is UploadMode.INDEPENDENT
        assert list(outcome.filtered) == items
        assert outcome.reason is None
        assert outcome.rejection is None

    def test_multiple_markdown_keeps_order(self):
        items = flat("b.md", "a.MD", "c.md")
        outcome = validate_upload_structure(items)
        assert outcome.accepted
        assert outcome.case_id is UploadCase.MULTI_FILE
        assert [c.name for c in outcome.filtered] == ["b.md", "a.MD", "c.md"]

    def test_non_markdown_rejected(self):
        """Scenario: readme.md + notes.txt."""
        outcome = validate_upload_structure(flat("readme.md", "notes.txt"))
        assert not outcome.accepted
        assert outcome.rejection is RejectionKind.INVALID_EXTENSION
        assert "notes.txt" in outcome.reason
        assert outcome.filtered == ()
        assert outcome.case_id is None

    def test_first_violation_wins(self):
        outcome = validate_upload_structure(flat("a.txt", "b.png"))
        assert "a.txt" in outcome.reason
        assert "b.png" not in outcome.reason

    def test_hidden_file_rejected(self):
        outcome = validate_upload_structure(flat("a.md", ".secret.md"))
        assert not outcome.accepted
        assert outcome.rejection is RejectionKind.HIDDEN_FILE
        assert ".secret.md" in outcome.reason

    def test_empty_selection(self):
        """Scenario: nothing selected."""
        outcome = validate_upload_structure([])
        assert not outcome.accepted
        assert outcome.rejection is RejectionKind.EMPTY_SELECTION
        assert outcome.reason == "No files selected."


class TestFolderUploads:
    """Tests for the strict two-level project layout."""

    def test_single_md_project(self):
        """Scenario: proj/doc.md + proj/images/pic.png."""
        items = pathed("proj/doc.md", "proj/images/pic.png")
        outcome = validate_upload_structure(items)
        assert outcome.accepted
        assert outcome.mode is UploadMode.FOLDER
        assert outcome.case_id is UploadCase.SINGLE_MD_PROJECT
        assert list(outcome.filtered) == items
        assert outcome.stripped_root == "proj"
        assert outcome.effective_path(items[1]) == "images/pic.png"

    def test_multi_md_project(self):
        items = pathed("proj/a.md", "proj/b.md", "proj/images/x.svg", "proj/IMAGES/y.JPEG")
        outcome = validate_upload_structure(items)
        assert outcome.accepted
        assert outcome.case_id is UploadCase.MULTI_MD_PROJECT

    def test_all_image_extensions_allowed(self):
        images = [f"proj/images/p{ext}" for ext in (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")]
        outcome = validate_upload_structure(pathed("proj/doc.md", *images))
        assert outcome.accepted

    def test_unauthorized_folder(self):
        """Scenario: proj/assets/pic.png."""
        outcome = validate_upload_structure(pathed("proj/doc.md", "proj/assets/pic.png"))
        assert not outcome.accepted
        assert outcome.rejection is RejectionKind.UNAUTHORIZED_FOLDER
        assert "assets" in outcome.reason

    def test_structure_too_deep(self):
        """Scenario: a nested folder under images/ listed first."""
        outcome = validate_upload_structure(pathed("proj/images/sub/pic.png", "proj/doc.md"))
        assert not outcome.accepted
        assert outcome.rejection is RejectionKind.STRUCTURE_TOO_DEEP
        assert "sub" in outcome.reason

    def test_non_image_in_images(self):
        outcome = validate_upload_structure(pathed("proj/doc.md", "proj/images/notes.txt"))
        assert outcome.rejection is RejectionKind.UNAUTHORIZED_FILE_IN_IMAGES
        assert "notes.txt" in outcome.reason

    def test_non_markdown_at_root(self):
        outcome = validate_upload_structure(pathed("proj/doc.md", "proj/logo.png"))
        assert outcome.rejection is RejectionKind.INVALID_EXTENSION
        assert "logo.png" in outcome.reason

    def test_multiple_roots(self):
        outcome = validate_upload_structure(pathed("one/a.md", "two/b.md"))
        assert outcome.rejection is RejectionKind.MULTIPLE_ROOTS
        assert "two/b.md" in outcome.reason

    def test_flat_file_in_folder_upload(self):
        """A file without a directory segment cannot belong to the picked folder."""
        items = pathed("proj/a.md") + flat("loose.md")
        outcome = validate_upload_structure(items)
        assert outcome.rejection is RejectionKind.MULTIPLE_ROOTS

    def test_flat_file_first_in_folder_upload(self):
        """A loose first file is reported on its own, not as a root folder."""
        items = flat("x.md") + pathed("proj/a.md")
        outcome = validate_upload_structure(items)
        assert outcome.rejection is RejectionKind.MULTIPLE_ROOTS
        assert "outside any folder" in outcome.reason
        assert "'x.md'" in outcome.reason
        assert "x.md/" not in outcome.reason

    def test_no_root_markdown(self):
        outcome = validate_upload_structure(pathed("proj/images/a.png"))
        assert outcome.rejection is RejectionKind.NO_ROOT_MARKDOWN

    def test_hidden_file_at_depth(self):
        outcome = validate_upload_structure(pathed("proj/doc.md", "proj/images/.DS_Store"))
        assert outcome.rejection is RejectionKind.HIDDEN_FILE

    def test_hidden_directory(self):
        outcome = validate_upload_structure(pathed("proj/doc.md", "proj/.git/config"))
        assert outcome.rejection is RejectionKind.HIDDEN_FILE
        assert ".git/config" in outcome.reason


class TestArchiveUploads:
    """Tests for the archive variant with optional wrapper unwrap."""

    def test_wrapper_detected(self):
        assert detect_archive_wrapper(pathed("Project/doc.md", "Project/images/a.png")) == "Project"

    def test_images_is_never_a_wrapper(self):
        assert detect_archive_wrapper(pathed("images/a.png", "images/b.png")) is None

    def test_root_file_means_no_wrapper(self):
        assert detect_archive_wrapper(pathed("doc.md", "images/a.png")) is None

    def test_wrapper_stripped_matches_unwrapped(self):
        """A wrapped archive validates exactly like the same files without the wrapper."""
        wrapped = pathed("Project/doc.md", "Project/images/a.png")
        bare = pathed("doc.md", "images/a.png")

        w = validate_upload_structure(wrapped, UploadMode.ARCHIVE)
        b = validate_upload_structure(bare, UploadMode.ARCHIVE)

        assert w.accepted and b.accepted
        assert w.case_id is b.case_id is UploadCase.SINGLE_MD_PROJECT
        assert w.stripped_root == "Project"
        assert b.stripped_root is None
        assert [w.effective_path(c) for c in w.filtered] == [b.effective_path(c) for c in b.filtered]

    def test_archive_root_files_are_depth_one(self):
        items = [make_candidate("a.md", 1, "a.md"), make_candidate("b.md", 1, "b.md")]
        outcome = validate_upload_structure(items, UploadMode.ARCHIVE)
        assert outcome.accepted
        assert outcome.case_id is UploadCase.MULTI_MD_PROJECT

    def test_archive_too_deep(self):
        outcome = validate_upload_structure(
            pathed("Project/doc.md", "Project/images/sub/a.png"), UploadMode.ARCHIVE
        )
        assert outcome.rejection is RejectionKind.STRUCTURE_TOO_DEEP

    def test_archive_unauthorized_folder(self):
        outcome = validate_upload_structure(pathed("doc.md", "docs/b.md"), UploadMode.ARCHIVE)
        assert outcome.rejection is RejectionKind.UNAUTHORIZED_FOLDER
        assert "docs" in outcome.reason

    def test_archive_empty(self):
        outcome = validate_upload_structure([], UploadMode.ARCHIVE)
        assert outcome.rejection is RejectionKind.EMPTY_SELECTION
        assert outcome.mode is UploadMode.ARCHIVE


class TestPurity:
    """Validation has no hidden state."""

    def test_idempotent(self):
        items = pathed("proj/a.md", "proj/images/x.png")
        assert validate_upload_structure(items) == validate_upload_structure(items)

    def test_input_not_mutated(self):
        items = pathed("proj/a.md", "proj/images/x.png")
        snapshot = list(items)
        validate_upload_structure(items)
        assert items == snapshot

    def test_to_dict(self):
        outcome = validate_upload_structure(flat("a.md"))
        assert outcome.to_dict() == {
            "accepted": True,
            "mode": "independent",
            "case_id": "single-file",
            "reason": None,
            "rejection": None,
            "stripped_root": None,
            "files": ["a.md"],
        }
