# ============================================================================
# test_path_utils.py -- Tests for the Path Sanitizer & Deduplicator
# ============================================================================
#
# COVERS:
#   TestSanitizeSegment  -- illegal chars, whitespace, Unicode, rejects
#   TestSplitExtension   -- which dot counts as the extension
#   TestMakeUnique       -- the -2, -3, ... naming rule
#
# RUN:
#   python -m pytest tests/test_path_utils.py -v
#
# INTERNET ACCESS: NONE
# ============================================================================

import pytest

from scenevault.core.exceptions import InvalidSegmentError, ValidationError
from scenevault.core.path_utils import (
    make_unique_filename,
    make_unique_name,
    sanitize_segment,
    split_extension,
)


class TestSanitizeSegment:
    """sanitize_segment() output must be usable as one path segment anywhere."""

    def test_illegal_characters_become_dashes(self):
        assert sanitize_segment("Scene: 1/2") == "Scene- 1-2"
        assert sanitize_segment('a<b>c"d\\e|f?g*h') == "a-b-c-d-e-f-g-h"

    def test_control_characters_become_dashes(self):
        assert sanitize_segment("a\x01b\x1fc") == "a-b-c"

    def test_whitespace_is_trimmed_and_collapsed(self):
        assert sanitize_segment("  my   photo .png ") == "my photo .png"
        assert sanitize_segment("\u3000scene\u00a0\u00a0one\ufeff") == "scene one"

    def test_tab_inside_a_name_is_a_control_character(self):
        assert sanitize_segment("my photo\t.png") == "my photo-.png"

    def test_only_trim_whitespace_is_stripped(self):
        # 0x1C-0x1F are controls, not trimmable; U+0085 is kept as-is
        assert sanitize_segment("a\x1c") == "a-"
        assert sanitize_segment("\x1fa") == "-a"
        assert sanitize_segment("a\x85") == "a\x85"

    def test_unicode_is_composed(self):
        decomposed = "cafe\u0301"
        assert sanitize_segment(decomposed) == "caf\u00e9"

    def test_non_latin_names_survive(self):
        assert sanitize_segment("场次 01") == "场次 01"

    @pytest.mark.parametrize("value", ["", "   ", "\t\n", ".", "..", None])
    def test_unusable_names_are_rejected(self, value):
        with pytest.raises(InvalidSegmentError):
            sanitize_segment(value)

    def test_rejection_is_a_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            sanitize_segment("..")
        assert exc_info.value.error_code == "VAL-001"
        assert exc_info.value.fix_suggestion

    @pytest.mark.parametrize("value", [
        "Scene: 1/2",
        "  a  b  ",
        "x\x00y",
        "cafe\u0301.png",
        ". .",
        "..hidden",
        "a/../b",
    ])
    def test_idempotent(self, value):
        once = sanitize_segment(value)
        assert sanitize_segment(once) == once
        assert once not in ("", ".", "..")


class TestSplitExtension:

    @pytest.mark.parametrize("name, expected", [
        ("photo.png", ("photo", ".png")),
        ("clip.final.mp4", ("clip.final", ".mp4")),
        (".env", (".env", "")),
        ("notes.", ("notes.", "")),
        ("README", ("README", "")),
    ])
    def test_split(self, name, expected):
        assert split_extension(name) == expected


class TestMakeUnique:
    """Free names are returned as-is; taken ones get -2, -3, ..."""

    def test_free_name_is_unchanged(self):
        assert make_unique_filename("photo.png", ["other.png"]) == "photo.png"

    def test_first_collision_gets_dash_two(self):
        assert make_unique_filename("photo.png", ["photo.png"]) == "photo-2.png"

    def test_counter_skips_taken_suffixes(self):
        existing = ["photo.png", "photo-2.png", "photo-3.png"]
        assert make_unique_filename("photo.png", existing) == "photo-4.png"

    def test_suffix_goes_before_last_extension(self):
        assert make_unique_filename("clip.final.mp4", ["clip.final.mp4"]) == "clip.final-2.mp4"

    def test_names_without_usable_extension(self):
        assert make_unique_filename(".env", [".env"]) == ".env-2"
        assert make_unique_filename("notes.", ["notes."]) == "notes.-2"

    def test_input_is_sanitized_first(self):
        assert make_unique_filename("a:b.png", ["a-b.png"]) == "a-b-2.png"

    def test_existing_names_compared_after_unicode_composition(self):
        existing = ["caf\u00e9.png"]
        assert make_unique_filename("cafe\u0301.png", existing) == "caf\u00e9-2.png"

    def test_make_unique_name_appends_to_whole_name(self):
        assert make_unique_name("Scene.v1", ["Scene.v1"]) == "Scene.v1-2"
        assert make_unique_name("Scene", []) == "Scene"

    def test_deterministic_for_same_existing_set(self):
        existing = {"photo.png", "photo-2.png"}
        results = {make_unique_filename("photo.png", existing) for _ in range(5)}
        assert results == {"photo-3.png"}
