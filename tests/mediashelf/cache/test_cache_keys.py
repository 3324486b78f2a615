from __future__ import annotations

import hashlib

from mediashelf.cache import derive_cache_key, sanitize_title
from mediashelf.cache.keys import MAX_SLUG_LENGTH, path_digest


def test_derive_cache_key_is_deterministic() -> None:
    first = derive_cache_key("/media/ebooks/dune.epub", "Dune")
    second = derive_cache_key("/media/ebooks/dune.epub", "Dune")

    assert first == second


def test_key_combines_slug_and_path_hash() -> None:
    source = "/media/ebooks/dune.epub"
    expected_hash = hashlib.sha256(source.encode("utf-8")).hexdigest()[:8]

    assert derive_cache_key(source, "Dune: Messiah!") == f"dune_messiah_{expected_hash}"


def test_same_title_different_paths_get_distinct_keys() -> None:
    first = derive_cache_key("/media/magazines/2023/issue.pdf", "Monthly Issue")
    second = derive_cache_key("/media/magazines/2024/issue.pdf", "Monthly Issue")

    assert first != second
    assert first.startswith("monthly_issue_")
    assert second.startswith("monthly_issue_")


def test_sanitize_keeps_cjk_and_collapses_separators() -> None:
    assert sanitize_title("  三体 -- The Three-Body Problem ") == "三体_the_three_body_problem"


def test_sanitize_truncates_long_titles() -> None:
    slug = sanitize_title("a" * 120)

    assert len(slug) == MAX_SLUG_LENGTH


def test_empty_title_falls_back_to_file_stem() -> None:
    key = derive_cache_key("/media/ebooks/Some Book.v2.epub", "")

    assert key == f"some_book_v2_{path_digest('/media/ebooks/Some Book.v2.epub')}"


def test_unsluggable_title_and_name_fall_back_to_item() -> None:
    key = derive_cache_key("/media/ebooks/!!!.pdf", "???")

    assert key.startswith("item_")


def test_key_does_not_read_the_file(tmp_path) -> None:
    missing = tmp_path / "not-there.pdf"

    assert derive_cache_key(str(missing), "Ghost").startswith("ghost_")
