from __future__ import annotations

from aptrepo.sources import Entry, EntryFormat, SortMode, build_view, filter_entries, sort_entries


def _entry(text: str, source_file: str = "/etc/apt/sources.list", enabled: bool = True) -> Entry:
    words = text.lstrip("# ").split()
    return Entry(
        source_file=source_file,
        display_text=text,
        enabled=enabled,
        format=EntryFormat.ONE_LINE,
        block_index=None,
        uri=words[1],
        suite=words[2],
        components=" ".join(words[3:]),
        types="deb",
    )


def test_filter_is_case_insensitive_substring() -> None:
    entries = [
        _entry("deb http://archive.ubuntu.com/ubuntu focal main"),
        _entry("# deb http://ppa.launchpad.net/x/y focal main", enabled=False),
    ]

    visible = filter_entries(entries, "UBUNTU")

    assert visible == [entries[0]]


def test_empty_query_keeps_everything() -> None:
    entries = [_entry("deb http://a/ x"), _entry("deb http://b/ y")]

    assert filter_entries(entries, "") == entries


def test_alpha_mode_ignores_case() -> None:
    entries = [_entry("deb http://b-uri/ s"), _entry("DEB http://a-uri/ s")]

    ordered = sort_entries(entries, SortMode.ALPHA)

    assert [entry.uri for entry in ordered] == ["http://a-uri/", "http://b-uri/"]


def test_status_mode_puts_enabled_first_then_by_text() -> None:
    entries = [
        _entry("# deb http://a/ s", enabled=False),
        _entry("deb http://z/ s"),
        _entry("deb http://m/ s"),
    ]

    ordered = sort_entries(entries, SortMode.STATUS)

    assert [entry.display_text for entry in ordered] == [
        "deb http://m/ s",
        "deb http://z/ s",
        "# deb http://a/ s",
    ]


def test_file_mode_groups_by_source_file() -> None:
    entries = [
        _entry("deb http://b/ s", source_file="/etc/apt/sources.list.d/b.list"),
        _entry("deb http://z/ s", source_file="/etc/apt/sources.list"),
        _entry("deb http://a/ s", source_file="/etc/apt/sources.list.d/b.list"),
    ]

    ordered = sort_entries(entries, SortMode.FILE)

    assert [entry.uri for entry in ordered] == ["http://z/", "http://a/", "http://b/"]


def test_equal_keys_keep_input_order() -> None:
    first = Entry(
        source_file="x.sources",
        display_text="deb http://same/ s",
        enabled=True,
        format=EntryFormat.PARAGRAPH,
        block_index=0,
        uri="http://same/",
        suite="s",
        components="",
        types="deb",
    )
    second = Entry(
        source_file="x.sources",
        display_text="deb http://same/ s",
        enabled=True,
        format=EntryFormat.PARAGRAPH,
        block_index=1,
        uri="http://same/",
        suite="s",
        components="",
        types="deb",
    )

    for mode in SortMode:
        ordered = sort_entries([first, second], mode)
        assert [entry.block_index for entry in ordered] == [0, 1]


def test_view_is_a_filtered_permutation() -> None:
    entries = [
        _entry("deb http://archive.ubuntu.com/ubuntu focal main"),
        _entry("deb http://deb.debian.org/debian bookworm main"),
        _entry("# deb http://security.ubuntu.com/ubuntu focal-security main", enabled=False),
    ]

    visible = build_view(entries, "ubuntu", SortMode.STATUS)

    assert len(visible) == 2
    assert all(entry in entries for entry in visible)
    assert visible[0].enabled is True
    assert visible[1].enabled is False
