from bs4 import BeautifulSoup

from novel_reader.content import (
    ContentEngine,
    HighlightCursor,
    HighlightSynchronizer,
    apply_highlight,
    clear_highlight,
    paginate,
)

FOX = '<p id="para-0" class="block block-paragraph" data-paragraph-index="0">The quick brown fox</p>'


def _marks(markup):
    return BeautifulSoup(markup, "html.parser").find_all("mark", class_="tts-highlight")


def _chapter(raw):
    return ContentEngine().load(raw).rendered.markup


def test_highlights_exact_word_range():
    markup = apply_highlight(FOX, HighlightCursor(0, 1, 3))

    assert markup == (
        '<p id="para-0" class="block block-paragraph" data-paragraph-index="0">'
        'The <mark class="tts-highlight">quick brown</mark> fox</p>'
    )


def test_apply_is_idempotent():
    cursor = HighlightCursor(0, 1, 3)
    once = apply_highlight(FOX, cursor)
    assert apply_highlight(once, cursor) == once


def test_clear_restores_rendered_markup():
    markup = _chapter("<p>The <b>quick</b> brown fox<br>jumps</p><p>Second one</p>")
    highlighted = apply_highlight(markup, HighlightCursor(0, 1, 4))
    assert highlighted != markup
    assert clear_highlight(highlighted) == markup


def test_only_one_marker_survives_a_new_cursor():
    markup = _chapter("First block here.\n\nSecond block here.")
    markup = apply_highlight(markup, HighlightCursor(0, 0, 1))
    markup = apply_highlight(markup, HighlightCursor(1, 1, 2))

    marks = _marks(markup)
    assert len(marks) == 1
    assert marks[0].get_text() == "block"
    assert marks[0].find_parent("p")["id"] == "para-1"


def test_highlight_keeps_emphasis_intact():
    markup = _chapter("<p>The <strong>quick brown</strong> fox jumps</p>")
    highlighted = apply_highlight(markup, HighlightCursor(0, 2, 4))

    soup = BeautifulSoup(highlighted, "html.parser")
    assert soup.find("strong").get_text() == "quick brown"
    assert "".join(mark.get_text() for mark in _marks(highlighted)) == "brown fox"
    assert soup.find("p").get_text() == "The quick brown fox jumps"


def test_malformed_cursor_only_clears():
    highlighted = apply_highlight(FOX, HighlightCursor(0, 0, 1))

    for cursor in (HighlightCursor(0, 2, 2), HighlightCursor(0, 3, 1), HighlightCursor(0, 10, 12)):
        assert apply_highlight(highlighted, cursor) == FOX


def test_missing_block_is_a_silent_no_op():
    assert apply_highlight(FOX, HighlightCursor(7, 0, 1)) == FOX


def test_word_end_is_clamped_to_block():
    marks = _marks(apply_highlight(FOX, HighlightCursor(0, 2, 99)))
    assert [mark.get_text() for mark in marks] == ["brown fox"]


def test_page_fragments_use_block_word_positions():
    blocks = ContentEngine().canonicalize("one two three four five")
    second_page = paginate(blocks, word_budget=3)[1]

    marks = _marks(apply_highlight(second_page.markup, HighlightCursor(0, 3, 5)))
    assert [mark.get_text() for mark in marks] == ["four five"]
    assert _marks(apply_highlight(second_page.markup, HighlightCursor(0, 0, 2))) == []


def test_synchronizer_scrolls_once_per_block():
    sync = HighlightSynchronizer(_chapter("First block here.\n\nSecond block here."))

    first = sync.update(HighlightCursor(0, 0, 1))
    assert first.applied
    assert first.scroll.element_id == "para-0"
    assert first.scroll.behavior == "smooth"

    assert sync.update(HighlightCursor(0, 1, 2)).scroll is None
    assert sync.update(HighlightCursor(1, 0, 1)).scroll.element_id == "para-1"

    sync.clear()
    assert _marks(sync.markup) == []
    assert sync.update(HighlightCursor(1, 1, 2)).scroll.element_id == "para-1"


def test_synchronizer_ignores_out_of_range_cursor():
    sync = HighlightSynchronizer(FOX)
    sync.update(HighlightCursor(0, 0, 1))
    update = sync.update(HighlightCursor(5, 0, 1))

    assert not update.applied
    assert update.scroll is None
    assert update.markup == FOX
    assert sync.active is None


def test_highlight_keeps_rendered_attribute_order():
    blocks = ContentEngine().canonicalize('<p style="text-align: right">one two three four five</p>')
    second_page = paginate(blocks, word_budget=3)[1]
    assert second_page.markup.startswith(
        '<p id="para-0" class="block block-paragraph" data-paragraph-index="0" data-word-offset="3" style="text-align: right;">'
    )

    highlighted = apply_highlight(second_page.markup, HighlightCursor(0, 3, 4))
    assert highlighted.startswith(second_page.markup[: second_page.markup.index(">") + 1])
    assert clear_highlight(highlighted) == second_page.markup
