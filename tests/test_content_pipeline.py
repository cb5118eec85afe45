import json

import pytest

from novel_reader.content import (
    Alignment,
    BlockKind,
    ContentEngine,
    ContentFormat,
    InlineSpan,
    Mark,
    MarkupDocument,
    NO_CONTENT_MESSAGE,
    PlainText,
    StructuredTree,
    build_blocks,
    detect_format,
    extract_block_texts,
    render_blocks,
    resolve_activation,
)


def _text(value, *marks):
    node = {"type": "text", "text": value}
    if marks:
        node["marks"] = [{"type": mark} for mark in marks]
    return node


def _paragraph(*children, **attrs):
    node = {"type": "paragraph", "content": list(children)}
    if attrs:
        node["attrs"] = attrs
    return node


STRUCTURED_DOC = {
    "type": "doc",
    "content": [
        {"type": "heading", "attrs": {"level": 1}, "content": [_text("Chapter One")]},
        _paragraph(_text("It was "), _text("dark", "bold"), _text(" and stormy."), textAlign="center"),
        {
            "type": "bulletList",
            "content": [
                {"type": "listItem", "content": [_paragraph(_text("first"))]},
                {"type": "listItem", "content": [_paragraph(_text("second"))]},
            ],
        },
        {"type": "blockquote", "content": [_paragraph(_text("A quote."))]},
        _paragraph(),
        {"type": "heading", "attrs": {"level": 4}, "content": [_text("Deep")]},
    ],
}


def test_detects_structured_tree():
    parsed = detect_format(json.dumps(STRUCTURED_DOC))
    assert isinstance(parsed, StructuredTree)
    assert parsed.format == ContentFormat.STRUCTURED


def test_json_without_doc_root_is_plain_text():
    parsed = detect_format('{"foo": 1}')
    assert isinstance(parsed, PlainText)
    assert parsed.paragraphs == ['{"foo": 1}']


def test_broken_json_is_plain_text():
    parsed = detect_format('{"type": "doc", "content": [')
    assert isinstance(parsed, PlainText)


def test_detects_markup_only_with_block_tags():
    assert isinstance(detect_format("<p>Hello</p>"), MarkupDocument)
    assert isinstance(detect_format("<b>bold only</b>"), PlainText)


def test_plain_text_example():
    blocks = build_blocks(detect_format("Hello world.\n\nSecond paragraph here."))
    assert [b.text for b in blocks] == ["Hello world.", "Second paragraph here."]
    assert [b.index for b in blocks] == [0, 1]
    assert all(b.kind == BlockKind.PARAGRAPH for b in blocks)


def test_unrecognised_input_degrades_to_single_block():
    raw = "Garbage <<>> text with {braces"
    blocks = build_blocks(detect_format(raw))
    assert len(blocks) == 1
    assert blocks[0].text == raw


def test_structured_tree_blocks():
    blocks = build_blocks(detect_format(json.dumps(STRUCTURED_DOC)))

    assert [b.index for b in blocks] == list(range(len(blocks)))
    assert [(b.kind, b.text) for b in blocks] == [
        (BlockKind.HEADING_1, "Chapter One"),
        (BlockKind.PARAGRAPH, "It was dark and stormy."),
        (BlockKind.LIST_ITEM, "first"),
        (BlockKind.LIST_ITEM, "second"),
        (BlockKind.QUOTE, "A quote."),
        (BlockKind.HEADING_2, "Deep"),
    ]
    assert blocks[1].spans == [InlineSpan(Mark.BOLD, 7, 11)]
    assert blocks[1].alignment == Alignment.CENTER
    assert blocks[2].group == blocks[3].group


def test_markup_blocks_follow_whitespace_rules():
    raw = "<h3>Title</h3>\n<p>Hello <em>big</em>\n   world</p><ul><li>a</li><li>b</li></ul><p>line one<br>line two</p>"
    blocks = build_blocks(detect_format(raw))

    assert [(b.kind, b.text) for b in blocks] == [
        (BlockKind.HEADING_2, "Title"),
        (BlockKind.PARAGRAPH, "Hello big world"),
        (BlockKind.LIST_ITEM, "a"),
        (BlockKind.LIST_ITEM, "b"),
        (BlockKind.PARAGRAPH, "line one\nline two"),
    ]
    assert blocks[1].spans == [InlineSpan(Mark.ITALIC, 6, 9)]


def test_markup_table_cells_become_blocks():
    raw = "<table><tr><th>Name</th><th>Age</th></tr><tr><td>Ann</td><td>31</td></tr></table>"
    blocks = build_blocks(detect_format(raw))

    assert [b.kind for b in blocks] == [
        BlockKind.TABLE_HEADER,
        BlockKind.TABLE_HEADER,
        BlockKind.TABLE_CELL,
        BlockKind.TABLE_CELL,
    ]
    assert [b.row for b in blocks] == [0, 0, 1, 1]
    markup = render_blocks(blocks).markup
    assert markup.startswith('<div class="table-wrapper"><table class="reader-table"><tr><th id="para-0"')
    assert markup.count("<tr>") == 2


def test_empty_content_is_a_state_not_an_error():
    content = ContentEngine().load(None)
    assert content.is_empty
    assert content.message == NO_CONTENT_MESSAGE
    assert content.rendered.markup == ""

    content = ContentEngine().load('{"type": "doc", "content": [{"type": "paragraph"}]}')
    assert content.format == ContentFormat.STRUCTURED
    assert content.is_empty


def test_render_addresses_every_block():
    blocks = build_blocks(detect_format("Hello world.\n\nSecond paragraph here."))
    rendered = render_blocks(blocks)

    assert rendered.markup == (
        '<p id="para-0" class="block block-paragraph" data-paragraph-index="0">Hello world.</p>'
        '<p id="para-1" class="block block-paragraph" data-paragraph-index="1">Second paragraph here.</p>'
    )
    assert rendered.element_ids == {0: "para-0", 1: "para-1"}


def test_render_preserves_emphasis_and_alignment():
    blocks = build_blocks(detect_format(json.dumps(STRUCTURED_DOC)))
    markup = render_blocks(blocks).markup

    assert (
        '<p id="para-1" class="block block-paragraph" data-paragraph-index="1" style="text-align: center;">'
        "It was <strong>dark</strong> and stormy.</p>"
    ) in markup
    assert '<ul><li id="para-2"' in markup
    assert '<blockquote id="para-4"' in markup


@pytest.mark.parametrize(
    "raw",
    [
        json.dumps(STRUCTURED_DOC),
        "<p>One &amp; <b>two <i>three</i></b></p><blockquote><p>four</p><p>five</p></blockquote>",
        "Plain <text> & more\nsoft break\n\nNext one.",
    ],
)
def test_rendered_text_matches_blocks(raw):
    blocks = build_blocks(detect_format(raw))
    texts = extract_block_texts(render_blocks(blocks).markup)
    assert texts == {b.index: b.text for b in blocks}


def test_activation_resolves_paragraph_index():
    blocks = build_blocks(detect_format("<p>Hello <b>there</b></p><p>Again</p>"))
    markup = render_blocks(blocks).markup
    assert resolve_activation(markup, "para-1") == 1
    assert resolve_activation(markup, "para-9") is None


def test_deeply_nested_json_degrades_to_plain_text():
    raw = '{"type": "doc", "content": ' + "[" * 100000 + "]" * 100000 + "}"

    content = ContentEngine().load(raw)
    assert content.format == ContentFormat.PLAIN_TEXT
    assert [b.text for b in content.blocks] == [raw]


def test_structured_nesting_too_deep_to_walk_degrades_to_plain_text():
    depth = 5000
    raw = (
        '{"type": "doc", "content": ['
        + '{"type": "blockquote", "content": [' * depth
        + '{"type": "paragraph", "content": [{"type": "text", "text": "deep"}]}'
        + "]}" * depth
        + "]}"
    )

    blocks = ContentEngine().canonicalize(raw)
    assert [b.text for b in blocks] == [raw]


def test_walker_recursion_falls_back_to_source_text(monkeypatch):
    from novel_reader.content import canonical

    def too_deep(self, nodes):
        raise RecursionError("maximum recursion depth exceeded")

    monkeypatch.setattr(canonical._StructuredWalker, "walk", too_deep)
    raw = json.dumps(STRUCTURED_DOC)
    blocks = build_blocks(detect_format(raw))
    assert [(b.kind, b.text) for b in blocks] == [(BlockKind.PARAGRAPH, raw)]


def test_structured_fields_with_wrong_types_are_tolerated():
    doc = {
        "type": "doc",
        "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": 42}, {"type": "text", "text": "kept"}]},
            {"type": "paragraph", "attrs": ["x"], "content": [_text("listed attrs")]},
            {"type": "heading", "attrs": "level-2", "content": [_text("Heading")]},
            {"type": "paragraph", "attrs": {"textAlign": 7}, "content": [{"type": "text", "text": "odd", "marks": "bold"}]},
        ],
    }

    blocks = ContentEngine().canonicalize(json.dumps(doc))
    assert [(b.kind, b.text) for b in blocks] == [
        (BlockKind.PARAGRAPH, "kept"),
        (BlockKind.PARAGRAPH, "listed attrs"),
        (BlockKind.HEADING_1, "Heading"),
        (BlockKind.PARAGRAPH, "odd"),
    ]
    assert blocks[1].alignment is None
    assert blocks[3].alignment is None
    assert blocks[3].spans == []


def test_nested_table_cells_are_emitted_once():
    raw = "<table><tr><td>outer <table><tr><td>inner</td></tr></table></td><td>next</td></tr></table>"
    blocks = build_blocks(detect_format(raw))

    assert [b.text for b in blocks] == ["outer", "next", "inner"]
    assert blocks[0].group == blocks[1].group != blocks[2].group
    assert sum(b.word_count for b in blocks) == 3


def test_table_sections_keep_row_order():
    raw = (
        "<table><thead><tr><th>Name</th></tr></thead>"
        "<tbody><tr><td>Ann</td></tr><tr><td>Bob</td></tr></tbody></table>"
    )
    blocks = build_blocks(detect_format(raw))

    assert [(b.kind, b.text, b.row) for b in blocks] == [
        (BlockKind.TABLE_HEADER, "Name", 0),
        (BlockKind.TABLE_CELL, "Ann", 1),
        (BlockKind.TABLE_CELL, "Bob", 2),
    ]
