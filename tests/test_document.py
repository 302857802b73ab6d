import logging

import pytest

from composekit.document import ALLOWED_ACTIONS, Document
from composekit.selectors import translate

PAGE = (
    "<!DOCTYPE html><html><head><title>T</title></head>"
    '<body><div id="c">lead<p>x</p>tail</div><span class="s">y</span></body></html>'
)


def _doc() -> Document:
    return Document.from_html(PAGE)


def test_new_document_is_empty_html5_shell():
    out = Document().serialize()
    assert out.startswith("<!DOCTYPE html>")
    assert "<html></html>" in out


def test_append_inserts_as_last_children():
    doc = _doc()
    assert doc.mutate("append", translate("#c"), "<b>1</b><i>2</i>") == 1
    assert '<div id="c">lead<p>x</p>tail<b>1</b><i>2</i></div>' in doc.serialize()


def test_prepend_keeps_existing_leading_text_after_new_nodes():
    doc = _doc()
    assert doc.prepend("#c", "<b>1</b>") == 1
    assert '<div id="c"><b>1</b>lead<p>x</p>tail</div>' in doc.serialize()


def test_prepend_text_only_fragment():
    doc = _doc()
    doc.prepend("#c", "hi")
    assert '<div id="c">hilead<p>x</p>' in doc.serialize()


def test_before_and_after_insert_siblings():
    doc = _doc()
    doc.before("p", "<hr>")
    doc.after("p", "<em>after</em>")
    assert '<div id="c">lead<hr><p>x</p><em>after</em>tail</div>' in doc.serialize()


def test_after_last_child_keeps_parent_order():
    doc = Document.from_html("<html><body><ul><li>a</li><li>b</li></ul></body></html>")
    doc.after("ul li:first-child", "<li>a2</li>")
    assert "<ul><li>a</li><li>a2</li><li>b</li></ul>" in doc.serialize()


def test_replace_swaps_node_and_keeps_tail():
    doc = _doc()
    assert doc.replace("p", "<h2>new</h2>") == 1
    assert '<div id="c">lead<h2>new</h2>tail</div>' in doc.serialize()


def test_replace_on_root_rebuilds_document():
    doc = Document()
    count = doc.mutate("replace", translate("html"), PAGE)
    assert count == 1
    out = doc.serialize()
    assert out.startswith("<!DOCTYPE html>")
    assert "<title>T</title>" in out


def test_replace_on_root_keeps_doctype_when_content_has_none():
    doc = Document()
    doc.mutate("replace", "//html", "<p>fragment</p>")
    out = doc.serialize()
    assert out.startswith("<!DOCTYPE html>")
    assert "<p>fragment</p>" in out


def test_mutation_applies_to_every_match():
    doc = Document.from_html("<html><body><p>a</p><p>b</p></body></html>")
    assert doc.append("p", "!") == 2
    assert "<p>a!</p><p>b!</p>" in doc.serialize()


def test_empty_content_is_a_no_op():
    doc = _doc()
    before = doc.serialize()
    assert doc.mutate("append", "//body", "") == 0
    assert doc.serialize() == before


def test_selector_miss_returns_zero_and_leaves_document_unchanged():
    doc = _doc()
    before = doc.serialize()
    assert doc.append("#missing", "<b>x</b>") == 0
    assert doc.serialize() == before


def test_invalid_action_raises():
    doc = _doc()
    with pytest.raises(ValueError, match="Invalid document action"):
        doc.mutate("explode", "//body", "<b>x</b>")
    assert "explode" not in ALLOWED_ACTIONS


def test_invalid_xpath_matches_nothing(caplog):
    doc = _doc()
    with caplog.at_level(logging.WARNING, logger="composekit.document"):
        assert doc.query("//*[") == []
        assert doc.mutate("append", "//*[", "<b>x</b>") == 0
    assert "invalid XPath" in caplog.text


def test_remove_drops_matching_nodes_but_keeps_tail_text():
    doc = _doc()
    assert doc.delete("p") == 1
    assert '<div id="c">leadtail</div>' in doc.serialize()


def test_remove_never_drops_the_root():
    doc = _doc()
    assert doc.remove("//html") == 0
    assert "<title>T</title>" in doc.serialize()


def test_serialize_round_trips_and_has_no_xml_declaration():
    doc = _doc()
    first = doc.serialize()
    again = Document.from_html(first).serialize()
    assert first == again
    assert "<?xml" not in first


def test_non_ascii_content_survives_mutation():
    doc = _doc()
    doc.append("#c", "<p>café → 日本</p>")
    assert "café → 日本" in doc.serialize()


def test_load_rejects_non_strings():
    with pytest.raises(TypeError, match="expects a string"):
        Document().load(b"<html></html>")  # type: ignore[arg-type]


def test_comment_only_input_seeds_the_minimal_document():
    out = Document.from_html("<!-- only a comment -->").serialize()
    assert out.startswith("<!DOCTYPE html>")
    assert "<html></html>" in out


def test_doctype_only_input_keeps_its_doctype():
    doc = Document.from_html('<!DOCTYPE html PUBLIC "-//W3C//DTD HTML 4.01//EN">')
    assert doc.serialize().startswith('<!DOCTYPE html PUBLIC "-//W3C//DTD HTML 4.01//EN">')
    assert doc.query("//html")


def test_root_replace_with_elementless_content_resets_document():
    doc = _doc()
    assert doc.mutate("replace", "//html", "<!DOCTYPE html>") == 1
    out = doc.serialize()
    assert "<title>T</title>" not in out
    assert "<html></html>" in out


def test_replace_counts_only_nodes_still_in_the_document():
    doc = Document.from_html('<html><body><div id="a"><div id="b">x</div></div><div id="c">y</div></body></html>')
    assert doc.replace("div", "<p>new</p>") == 2
    assert "<body><p>new</p><p>new</p></body>" in doc.serialize()


def test_remove_counts_only_nodes_still_in_the_document():
    doc = Document.from_html("<html><body><div><div>x</div></div></body></html>")
    assert doc.delete("div") == 1
    assert "<div>" not in doc.serialize()


def test_css_examples_match_only_intended_nodes():
    doc = Document.from_html(
        "<html><body>"
        '<div id="sidebar"><a href="http://a.example">ext</a><a href="/local">loc</a></div>'
        '<a href="http://b.example">outside</a>'
        "</body></html>"
    )
    assert [a.text for a in doc.select("#sidebar a")] == ["ext", "loc"]
    assert [a.text for a in doc.select("a[href^=http://]")] == ["ext", "outside"]
    assert [a.text for a in doc.select("#sidebar a[href^=http://]")] == ["ext"]
