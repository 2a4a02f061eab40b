from quire.markup import MarkdownConverter, generate_heading_id, pygments_css
from quire.protocols import MarkupConverter


def test_paragraph_wrapping():
    assert MarkdownConverter().convert("hello") == "<p>hello</p>\n"


def test_conversion_is_deterministic():
    source = "# Title\n\n## Title\n\nSome `code` and a [link](https://example.com).\n"
    converter = MarkdownConverter()
    first = converter.convert(source)
    second = converter.convert(source)
    assert first == second
    assert '<h1 id="title">Title</h1>' in first
    assert '<h2 id="title-1">Title</h2>' in first


def test_code_blocks_are_highlighted_or_escaped():
    converter = MarkdownConverter()
    rust = converter.convert("```rust\nfn main() {}\n```\n")
    assert 'class="highlight"' in rust

    unknown = converter.convert("```nosuchlang\na < b\n```\n")
    assert '<code class="language-nosuchlang">' in unknown
    assert "a &lt; b" in unknown

    plain = converter.convert("```\n<tag>\n```\n")
    assert "<pre><code>&lt;tag&gt;" in plain


def test_raw_html_passes_through():
    html = MarkdownConverter().convert('<div class="note">kept</div>\n')
    assert '<div class="note">kept</div>' in html


def test_heading_ids():
    assert generate_heading_id("Hello, World!") == "hello-world"
    assert generate_heading_id("<code>Pin</code> and Unpin") == "pin-and-unpin"


def test_converter_satisfies_protocol():
    assert isinstance(MarkdownConverter(), MarkupConverter)
    assert ".highlight" in pygments_css()
