"""Tests for setting value sanitization."""

from blogdesk.core.sanitize import Sanitizer


class TestTextSanitization:
    """Tests for Sanitizer.sanitize_text."""

    def test_plain_text_untouched(self):
        """Test plain text only gets trimmed."""
        sanitizer = Sanitizer()

        assert sanitizer.sanitize_text("  Tom & Jerry's blog  ") == "Tom & Jerry's blog"

    def test_empty_input(self):
        """Test empty input stays empty."""
        assert Sanitizer().sanitize_text("") == ""

    def test_removes_script_blocks(self):
        """Test script blocks are removed with their contents."""
        result = Sanitizer().sanitize_text("Hi<script>alert('xss')</script>")

        assert result == "Hi"

    def test_removes_iframe_blocks(self):
        """Test iframes are removed with their contents."""
        result = Sanitizer().sanitize_text('<iframe src="https://evil.com">x</iframe>Text')

        assert result == "Text"

    def test_removes_script_schemes(self):
        """Test javascript: and vbscript: are stripped."""
        sanitizer = Sanitizer()

        assert "javascript:" not in sanitizer.sanitize_text("javascript:alert(1)")
        assert "vbscript:" not in sanitizer.sanitize_text("VBScript:msgbox(1)").lower()


class TestHTMLSanitization:
    """Tests for Sanitizer.sanitize_html."""

    def test_allows_safe_tags(self):
        """Test that safe tags are preserved."""
        result = Sanitizer().sanitize_html("<p>Hello <strong>world</strong></p>")

        assert "<p>" in result
        assert "<strong>" in result

    def test_strips_unknown_tags(self):
        """Test disallowed tags are removed but their text kept."""
        result = Sanitizer().sanitize_html("<h1>Title</h1><img src=x>")

        assert "<h1>" not in result
        assert "<img" not in result
        assert "Title" in result

    def test_removes_event_handlers(self):
        """Test that on* event handlers are removed."""
        result = Sanitizer().sanitize_html('<p onclick="alert(1)">Click me</p>')

        assert "onclick" not in result

    def test_removes_javascript_urls(self):
        """Test that javascript: URLs are removed from links."""
        result = Sanitizer().sanitize_html('<a href="javascript:alert(1)">Click</a>')

        assert "javascript:" not in result

    def test_allows_safe_links(self):
        """Test that safe links are preserved."""
        result = Sanitizer().sanitize_html('<a href="https://example.com">Link</a>')

        assert 'href="https://example.com"' in result
