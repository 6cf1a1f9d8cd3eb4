"""Tests for verification email templates."""

from learninghub.email.templates import (
    render_email_change_email,
    render_login_code_email,
    render_password_reset_email,
    render_verification_email,
)


class TestTemplates:
    def test_verification_contains_link_and_name(self) -> None:
        html, text = render_verification_email("Ana", "https://x.test/v?t=1", 60)

        assert "https://x.test/v?t=1" in text
        assert "Hi Ana" in text
        assert "1 hour" in text
        assert "Verify email" in html

    def test_html_escapes_name(self) -> None:
        html, _ = render_password_reset_email("<script>", "https://x.test/r", 30)

        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_link_query_is_escaped_in_html(self) -> None:
        html, _ = render_email_change_email("Ana", "https://x.test/c?a=1&b=2", 90)

        assert "https://x.test/c?a=1&amp;b=2" in html
        assert "90 minutes" in html

    def test_login_code(self) -> None:
        html, text = render_login_code_email("Ana", "012345", 10)

        assert "012345" in html
        assert "012345" in text
        assert "10 minutes" in text
