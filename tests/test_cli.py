"""Tests for command-line dispatch and rendering."""

from unittest.mock import AsyncMock

import pytest
from typer.testing import CliRunner

from firecli.bulk import BulkSummary
from firecli.cli import app, render_document, rewrite_argv
from firecli.firecrawl import ScrapeDocument

runner = CliRunner()


@pytest.fixture(autouse=True)
def api_env(monkeypatch, tmp_path):
    monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-test")
    monkeypatch.delenv("FIRECRAWL_API_URL", raising=False)
    monkeypatch.setattr(
        "firecli.session_store.get_session_path", lambda: tmp_path / "browser-session.json"
    )


class TestRewriteArgv:
    """Tests for the URL and browser shorthands."""

    def test_url_becomes_scrape(self):
        assert rewrite_argv(["firecli", "https://example.com"]) == [
            "firecli",
            "scrape",
            "https://example.com",
        ]

    def test_bare_domain_becomes_scrape(self):
        assert rewrite_argv(["firecli", "example.com", "links"])[1:3] == ["scrape", "example.com"]

    def test_commands_untouched(self):
        argv = ["firecli", "map", "https://example.com"]
        assert rewrite_argv(argv) == argv

    def test_browser_shorthand(self):
        assert rewrite_argv(["firecli", "browser", "open https://example.com"]) == [
            "firecli",
            "browser",
            "quick",
            "open https://example.com",
        ]

    def test_browser_subcommands_untouched(self):
        for sub in ["launch-session", "execute", "list", "close"]:
            argv = ["firecli", "browser", sub]
            assert rewrite_argv(argv) == argv

    def test_options_untouched(self):
        argv = ["firecli", "browser", "--help"]
        assert rewrite_argv(argv) == argv


class TestRenderDocument:
    """Tests for single-page output rendering."""

    DOC = ScrapeDocument.from_payload(
        {"markdown": "# Hi", "links": ["https://a.test", "https://b.test"], "metadata": {"title": "Hi"}}
    )

    def test_single_text_format_is_raw(self):
        assert render_document(self.DOC, ["markdown"], as_json=False, pretty=False) == "# Hi"

    def test_links_one_per_line(self):
        assert render_document(self.DOC, ["links"], as_json=False, pretty=False) == "https://a.test\nhttps://b.test"

    def test_multiple_formats_are_json(self):
        rendered = render_document(self.DOC, ["markdown", "links"], as_json=False, pretty=False)
        assert rendered.startswith("{")
        assert '"markdown": "# Hi"' in rendered

    def test_json_flag(self):
        rendered = render_document(self.DOC, ["markdown"], as_json=True, pretty=True)
        assert rendered.startswith("{\n")


class TestCommands:
    """Tests for command wiring."""

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("FIRECRAWL_API_KEY")
        result = runner.invoke(app, ["map", "https://example.com"])
        assert result.exit_code == 1
        assert "No API key" in result.output

    def test_map_prints_urls(self, monkeypatch):
        mock_map = AsyncMock(return_value=["https://example.com/a", "https://example.com/b"])
        monkeypatch.setattr("firecli.cli._map", mock_map)

        result = runner.invoke(app, ["map", "example.com"])

        assert result.exit_code == 0
        assert "https://example.com/a\nhttps://example.com/b" in result.output
        assert mock_map.await_args.args[1] == "https://example.com"

    def test_scrape_all_exit_code(self, monkeypatch):
        mock_site = AsyncMock(return_value=BulkSummary(total=2, completed=2, errors=2))
        monkeypatch.setattr("firecli.cli._scrape_site", mock_site)

        result = runner.invoke(app, ["scrape", "https://example.com", "--all", "-y", "--limit", "2"])

        assert result.exit_code == 1
        all_options = mock_site.await_args.args[3]
        assert all_options.yes is True
        assert all_options.limit == 2

    def test_scrape_all_partial_failure_succeeds(self, monkeypatch):
        mock_site = AsyncMock(return_value=BulkSummary(total=2, completed=2, errors=1))
        monkeypatch.setattr("firecli.cli._scrape_site", mock_site)

        result = runner.invoke(app, ["scrape", "https://example.com", "--all", "-y"])

        assert result.exit_code == 0

    def test_execute_language_flags_are_exclusive(self):
        result = runner.invoke(app, ["browser", "execute", "--python", "--node", "1+1"])
        assert result.exit_code == 1
        assert "Only one of" in result.output

    def test_execute_without_session(self):
        result = runner.invoke(app, ["browser", "execute", "snapshot"])
        assert result.exit_code == 1
        assert "No active browser session" in result.output

    def test_list_invalid_status(self):
        result = runner.invoke(app, ["browser", "list", "running"])
        assert result.exit_code == 1
        assert "Invalid status" in result.output
