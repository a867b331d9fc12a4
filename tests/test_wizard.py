"""Tests for the interactive scrape wizard."""

import io

from rich.console import Console

from firecli.bulk import AllScrapeOptions, ScrapeOptions
from firecli.wizard import FORMAT_CHOICES, RichPrompter, run_wizard


class ScriptedPrompter:
    """Answers prompts from pre-recorded lists."""

    def __init__(self, checkboxes, confirms):
        self.checkboxes = list(checkboxes)
        self.confirms = list(confirms)
        self.messages = []

    def checkbox(self, message, choices):
        self.messages.append(message)
        return self.checkboxes.pop(0)

    def confirm(self, message, default=False):
        self.messages.append(message)
        return self.confirms.pop(0)


URLS = [
    "https://example.com/docs/a",
    "https://example.com/docs/b",
    "https://example.com/blog/x",
]


class TestRunWizard:
    """Tests for run_wizard."""

    def test_formats_and_main_content(self):
        prompter = ScriptedPrompter([["markdown", "links"], []], [True])

        result = run_wizard(URLS, ScrapeOptions(), AllScrapeOptions(), prompter)

        assert result.options.formats == ["markdown", "links"]
        assert result.options.only_main_content is True
        assert result.urls == URLS

    def test_screenshot_choices_become_flags(self):
        prompter = ScriptedPrompter([["fullPageScreenshot"], []], [False])

        result = run_wizard(URLS, ScrapeOptions(), AllScrapeOptions(), prompter)

        assert result.options.full_page_screenshot is True
        assert result.options.formats == []
        assert result.options.effective_formats() == ["screenshot"]

    def test_nothing_selected_falls_back_to_markdown(self):
        prompter = ScriptedPrompter([[], []], [False])

        result = run_wizard(URLS, ScrapeOptions(), AllScrapeOptions(), prompter)

        assert result.options.formats == ["markdown"]
        assert result.options.only_main_content is None

    def test_path_filter(self):
        prompter = ScriptedPrompter([["markdown"], ["/blog"]], [False])

        result = run_wizard(URLS, ScrapeOptions(), AllScrapeOptions(), prompter)

        assert result.urls == ["https://example.com/blog/x"]
        assert result.all_options.include_paths == ["/blog"]

    def test_path_filter_skipped_for_single_section(self):
        urls = ["https://example.com/docs/a", "https://example.com/docs/b"]
        prompter = ScriptedPrompter([["markdown"]], [False])

        result = run_wizard(urls, ScrapeOptions(), AllScrapeOptions(), prompter)

        assert len(prompter.messages) == 2
        assert result.urls == urls


class TestRichPrompter:
    """Tests for RichPrompter.checkbox."""

    def _prompter(self, monkeypatch, answer):
        monkeypatch.setattr("firecli.wizard.Prompt.ask", lambda *args, **kwargs: answer)
        return RichPrompter(Console(file=io.StringIO()))

    def test_numbers_select_values(self, monkeypatch):
        prompter = self._prompter(monkeypatch, "2, 3")
        assert prompter.checkbox("Formats?", FORMAT_CHOICES) == ["html", "links"]

    def test_out_of_range_and_duplicates_ignored(self, monkeypatch):
        prompter = self._prompter(monkeypatch, "1,1,99,x")
        assert prompter.checkbox("Formats?", FORMAT_CHOICES) == ["markdown"]

    def test_empty_answer_selects_nothing(self, monkeypatch):
        prompter = self._prompter(monkeypatch, "")
        assert prompter.checkbox("Paths?", [("/docs (2 pages)", "/docs", False)]) == []
