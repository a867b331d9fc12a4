"""Interactive option selection for whole-site scrapes."""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol, Sequence

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from firecli.bulk import (
    DEFAULT_FORMAT,
    AllScrapeOptions,
    ScrapeOptions,
    WizardResult,
    filter_urls,
    get_top_paths,
)

# (label, value, checked by default)
Choice = tuple[str, str, bool]

FORMAT_CHOICES: list[Choice] = [
    ("markdown", "markdown", True),
    ("html", "html", False),
    ("links", "links", False),
    ("images", "images", False),
    ("summary", "summary", False),
    ("screenshot", "screenshot", False),
    ("full page screenshot", "fullPageScreenshot", False),
]


class Prompter(Protocol):
    def checkbox(self, message: str, choices: Sequence[Choice]) -> list[str]: ...

    def confirm(self, message: str, default: bool = False) -> bool: ...


class RichPrompter:
    """Terminal prompts on the status console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def checkbox(self, message: str, choices: Sequence[Choice]) -> list[str]:
        """Multi-select by number; enter keeps the pre-checked choices."""
        self.console.print(f"[bold]{escape(message)}[/bold]")
        for i, (label, _, checked) in enumerate(choices, start=1):
            mark = "x" if checked else " "
            self.console.print(f"  {i:>2}. \\[{mark}] {escape(label)}", highlight=False)

        defaults = ",".join(str(i) for i, c in enumerate(choices, start=1) if c[2])
        answer = Prompt.ask(
            "Numbers, comma-separated",
            default=defaults,
            show_default=bool(defaults),
            console=self.console,
        )

        selected: list[str] = []
        for token in answer.replace(" ", ",").split(","):
            if token.isdigit() and 1 <= int(token) <= len(choices):
                value = choices[int(token) - 1][1]
                if value not in selected:
                    selected.append(value)
        return selected

    def confirm(self, message: str, default: bool = False) -> bool:
        return Confirm.ask(message, default=default, console=self.console)

    def ask(self, message: str) -> str:
        return Prompt.ask(message, default="", show_default=False, console=self.console)


def run_wizard(
    urls: list[str],
    options: ScrapeOptions,
    all_options: AllScrapeOptions,
    prompter: Prompter,
) -> WizardResult:
    """Ask for formats, main-content mode and a path filter.

    Args:
        urls: Discovered URLs (unfiltered)
        options: Scrape options from flags (all defaults)
        all_options: Site options from flags (all defaults)
        prompter: Source of answers

    Returns:
        The chosen options and the URLs that survive the path filter
    """
    # 1. Formats
    formats: list[str] = []
    for choice in prompter.checkbox(
        "Which formats? (enter to confirm)", FORMAT_CHOICES
    ):
        if choice == "fullPageScreenshot":
            options = replace(options, full_page_screenshot=True)
        elif choice == "screenshot":
            options = replace(options, screenshot=True)
        else:
            formats.append(choice)

    if not formats and not options.screenshot and not options.full_page_screenshot:
        formats.append(DEFAULT_FORMAT)
    options = replace(options, formats=formats)

    # 2. Main content only
    if prompter.confirm("Only main content?", default=False):
        options = replace(options, only_main_content=True)

    # 3. Path filter, only when there is more than one section to choose from
    top_paths = get_top_paths(urls)
    if len(top_paths) > 1:
        chosen = prompter.checkbox(
            "Filter to specific paths? (enter to skip)",
            [(f"{path} ({count} pages)", path, False) for path, count in top_paths],
        )
        if chosen:
            all_options = replace(all_options, include_paths=chosen)
            urls = filter_urls(urls, include_paths=chosen)

    return WizardResult(options=options, all_options=all_options, urls=urls)
