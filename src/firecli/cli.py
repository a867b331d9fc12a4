"""CLI entry point for firecli."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from firecli import __version__
from firecli.browser import BrowserSessionManager, ExecutionResult
from firecli.bulk import (
    AllScrapeOptions,
    BulkScrapeError,
    BulkScrapeOrchestrator,
    ScrapeOptions,
    execute_scrape,
)
from firecli.config import ClientConfig, ConfigError
from firecli.firecrawl import (
    FirecrawlClient,
    FirecrawlError,
    HtmlContent,
    ImagesContent,
    LinksContent,
    MarkdownContent,
    ScrapeDocument,
    ScreenshotContent,
    SummaryContent,
    wait_for_job,
)
from firecli.outputs import to_text, write_output
from firecli.session_store import NoActiveSessionError, SessionStore
from firecli.util import is_job_id, is_url, normalize_url, split_csv
from firecli.wizard import RichPrompter, run_wizard

app = typer.Typer(
    name="firecli",
    help="Firecrawl from the terminal: scrape, map, crawl, search, agent and cloud browsers.",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

browser_app = typer.Typer(
    help="Launch cloud browser sessions and run agent-browser, Playwright Python/JS or bash against them.",
    no_args_is_help=True,
)
app.add_typer(browser_app, name="browser")

BROWSER_SUBCOMMANDS = ("launch-session", "execute", "list", "close", "quick")
TOP_LEVEL_COMMANDS = ("scrape", "map", "search", "crawl", "agent", "status", "browser")

# Shared option declarations
API_KEY_OPTION = typer.Option(None, "--api-key", "-k", help="Firecrawl API key (or set FIRECRAWL_API_KEY)")
API_URL_OPTION = typer.Option(None, "--api-url", help="API URL (or set FIRECRAWL_API_URL)")
OUTPUT_OPTION = typer.Option(None, "--output", "-o", help="Output file path (default: stdout)")
JSON_OPTION = typer.Option(False, "--json", help="Output as JSON")
PRETTY_OPTION = typer.Option(False, "--pretty", help="Pretty print JSON output")
SESSION_OPTION = typer.Option(None, "--session", help="Session ID (default: session from last launch)")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"firecli version {__version__}")
        raise typer.Exit()


def fail(message: str, code: int = 1) -> NoReturn:
    """Report an error on the status stream and exit."""
    err_console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
    raise typer.Exit(code)


def resolve_config(api_key: Optional[str], api_url: Optional[str]) -> ClientConfig:
    try:
        return ClientConfig.resolve(api_key=api_key, api_url=api_url)
    except ConfigError as e:
        fail(str(e))


def render_document(document: ScrapeDocument, formats: list[str], as_json: bool, pretty: bool) -> Any:
    """Raw content for a single text format, otherwise the JSON payload."""
    if as_json or len(formats) != 1:
        return to_text(document.raw, pretty=pretty)

    content = document.get(formats[0])
    if isinstance(content, (MarkdownContent, SummaryContent)):
        return content.text
    if isinstance(content, HtmlContent):
        return content.best or ""
    if isinstance(content, LinksContent):
        return "\n".join(content.links)
    if isinstance(content, ImagesContent):
        return "\n".join(content.images)
    if isinstance(content, ScreenshotContent):
        return content.url
    return to_text(document.raw, pretty=pretty)


@app.callback()
def callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Firecrawl from the terminal."""
    pass


async def _scrape_one(config: ClientConfig, url: str, options: ScrapeOptions):
    async with FirecrawlClient(config) as client:
        return await execute_scrape(client, url, options)


async def _scrape_site(
    config: ClientConfig,
    url: str,
    options: ScrapeOptions,
    all_options: AllScrapeOptions,
):
    prompter = RichPrompter(err_console)
    async with FirecrawlClient(config) as client:
        orchestrator = BulkScrapeOrchestrator(
            client,
            console=err_console,
            wizard=lambda urls, opts, all_opts: run_wizard(urls, opts, all_opts, prompter),
            ask=prompter.ask,
        )
        return await orchestrator.run(url, options, all_options)


def do_scrape(
    url: str,
    options: ScrapeOptions,
    all_options: Optional[AllScrapeOptions],
    config: ClientConfig,
    output: Optional[str],
    as_json: bool,
    pretty: bool,
) -> None:
    """Execute the scrape operation."""
    if all_options is not None:
        try:
            summary = asyncio.run(_scrape_site(config, url, options, all_options))
        except BulkScrapeError as e:
            fail(str(e))
        raise typer.Exit(summary.exit_code)

    outcome = asyncio.run(_scrape_one(config, url, options))
    if not outcome.success or outcome.document is None:
        fail(outcome.error or "Unknown error")

    rendered = render_document(outcome.document, options.effective_formats(), as_json, pretty)
    write_output(rendered, output)


@app.command()
def scrape(
    url: Optional[str] = typer.Argument(None, help="URL to scrape"),
    positional_formats: Optional[list[str]] = typer.Argument(
        None, metavar="[FORMATS]...", help="Output format(s), e.g. markdown links screenshot"
    ),
    url_option: Optional[str] = typer.Option(None, "--url", "-u", help="URL to scrape (alternative to argument)"),
    format_: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        help="Comma-separated formats: markdown, html, rawHtml, links, images, screenshot, summary, json",
    ),
    html: bool = typer.Option(False, "--html", "-H", help="Shortcut for --format html"),
    summary: bool = typer.Option(False, "--summary", "-S", help="Shortcut for --format summary"),
    only_main_content: bool = typer.Option(False, "--only-main-content", help="Include only main content"),
    screenshot: bool = typer.Option(False, "--screenshot", help="Take a screenshot"),
    full_page_screenshot: bool = typer.Option(False, "--full-page-screenshot", help="Take a full page screenshot"),
    wait_for: Optional[int] = typer.Option(None, "--wait-for", help="Wait before scraping (ms)"),
    include_tags: Optional[str] = typer.Option(None, "--include-tags", help="Comma-separated tags to include"),
    exclude_tags: Optional[str] = typer.Option(None, "--exclude-tags", help="Comma-separated tags to exclude"),
    max_age: Optional[int] = typer.Option(None, "--max-age", help="Maximum age of cached content (ms)"),
    country: Optional[str] = typer.Option(None, "--country", help="ISO country code for geo-targeting"),
    languages: Optional[str] = typer.Option(None, "--languages", help="Comma-separated language codes"),
    all_: bool = typer.Option(False, "--all", help="Map the whole site and scrape every page into .firecrawl/"),
    limit: Optional[int] = typer.Option(None, "--limit", help="With --all: maximum pages to scrape"),
    yes: bool = typer.Option(False, "--yes", "-y", help="With --all: skip the confirmation prompt"),
    search: Optional[str] = typer.Option(None, "--search", help="With --all: search query to filter mapped URLs"),
    include_paths: Optional[str] = typer.Option(
        None, "--include-paths", help="With --all: comma-separated path prefixes to keep"
    ),
    exclude_paths: Optional[str] = typer.Option(
        None, "--exclude-paths", help="With --all: comma-separated path prefixes to drop"
    ),
    allow_subdomains: bool = typer.Option(False, "--allow-subdomains", help="With --all: include subdomains"),
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    output: Optional[str] = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
    pretty: bool = PRETTY_OPTION,
) -> None:
    """Scrape a URL, or a whole site with --all.

    Examples:
      firecli https://example.com
      firecli scrape https://example.com markdown links
      firecli scrape https://docs.example.com --all
      firecli scrape https://docs.example.com --all --include-paths /api -y
    """
    target = url or url_option
    if not target:
        fail("URL is required. Provide it as argument or use --url option.")
    target = normalize_url(target)

    if positional_formats:
        formats = list(positional_formats)
    elif html:
        formats = ["html"]
    elif summary:
        formats = ["summary"]
    else:
        formats = split_csv(format_)

    # Screenshot requested as a format is handled as the screenshot flag
    if "screenshot" in formats:
        formats.remove("screenshot")
        screenshot = True

    options = ScrapeOptions(
        formats=formats,
        only_main_content=True if only_main_content else None,
        screenshot=screenshot,
        full_page_screenshot=full_page_screenshot,
        wait_for=wait_for,
        include_tags=split_csv(include_tags),
        exclude_tags=split_csv(exclude_tags),
        max_age=max_age,
        country=country,
        languages=split_csv(languages),
    )

    all_options = None
    if all_:
        all_options = AllScrapeOptions(
            limit=limit,
            yes=yes,
            search=search,
            include_paths=split_csv(include_paths) or None,
            exclude_paths=split_csv(exclude_paths) or None,
            allow_subdomains=allow_subdomains,
        )

    do_scrape(
        url=target,
        options=options,
        all_options=all_options,
        config=resolve_config(api_key, api_url),
        output=output,
        as_json=as_json,
        pretty=pretty,
    )


async def _map(config: ClientConfig, url: str, **kwargs: Any) -> list[str]:
    async with FirecrawlClient(config) as client:
        return await client.map(url, **kwargs)


@app.command("map")
def map_(
    url: str = typer.Argument(..., help="Site URL to map"),
    search: Optional[str] = typer.Option(None, "--search", help="Search query to filter URLs"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Maximum URLs to discover"),
    include_subdomains: bool = typer.Option(False, "--include-subdomains", help="Include subdomains"),
    ignore_query_parameters: bool = typer.Option(
        False, "--ignore-query-parameters", help="Ignore query parameters"
    ),
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    output: Optional[str] = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
    pretty: bool = PRETTY_OPTION,
) -> None:
    """List the URLs of a site, one per line."""
    config = resolve_config(api_key, api_url)
    try:
        urls = asyncio.run(
            _map(
                config,
                normalize_url(url),
                search=search,
                limit=limit,
                include_subdomains=include_subdomains or None,
                ignore_query_parameters=ignore_query_parameters or None,
            )
        )
    except FirecrawlError as e:
        fail(str(e))

    if as_json:
        write_output({"success": True, "data": {"links": urls}}, output, pretty=pretty)
    else:
        write_output("\n".join(urls), output)


async def _search(config: ClientConfig, query: str, **kwargs: Any) -> dict[str, Any]:
    async with FirecrawlClient(config) as client:
        return await client.search(query, **kwargs)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Maximum results"),
    sources: Optional[str] = typer.Option(None, "--sources", help="Comma-separated sources: web, news, images"),
    scrape_: bool = typer.Option(False, "--scrape", help="Scrape each result"),
    scrape_formats: Optional[str] = typer.Option(
        None, "--scrape-formats", help="Comma-separated formats when scraping (default: markdown)"
    ),
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    output: Optional[str] = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
    pretty: bool = PRETTY_OPTION,
) -> None:
    """Search the web, optionally scraping the results."""
    config = resolve_config(api_key, api_url)
    formats = (split_csv(scrape_formats) or ["markdown"]) if scrape_ else None
    try:
        data = asyncio.run(
            _search(config, query, limit=limit, sources=split_csv(sources) or None, scrape_formats=formats)
        )
    except FirecrawlError as e:
        fail(str(e))

    if as_json:
        write_output({"success": True, "data": data}, output, pretty=pretty)
        return

    lines: list[str] = []
    for results in data.values():
        if not isinstance(results, list):
            continue
        for item in results:
            lines.append(item.get("title") or item.get("url", ""))
            lines.append(f"  {item.get('url', '')}")
            if item.get("description"):
                lines.append(f"  {item['description']}")
            lines.append("")
    write_output("\n".join(lines).rstrip() or "No results.", output)


def job_output(job: Any) -> dict[str, Any]:
    data = {k: v for k, v in vars(job).items() if v not in (None, [])}
    data["id"] = data.pop("job_id")
    return data


async def _crawl(
    config: ClientConfig,
    target: str,
    check_status: bool,
    wait: bool,
    poll_interval: float,
    timeout: Optional[float],
    progress: bool,
    **kwargs: Any,
):
    async with FirecrawlClient(config) as client:
        if check_status:
            return await client.get_crawl_status(target)

        job = await client.start_crawl(target, **kwargs)
        if not wait:
            return job

        err_console.print(f"[cyan]Started crawl:[/cyan] {job.job_id}")

        def on_update(status: Any) -> None:
            if progress:
                err_console.print(f"[dim]Crawling... {status.completed}/{status.total or '?'}[/dim]")

        return await wait_for_job(
            lambda: client.get_crawl_status(job.job_id),
            poll_interval=poll_interval,
            timeout=timeout,
            on_update=on_update,
        )


@app.command()
def crawl(
    url_or_job_id: str = typer.Argument(..., help="Starting URL, or a crawl job ID to check"),
    check_status: bool = typer.Option(False, "--status", help="Check status of an existing crawl job"),
    wait: bool = typer.Option(False, "--wait", help="Wait for the crawl to finish"),
    poll_interval: float = typer.Option(5.0, "--poll-interval", help="Seconds between status polls"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Give up waiting after N seconds"),
    progress: bool = typer.Option(False, "--progress", help="Show progress while waiting"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Maximum pages to crawl"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Maximum discovery depth"),
    include_paths: Optional[str] = typer.Option(None, "--include-paths", help="Comma-separated paths to include"),
    exclude_paths: Optional[str] = typer.Option(None, "--exclude-paths", help="Comma-separated paths to exclude"),
    crawl_entire_domain: bool = typer.Option(False, "--crawl-entire-domain", help="Crawl entire domain"),
    allow_external_links: bool = typer.Option(False, "--allow-external-links", help="Follow external links"),
    allow_subdomains: bool = typer.Option(False, "--allow-subdomains", help="Follow subdomain links"),
    delay: Optional[float] = typer.Option(None, "--delay", help="Delay between requests on the server side"),
    max_concurrency: Optional[int] = typer.Option(None, "--max-concurrency", help="Maximum concurrent scrapes"),
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    output: Optional[str] = OUTPUT_OPTION,
    pretty: bool = PRETTY_OPTION,
) -> None:
    """Start a crawl, or check on one by job ID."""
    config = resolve_config(api_key, api_url)
    check = check_status or is_job_id(url_or_job_id)
    target = url_or_job_id if check else normalize_url(url_or_job_id)
    try:
        job = asyncio.run(
            _crawl(
                config,
                target,
                check_status=check,
                wait=wait,
                poll_interval=poll_interval,
                timeout=timeout,
                progress=progress,
                limit=limit,
                max_depth=max_depth,
                include_paths=split_csv(include_paths) or None,
                exclude_paths=split_csv(exclude_paths) or None,
                crawl_entire_domain=crawl_entire_domain,
                allow_external_links=allow_external_links,
                allow_subdomains=allow_subdomains,
                delay=delay,
                max_concurrency=max_concurrency,
            )
        )
    except FirecrawlError as e:
        fail(str(e))

    write_output({"success": True, "data": job_output(job)}, output, pretty=pretty)


async def _agent(
    config: ClientConfig,
    target: str,
    check_status: bool,
    wait: bool,
    poll_interval: float,
    timeout: Optional[float],
    **kwargs: Any,
):
    async with FirecrawlClient(config) as client:
        if check_status:
            return await client.get_agent_status(target)

        job = await client.start_agent(target, **kwargs)
        err_console.print(f"[cyan]Agent started[/cyan] (Job ID: {job.job_id})")
        if not wait:
            return job

        with err_console.status(f"Agent running... (Job ID: {job.job_id})"):
            return await wait_for_job(
                lambda: client.get_agent_status(job.job_id),
                poll_interval=poll_interval,
                timeout=timeout,
            )


def format_agent_status(job: Any) -> str:
    lines = [f"Job ID: {job.job_id}", f"Status: {job.status}"]
    if job.credits_used is not None:
        lines.append(f"Credits Used: {job.credits_used}")
    if job.expires_at:
        lines.append(f"Expires: {job.expires_at}")
    if job.data:
        lines.extend(["", "Result:", json.dumps(job.data, indent=2)])
    return "\n".join(lines)


@app.command()
def agent(
    prompt_or_job_id: str = typer.Argument(..., help="What to find, or an agent job ID to check"),
    urls: Optional[str] = typer.Option(None, "--urls", help="Comma-separated URLs to focus on"),
    model: Optional[str] = typer.Option(None, "--model", help="Agent model"),
    schema: Optional[str] = typer.Option(None, "--schema", help="JSON schema for structured output"),
    schema_file: Optional[Path] = typer.Option(None, "--schema-file", help="Path to a JSON schema file"),
    max_credits: Optional[int] = typer.Option(None, "--max-credits", help="Maximum credits to spend"),
    check_status: bool = typer.Option(False, "--status", help="Check status of an existing agent job"),
    wait: bool = typer.Option(False, "--wait", help="Wait for the agent to finish"),
    poll_interval: float = typer.Option(5.0, "--poll-interval", help="Seconds between status polls"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Give up waiting after N seconds"),
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    output: Optional[str] = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
    pretty: bool = PRETTY_OPTION,
) -> None:
    """Run an agent that browses and extracts data for a prompt."""
    config = resolve_config(api_key, api_url)

    schema_data = None
    try:
        if schema_file:
            schema_data = json.loads(schema_file.read_text(encoding="utf-8"))
        elif schema:
            schema_data = json.loads(schema)
    except FileNotFoundError:
        fail(f"Schema file not found: {schema_file}")
    except json.JSONDecodeError:
        fail(f"Invalid JSON in schema: {schema_file or schema}")

    check = check_status or is_job_id(prompt_or_job_id)
    kwargs: dict[str, Any] = {}
    if not check:
        kwargs = dict(urls=split_csv(urls) or None, schema=schema_data, model=model, max_credits=max_credits)

    try:
        job = asyncio.run(
            _agent(
                config,
                prompt_or_job_id,
                check_status=check,
                wait=wait,
                poll_interval=poll_interval,
                timeout=timeout,
                **kwargs,
            )
        )
    except FirecrawlError as e:
        fail(str(e))

    if as_json or not (check or wait):
        write_output({"success": True, "data": job_output(job)}, output, pretty=pretty)
    else:
        write_output(format_agent_status(job), output)


async def _status(config: ClientConfig):
    async with FirecrawlClient(config) as client:
        return await client.get_status()


@app.command()
def status(
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
) -> None:
    """Show remaining credits and the concurrency limit."""
    config = resolve_config(api_key, api_url)
    account = asyncio.run(_status(config))

    table = Table(title="Firecrawl Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Version", __version__)
    table.add_row("API URL", config.api_url)
    table.add_row(
        "Credits remaining",
        f"{account.credits_remaining:,}" if account.credits_remaining is not None else "[dim](unknown)[/dim]",
    )
    table.add_row(
        "Max concurrency",
        str(account.max_concurrency) if account.max_concurrency else "[dim](unknown)[/dim]",
    )
    console.print(table)


# Browser commands


def browser_manager(client: FirecrawlClient) -> BrowserSessionManager:
    return BrowserSessionManager(client, SessionStore())


def report_execution(result: ExecutionResult, output: Optional[str], as_json: bool) -> None:
    """Write an execution result, or fail with its error."""
    if not result.success:
        if result.exit_code is not None:
            # Captured output has already been echoed
            raise typer.Exit(1)
        fail(result.error or "Unknown error")

    if result.error:
        # Execution succeeded but the code raised
        err_console.print(f"Code error: {escape(result.error)}", highlight=False)

    if as_json:
        data = result.raw or {"success": True, "result": result.result, "exitCode": result.exit_code}
        write_output(data, output, pretty=True)
    elif result.result:
        write_output(result.result, output)


async def _launch(
    config: ClientConfig,
    ttl: Optional[int],
    ttl_inactivity: Optional[int],
    stream: Optional[bool],
):
    async with FirecrawlClient(config) as client:
        return await browser_manager(client).launch(ttl=ttl, inactivity_ttl=ttl_inactivity, stream=stream)


@browser_app.command("launch-session")
def browser_launch(
    ttl: Optional[int] = typer.Option(None, "--ttl", help="Total session TTL in seconds (default: 300)"),
    ttl_inactivity: Optional[int] = typer.Option(None, "--ttl-inactivity", help="Inactivity TTL in seconds"),
    stream: bool = typer.Option(False, "--stream", help="Enable live view streaming"),
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    output: Optional[str] = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Launch a new cloud browser session (saved for later commands)."""
    config = resolve_config(api_key, api_url)
    result = asyncio.run(_launch(config, ttl, ttl_inactivity, stream or None))
    if not result.success or result.session is None:
        fail(result.error or "Unknown error")

    if as_json:
        write_output(result.raw, output, pretty=True)
        return

    lines = [f"Session ID:    {result.session.id}", f"CDP URL:       {result.session.cdp_url}"]
    if result.live_view_url:
        lines.append(f"Live View URL: {result.live_view_url}")
    write_output("\n".join(lines), output)


async def _execute(
    config: ClientConfig,
    code: str,
    language: str,
    session: Optional[str],
    raw_bash: bool,
):
    async with FirecrawlClient(config) as client:
        return await browser_manager(client).execute(code, language=language, session_id=session, raw_bash=raw_bash)


@browser_app.command("execute")
def browser_execute(
    code: str = typer.Argument(..., help="agent-browser command (default) or Playwright code"),
    python: bool = typer.Option(False, "--python", help="Execute as Playwright Python code"),
    node: bool = typer.Option(False, "--node", help="Execute as Playwright JavaScript code"),
    bash: bool = typer.Option(False, "--bash", help="Execute arbitrary bash with CDP_URL and SESSION_ID set"),
    session: Optional[str] = SESSION_OPTION,
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    output: Optional[str] = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Execute agent-browser commands (default), or Playwright Python/JS in a session.

    Examples:
      firecli browser execute "open https://example.com"
      firecli browser execute "snapshot"
      firecli browser execute --bash 'ls /tmp'
      firecli browser execute --python 'print(await page.title())'
      firecli browser execute --session <id> "click @e5"
    """
    if sum([python, node, bash]) > 1:
        fail("Only one of --python, --node, or --bash can be specified")
    language = "python" if python else "node" if node else "bash"

    config = resolve_config(api_key, api_url)
    try:
        result = asyncio.run(_execute(config, code, language, session, raw_bash=bash))
    except NoActiveSessionError as e:
        fail(str(e))
    report_execution(result, output, as_json)


async def _list(config: ClientConfig, status: Optional[str]):
    async with FirecrawlClient(config) as client:
        return await browser_manager(client).list(status)


@browser_app.command("list")
def browser_list(
    status: Optional[str] = typer.Argument(None, help="Filter: active or destroyed"),
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    output: Optional[str] = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """List browser sessions."""
    config = resolve_config(api_key, api_url)
    try:
        result = asyncio.run(_list(config, status))
    except ValueError as e:
        fail(str(e))
    if not result.success:
        fail(result.error or "Unknown error")

    if as_json:
        write_output(result.raw, output, pretty=True)
    elif not result.sessions:
        write_output("No active browser sessions.", output)
    else:
        lines = []
        for s in result.sessions:
            created = f"created {s['createdAt']}" if s.get("createdAt") else ""
            lines.append(f"{s.get('id')}  {s.get('status', '')}  {created}".rstrip())
        write_output("\n".join(lines), output)


async def _close(config: ClientConfig, session: Optional[str]):
    async with FirecrawlClient(config) as client:
        return await browser_manager(client).close(session)


@browser_app.command("close")
def browser_close(
    session: Optional[str] = SESSION_OPTION,
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    output: Optional[str] = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Close a browser session."""
    config = resolve_config(api_key, api_url)
    try:
        result = asyncio.run(_close(config, session))
    except NoActiveSessionError as e:
        fail(str(e))
    if not result.success:
        fail(result.error or "Unknown error")

    err_console.print(f"Session closed ({result.session_id})", highlight=False)
    if as_json:
        write_output({"success": True, "id": result.session_id}, output, pretty=True)


async def _quick(config: ClientConfig, code: str):
    async with FirecrawlClient(config) as client:
        return await browser_manager(client).quick_execute(code)


@browser_app.command("quick", hidden=True)
def browser_quick(
    code: str = typer.Argument(..., help="agent-browser command"),
    api_key: Optional[str] = API_KEY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    output: Optional[str] = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Run an agent-browser command, launching a session if needed."""
    config = resolve_config(api_key, api_url)
    result = asyncio.run(_quick(config, code))
    report_execution(result, output, as_json)


def rewrite_argv(argv: list[str]) -> list[str]:
    """Expand the shorthands `firecli <url>` and `firecli browser "<command>"`."""
    args = list(argv)
    if len(args) > 1:
        first = args[1]
        if not first.startswith("-") and first not in TOP_LEVEL_COMMANDS and is_url(first):
            args.insert(1, "scrape")
        elif first == "browser" and len(args) > 2:
            second = args[2]
            if not second.startswith("-") and second not in BROWSER_SUBCOMMANDS:
                args.insert(2, "quick")
    return args


def main() -> None:
    """Main entry point that handles the URL and browser shorthands before dispatch."""
    sys.argv = rewrite_argv(sys.argv)
    app()


if __name__ == "__main__":
    main()
