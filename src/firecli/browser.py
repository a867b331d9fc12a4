"""Remote browser session lifecycle: launch, execute, list, close."""

from __future__ import annotations

import asyncio
import os
import re
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, TextIO

from firecli.firecrawl import FirecrawlClient, FirecrawlError
from firecli.session_store import BrowserSession, NoActiveSessionError, SessionStore

# CLI pre-installed in every remote sandbox
SANDBOX_TOOL = "agent-browser"
CDP_FLAG = "--cdp"

LANGUAGES = ("python", "node", "bash")
LIST_STATUSES = ("active", "destroyed")

EXPIRED_STATUS_CODES = {404, 410}
EXPIRED_PATTERN = re.compile(r"destroyed|expired|not found|gone|session.*closed", re.IGNORECASE)


def is_session_expired_error(error: BaseException) -> bool:
    """Check if an execute error means the remote session no longer exists."""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    if status in EXPIRED_STATUS_CODES:
        return True
    return bool(EXPIRED_PATTERN.search(str(error)))


def prepare_command(code: str, raw_bash: bool = False) -> str:
    """Prefix the sandbox tool so `open <url>` works without typing it.

    Args:
        code: Command as typed by the user
        raw_bash: True when the user asked for arbitrary bash (--bash)
    """
    if raw_bash or code.startswith(SANDBOX_TOOL):
        return code
    return f"{SANDBOX_TOOL} {code}"


def inject_cdp_flag(command: str, cdp_url: str) -> str:
    """Point a sandbox-tool command at the session's CDP endpoint.

    The flag goes right after `agent-browser <subcommand>` so positional
    arguments of the subcommand keep their order.
    """
    if not command.startswith(SANDBOX_TOOL) or CDP_FLAG in command:
        return command
    parts = command.split(" ")
    insert_at = min(2, len(parts))
    parts[insert_at:insert_at] = [CDP_FLAG, f"'{cdp_url}'"]
    return " ".join(parts)


@dataclass
class LaunchResult:
    success: bool
    session: BrowserSession | None = None
    live_view_url: str | None = None
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExecutionResult:
    """Outcome of running code in a session.

    `error` on a successful result is an error raised by the executed code itself.
    """

    success: bool
    result: str = ""
    error: str | None = None
    exit_code: int | None = None
    session_expired: bool = False
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ListResult:
    success: bool
    sessions: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class CloseResult:
    success: bool
    session_id: str
    error: str | None = None


@dataclass
class BashOutput:
    stdout: str
    stderr: str
    exit_code: int


@asynccontextmanager
async def spawn_shell(command: str, env: dict[str, str]) -> AsyncIterator[asyncio.subprocess.Process]:
    """Run `sh -c command` and make sure the child is reaped on every path."""
    proc = await asyncio.create_subprocess_exec(
        "sh",
        "-c",
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
    )
    try:
        yield proc
    finally:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()


async def run_bash(command: str, session: BrowserSession) -> BashOutput:
    """Execute a shell command locally with CDP_URL and SESSION_ID exported."""
    env = {**os.environ, "CDP_URL": session.cdp_url, "SESSION_ID": session.id}
    async with spawn_shell(inject_cdp_flag(command, session.cdp_url), env) as proc:
        stdout, stderr = await proc.communicate()
        exit_code = proc.returncode if proc.returncode is not None else 1

    return BashOutput(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        exit_code=exit_code,
    )


class BrowserSessionManager:
    """Keeps a "current" browser session across independent CLI invocations."""

    def __init__(
        self,
        client: FirecrawlClient,
        store: SessionStore | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.client = client
        self.store = store or SessionStore()
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr

    async def launch(
        self,
        ttl: int | None = None,
        inactivity_ttl: int | None = None,
        stream: bool | None = None,
    ) -> LaunchResult:
        """Launch a remote session and make it the stored one.

        A previously stored session is not closed remotely; it stays alive
        until its TTL runs out or it is closed with --session.
        """
        try:
            data = await self.client.browser(
                ttl=ttl, activity_ttl=inactivity_ttl, stream_web_view=stream
            )
        except FirecrawlError as e:
            return LaunchResult(success=False, error=str(e))

        if not data.get("success") or not data.get("id"):
            return LaunchResult(success=False, error=data.get("error") or "Unknown error", raw=data)

        session = BrowserSession(id=data["id"], cdp_url=data.get("cdpUrl", ""))
        self.store.save(session)
        return LaunchResult(
            success=True,
            session=session,
            live_view_url=data.get("liveViewUrl"),
            raw=data,
        )

    def resolve_session_id(self, override: str | None = None) -> str:
        return self.store.resolve_session_id(override)

    async def resolve_session(self, override: str | None = None) -> BrowserSession:
        """Resolve a full session record, including its CDP URL.

        Raises:
            NoActiveSessionError: If nothing is stored and no override is given
            FirecrawlError: If the override is not an active session
        """
        stored = self.store.load()
        if not override:
            if stored is None:
                raise NoActiveSessionError()
            return stored

        if stored and stored.id == override:
            return stored

        listing = await self.client.list_browsers(status="active")
        for item in listing.get("sessions") or []:
            if item.get("id") == override and item.get("cdpUrl"):
                return BrowserSession(
                    id=item["id"],
                    cdp_url=item["cdpUrl"],
                    created_at=item.get("createdAt", ""),
                )
        raise FirecrawlError(f"Session {override} not found or not active.")

    async def execute(
        self,
        code: str,
        language: str = "bash",
        session_id: str | None = None,
        raw_bash: bool = False,
    ) -> ExecutionResult:
        """Execute code against a session.

        python/node go to the remote API; bash runs on this machine.

        Raises:
            NoActiveSessionError: If no session can be targeted
        """
        if language not in LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")

        if language == "bash":
            return await self._execute_bash(prepare_command(code, raw_bash), session_id)

        target = self.resolve_session_id(session_id)
        try:
            data = await self.client.browser_execute(target, code, language)
        except FirecrawlError as e:
            if is_session_expired_error(e):
                return self._expired(target, explicit=bool(session_id))
            return ExecutionResult(success=False, error=str(e))

        if not data.get("success", True):
            return ExecutionResult(success=False, error=data.get("error") or "Unknown error", raw=data)

        result = data.get("result")
        return ExecutionResult(
            success=True,
            result="" if result is None else str(result),
            error=data.get("error"),
            raw=data,
        )

    async def _execute_bash(self, command: str, session_id: str | None) -> ExecutionResult:
        try:
            session = await self.resolve_session(session_id)
        except FirecrawlError as e:
            return ExecutionResult(success=False, error=str(e))

        output = await run_bash(command, session)

        if output.exit_code != 0:
            # Error context first so it precedes the output in terminal logs
            if output.stderr:
                self.stderr.write(output.stderr)
                self.stderr.flush()
            if output.stdout:
                self.stdout.write(output.stdout)
                self.stdout.flush()
            return ExecutionResult(
                success=False,
                result=output.stdout.rstrip(),
                error=f"Command exited with code {output.exit_code}",
                exit_code=output.exit_code,
            )

        return ExecutionResult(success=True, result=output.stdout.rstrip(), exit_code=0)

    def _expired(self, session_id: str, explicit: bool) -> ExecutionResult:
        if not explicit and self.store.load() is not None:
            self.store.clear()
        return ExecutionResult(
            success=False,
            session_expired=True,
            error=(
                f"Session {session_id} has expired or been destroyed.\n"
                "The session may have exceeded its TTL or been closed.\n"
                "Start a new session with: firecli browser launch-session"
            ),
        )

    async def list(self, status: str | None = None) -> ListResult:
        """List remote sessions, optionally only `active` or `destroyed` ones."""
        if status and status not in LIST_STATUSES:
            raise ValueError(f'Invalid status "{status}". Use "active" or "destroyed".')

        try:
            data = await self.client.list_browsers(status=status)
        except FirecrawlError as e:
            return ListResult(success=False, error=str(e))

        if not data.get("success", True):
            return ListResult(success=False, error=data.get("error") or "Unknown error", raw=data)
        return ListResult(success=True, sessions=data.get("sessions") or [], raw=data)

    async def close(self, session_id: str | None = None) -> CloseResult:
        """Close a session; forget it locally only if it is the stored one."""
        target = self.resolve_session_id(session_id)

        try:
            data = await self.client.delete_browser(target)
        except FirecrawlError as e:
            return CloseResult(success=False, session_id=target, error=str(e))

        if not data.get("success", True):
            return CloseResult(
                success=False, session_id=target, error=data.get("error") or "Unknown error"
            )

        stored = self.store.load()
        if stored and stored.id == target:
            self.store.clear()
        return CloseResult(success=True, session_id=target)

    async def quick_execute(self, code: str, raw_bash: bool = False) -> ExecutionResult:
        """Execute a sandbox command, launching a session first if none is stored."""
        if self.store.load() is None:
            launched = await self.launch()
            if not launched.success:
                return ExecutionResult(success=False, error=launched.error)

        return await self.execute(code, language="bash", raw_bash=raw_bash)
