"""Scratch environments for inspecting a cloned repository with shell commands."""

import asyncio
import logging
import os
import re
import shutil
import tempfile
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 10_000
TRUNCATION_NOTE = "\n... (output truncated)"

DANGEROUS_PATTERNS = [
    re.compile(r"rm\s+-rf", re.IGNORECASE),
    re.compile(r"mkfs", re.IGNORECASE),
    re.compile(r"dd\s+if=", re.IGNORECASE),
    re.compile(r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:"),
    re.compile(r"fork\s*bomb", re.IGNORECASE),
    re.compile(r">\s*/dev/sd", re.IGNORECASE),
]


class SandboxError(Exception):
    pass


class SandboxTimeoutError(SandboxError):
    pass


def is_dangerous(command: str) -> bool:
    return any(p.search(command) for p in DANGEROUS_PATTERNS)


def truncate_output(output: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    if len(output) <= limit:
        return output
    return output[:limit] + TRUNCATION_NOTE


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def output(self) -> str:
        return self.stdout or self.stderr or "(no output)"


class Sandbox(ABC):
    """An isolated working directory holding one cloned repository."""

    workdir: Optional[str] = None

    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def clone(self, repo_url: str, timeout: float) -> None: ...

    @abstractmethod
    async def run(self, command: str, timeout: float) -> CommandResult: ...

    @abstractmethod
    async def stop(self) -> None: ...


class LocalSandbox(Sandbox):
    """Runs commands with bash inside a throwaway temp directory on this host."""

    def __init__(self, shell: str = "bash"):
        self.shell = shell
        self.workdir = None
        self.repo_dir: Optional[str] = None

    async def start(self) -> None:
        self.workdir = await asyncio.to_thread(tempfile.mkdtemp, prefix="gitsignal-")
        self.repo_dir = os.path.join(self.workdir, "repo")
        logger.info("[Sandbox] Created %s", self.workdir)

    async def _exec(self, args: list[str], cwd: str, timeout: float) -> CommandResult:
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        proc = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=max(timeout, 0.001))
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise SandboxTimeoutError(f"Command timed out after {timeout:.0f}s")
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise
        return CommandResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=proc.returncode or 0,
        )

    async def clone(self, repo_url: str, timeout: float) -> None:
        if self.workdir is None:
            raise SandboxError("Sandbox has not been started")
        result = await self._exec(["git", "clone", "--quiet", repo_url, self.repo_dir], self.workdir, timeout)
        if result.exit_code != 0:
            raise SandboxError(f"git clone failed: {result.stderr.strip() or result.exit_code}")

    async def run(self, command: str, timeout: float) -> CommandResult:
        if self.repo_dir is None:
            raise SandboxError("Sandbox has not been started")
        return await self._exec([self.shell, "-c", command], self.repo_dir, timeout)

    async def stop(self) -> None:
        if self.workdir is None:
            return
        workdir, self.workdir, self.repo_dir = self.workdir, None, None
        await asyncio.to_thread(shutil.rmtree, workdir, True)
        logger.info("[Sandbox] Removed %s", workdir)


SandboxFactory = Callable[[], Sandbox]


@asynccontextmanager
async def open_sandbox(factory: SandboxFactory = LocalSandbox) -> AsyncIterator[Sandbox]:
    """Start a sandbox and stop it on exit, including when the caller is cancelled."""
    sandbox = factory()
    try:
        await sandbox.start()
        yield sandbox
    finally:
        try:
            await sandbox.stop()
        except Exception:
            logger.exception("[Sandbox] Failed to stop sandbox")
