from __future__ import annotations

import asyncio
import logging
import shlex
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

__all__ = [
    "CommandError",
    "CommandOutcome",
    "CommandRunner",
    "FollowManager",
    "ServiceController",
    "run_command",
]

log = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Raised when a stop or follow command could not be started or did not succeed."""

    def __init__(self, command: Sequence[str], reason: str, *, exit_code: int | None = None) -> None:
        self.command = tuple(command)
        self.reason = reason
        self.exit_code = exit_code
        super().__init__(f"{shlex.join(self.command)}: {reason}")


@dataclass(slots=True)
class CommandOutcome:
    command: tuple[str, ...]
    output: str
    duration: float


CommandRunner = Callable[[Sequence[str], float | None], Awaitable[CommandOutcome]]

_OUTPUT_TAIL = 400


async def run_command(args: Sequence[str], timeout: float | None = None) -> CommandOutcome:
    """Run ``args`` to completion; stdout and stderr are captured together."""
    start = time.perf_counter()
    log.debug("Running command: %s", shlex.join(args))
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as exc:
        raise CommandError(args, f"could not be started ({exc.strerror or exc})") from exc

    try:
        raw, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        proc.kill()
        await proc.wait()
        raise CommandError(args, f"timed out after {timeout}s") from exc

    output = raw.decode("utf-8", errors="replace").strip()
    if proc.returncode != 0:
        reason = f"exited with code {proc.returncode}"
        if output:
            reason = f"{reason}: {output[-_OUTPUT_TAIL:]}"
        raise CommandError(args, reason, exit_code=proc.returncode)

    return CommandOutcome(command=tuple(args), output=output, duration=time.perf_counter() - start)


class ServiceController:
    """Stops the monitored service, e.g. ``systemctl stop mastodon-web``."""

    def __init__(
        self,
        service: str,
        *,
        stop_command: Sequence[str] = ("systemctl", "stop"),
        timeout: float | None = 120.0,
        executor: CommandRunner | None = None,
    ) -> None:
        if not service:
            raise ValueError("service name must not be empty")
        self.service = service
        self._stop_command = tuple(stop_command)
        self._timeout = timeout
        self._executor = executor or run_command

    def build_stop_command(self) -> list[str]:
        return [*self._stop_command, self.service]

    async def stop(self) -> CommandOutcome:
        command = self.build_stop_command()
        outcome = await self._executor(command, self._timeout)
        log.warning("Stopped service %s in %.2fs", self.service, outcome.duration)
        return outcome


class FollowManager:
    """Keeps a fixed set of accounts on the instance's managed follow list."""

    def __init__(
        self,
        accounts: Sequence[str],
        *,
        follow_command: Sequence[str] = ("tootctl", "accounts", "follow"),
        timeout: float | None = 120.0,
        executor: CommandRunner | None = None,
    ) -> None:
        self.accounts = tuple(accounts)
        self._follow_command = tuple(follow_command)
        self._timeout = timeout
        self._executor = executor or run_command

    def build_follow_command(self, account: str) -> list[str]:
        return [*self._follow_command, account]

    async def follow(self, account: str) -> CommandOutcome:
        return await self._executor(self.build_follow_command(account), self._timeout)

    async def follow_all(self) -> dict[str, CommandOutcome | CommandError]:
        results: dict[str, CommandOutcome | CommandError] = {}
        for account in self.accounts:
            try:
                results[account] = await self.follow(account)
            except CommandError as exc:
                log.warning("Failed to force-follow %s: %s", account, exc)
                results[account] = exc
            else:
                log.debug("Force-followed %s", account)
        return results
