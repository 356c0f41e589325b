"""Process assertions: run the installed binary."""

import asyncio
import logging
import os
import re

from pydantic import Field, PrivateAttr

from .base import BaseAssertion

logger = logging.getLogger(__name__)


class CommandSucceedsAssert(BaseAssertion):
    """Assert that running an installed binary exits with status 0.

    The first token of the command names an installed binary; it is run through
    its link in <prefix>/bin so the check covers the resolution path too.

    Attributes:
        command: Installed binary name followed by its arguments
        expected_output: Regular expression that must appear in stdout or stderr (optional)
        timeout_seconds: Maximum time the process may run (default: 30)

    Example:
        >>> CommandSucceedsAssert(command=["talostpl", "--version"])
        >>> CommandSucceedsAssert(
        ...     command=["talostpl", "--version"],
        ...     expected_output=r"talostpl version v?\\d+\\.\\d+\\.\\d+",
        ... )
    """

    command: list[str] = Field(..., min_length=1)
    expected_output: str | None = None
    timeout_seconds: int = 30

    _exit_code: int | None = PrivateAttr(default=None)
    _output: str = PrivateAttr(default="")
    _error: str | None = PrivateAttr(default=None)

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    @property
    def output(self) -> str:
        return self._output

    @property
    def error(self) -> str | None:
        return self._error

    def _executable(self, keg) -> str:
        binary = self.command[0]
        if binary in keg.binaries():
            link = keg.link_path(binary)
            return str(link if link.exists() else keg.binary_path(binary))
        return binary

    async def check(self, keg) -> bool:
        argv = [self._executable(keg), *self.command[1:]]
        env = dict(os.environ)
        env["PATH"] = os.pathsep.join([str(keg.link_dir), env.get("PATH", "")])

        logger.debug(f"Running {argv}")
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
            )
        except OSError as e:
            self._error = f"could not start {argv[0]}: {e}"
            return False

        try:
            stdout, _ = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            self._error = f"timed out after {self.timeout_seconds}s"
            return False

        self._exit_code = process.returncode
        self._output = stdout.decode("utf-8", errors="replace").strip()

        if self._exit_code != 0:
            self._error = f"exited with status {self._exit_code}"
            return False
        if self.expected_output and not re.search(self.expected_output, self._output):
            self._error = f"output did not match {self.expected_output!r}"
            return False
        return True
