"""Run ``npm diff`` between two published versions of a package."""

import asyncio
import shutil

from bumpguard.errors import EvidenceUnavailableError
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DIFF_TIMEOUT = 30.0


class NpmDiffClient:
    """Produces a unified diff of two package tarballs via the npm CLI.

    Package names must already be validated; they are passed as
    separate argv entries and never through a shell.
    """

    def __init__(
        self,
        npm_executable: str = "npm",
        timeout: float = DEFAULT_DIFF_TIMEOUT,
    ) -> None:
        self.npm_executable = npm_executable
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return shutil.which(self.npm_executable) is not None

    async def diff(self, name: str, from_version: str, to_version: str) -> str:
        """Return the diff text between ``name@from_version`` and ``name@to_version``.

        Raises:
            EvidenceUnavailableError: If npm is missing, fails or times out.
        """
        args = [
            "diff",
            f"--diff={name}@{from_version}",
            f"--diff={name}@{to_version}",
        ]
        try:
            process = await asyncio.create_subprocess_exec(
                self.npm_executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EvidenceUnavailableError("npm diff", name, e) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError as e:
            raise EvidenceUnavailableError(
                "npm diff", name, message=f"npm diff for {name} timed out after {self.timeout:.0f}s"
            ) from e
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip().splitlines()
            raise EvidenceUnavailableError(
                "npm diff",
                name,
                message=f"npm diff exited with {process.returncode} for {name}: "
                + (detail[-1] if detail else "no output"),
            )

        return stdout.decode("utf-8", errors="replace")
