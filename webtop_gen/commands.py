from __future__ import annotations

from dataclasses import dataclass
import logging
import subprocess

from webtop_gen.logging_utils import TRACE_LEVEL

MAX_OUTPUT_BYTES = 1024 * 1024
DEFAULT_TIMEOUT_S = 10.0


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external tool call.

    Exactly one of ``stdout`` and ``error`` is set.
    """

    stdout: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.stdout is not None

    @classmethod
    def failure(cls, error: str) -> CommandResult:
        return cls(stdout=None, error=error)


class CommandRunner:
    def __init__(
        self,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        max_output_bytes: int = MAX_OUTPUT_BYTES,
    ) -> None:
        self.timeout_s = timeout_s
        self.max_output_bytes = max_output_bytes
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, command: list[str]) -> CommandResult:
        try:
            result = subprocess.run(
                command,
                check=False,
                encoding="utf-8",
                errors="replace",
                capture_output=True,
                timeout=self.timeout_s,
            )
        except FileNotFoundError:
            self.logger.debug("Command not found: %s", command[0])
            return CommandResult.failure(f"{command[0]}: command not found")
        except subprocess.TimeoutExpired:
            self.logger.debug(
                "Command timed out after %ss: %s", self.timeout_s, " ".join(command)
            )
            return CommandResult.failure(
                f"{command[0]}: timed out after {self.timeout_s}s"
            )
        except OSError as exc:
            self.logger.debug("Command failed to start: %s (%s)", command[0], exc)
            return CommandResult.failure(f"{command[0]}: {exc}")

        if result.returncode != 0:
            self.logger.debug(
                "Command failed (%s): %s", result.returncode, " ".join(command)
            )
            stderr = (result.stderr or "").strip()
            if stderr:
                self.logger.log(TRACE_LEVEL, "stderr: %s", stderr)
            return CommandResult.failure(
                stderr or f"{command[0]}: exited with status {result.returncode}"
            )

        stdout = result.stdout or ""
        if len(stdout.encode("utf-8", errors="replace")) > self.max_output_bytes:
            self.logger.debug(
                "Command output exceeded %s bytes: %s",
                self.max_output_bytes,
                " ".join(command),
            )
            return CommandResult.failure(
                f"{command[0]}: output exceeded {self.max_output_bytes} bytes"
            )
        if stdout:
            self.logger.log(TRACE_LEVEL, "stdout: %s", stdout.strip())
        return CommandResult(stdout=stdout)
