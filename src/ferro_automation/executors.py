from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union
import os
import subprocess


@dataclass
class CommandResult:
    command: list[str]
    stdout: bytes
    stderr: bytes
    returncode: int

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    def stdout_text(self) -> str:
        """Decode stdout as UTF-8, raising ``UnicodeDecodeError`` on bad bytes."""

        return self.stdout.decode("utf-8")

    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8")


class Executor:
    """Spawns local processes for modules and conditions.

    Processes get no standard input and have both output streams captured.
    The call blocks until the process exits.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        env: Optional[dict[str, str]] = None,
        cwd: Optional[Union[str, Path]] = None,
    ) -> CommandResult:
        cmd_list = [str(part) for part in command]

        exec_env = None
        if env:
            exec_env = os.environ.copy()
            exec_env.update(env)

        proc = subprocess.run(
            cmd_list,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            check=False,
            env=exec_env,
            cwd=str(cwd) if cwd is not None else None,
        )
        return CommandResult(cmd_list, proc.stdout, proc.stderr, proc.returncode)
