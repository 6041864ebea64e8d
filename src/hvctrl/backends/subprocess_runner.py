"""Subprocess process runner implementation."""

import os
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from hvctrl.errors import ErrorKind, VmError
from hvctrl.interfaces.process import ProcessResult, ProcessRunner

log = structlog.get_logger(__name__)


def native_encoding() -> str:
    """Encoding used by hypervisor tools for their console output.

    Windows tools write in the ANSI code page; everything else is UTF-8.
    """
    if sys.platform == "win32":
        return "mbcs"
    return "utf-8"


class SubprocessRunner(ProcessRunner):
    """Run processes using the subprocess module."""

    def __init__(self, encoding: Optional[str] = None):
        self.encoding = encoding or native_encoding()

    def _decode(self, data: Optional[bytes]) -> str:
        if not data:
            return ""
        return data.decode(self.encoding, errors="replace")

    def run(
        self,
        command: List[str],
        input: Optional[str] = None,
        timeout: Optional[float] = None,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessResult:
        """Run a command and capture its decoded output."""
        try:
            result = subprocess.run(
                command,
                input=input.encode(self.encoding) if input is not None else None,
                capture_output=True,
                timeout=timeout,
                cwd=str(cwd) if cwd else None,
                env={**os.environ, **env} if env else None,
            )
        except (OSError, subprocess.SubprocessError) as e:
            log.debug("process.spawn_failed", executable=command[0], error=str(e))
            raise VmError(ErrorKind.EXECUTION_FAILED, detail=str(e)) from e

        return ProcessResult(
            returncode=result.returncode,
            stdout=self._decode(result.stdout),
            stderr=self._decode(result.stderr),
        )
