"""Abstract interface for process execution."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional


@dataclass
class ProcessResult:
    """Result of process execution."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class ProcessRunner(ABC):
    """Abstract interface for process execution.

    Implementations return decoded stdout/stderr and raise
    ``VmError(ExecutionFailed)`` when the process cannot be spawned. A
    non-zero exit code is not an error at this level: backends judge
    success from the output text.
    """

    @abstractmethod
    def run(
        self,
        command: List[str],
        input: Optional[str] = None,
        timeout: Optional[float] = None,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessResult:
        """Run a command and wait for it to exit."""
        pass
