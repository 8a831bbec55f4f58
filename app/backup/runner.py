"""
External process runner.

Runs OS commands (container stop/start, archive creation) one at a time,
streaming their output into the log as it is produced. Calls block until
the process exits; there is no timeout, so a hung command hangs the run.
"""

import logging
import subprocess
from collections import deque

from app.models import CommandResult


logger = logging.getLogger(__name__)

# Exit code reported when the process could not be started at all,
# matching the shell's "command not found" status.
EXIT_NOT_STARTED = 127

# Only the tail of a command's output is kept on the result; every line
# still goes to the log. `tar -v` prints one line per archived file.
MAX_CAPTURED_LINES = 200


class ProcessRunner:
    """
    Synchronous command runner with streamed output.
    """

    def __init__(self, capture_output: bool = True, max_captured_lines: int = MAX_CAPTURED_LINES):
        """
        Initialize process runner.

        Args:
            capture_output: Keep output lines on the CommandResult as well as logging them
            max_captured_lines: Number of trailing lines kept when capturing
        """
        self.capture_output = capture_output
        self.max_captured_lines = max_captured_lines

    def run(self, command: str, *args: str) -> CommandResult:
        """
        Run a command and wait for it to exit.

        Args:
            command: Executable name or path
            *args: Arguments passed to the executable

        Returns:
            CommandResult with the exit code. A process that cannot be
            started is reported with EXIT_NOT_STARTED, never raised.
        """
        argv = [command, *args]
        logger.debug(f"Running: {' '.join(argv)}")

        try:
            process = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors='replace',
                bufsize=1
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to start {command}: {e}")
            return CommandResult(
                command=command,
                args=list(args),
                exit_code=EXIT_NOT_STARTED,
                error=str(e)
            )

        output = deque(maxlen=self.max_captured_lines)
        with process:
            for line in process.stdout:
                line = line.rstrip('\n')
                logger.info(f"[{command}] {line}")
                if self.capture_output:
                    output.append(line)
            exit_code = process.wait()

        if exit_code != 0:
            logger.warning(f"{command} exited with status {exit_code}")

        return CommandResult(command=command, args=list(args), exit_code=exit_code, output=list(output))
