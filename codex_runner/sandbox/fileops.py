"""Filesystem operations with a direct and a sudo-delegated implementation.

Every scratch-file mutation the runner performs goes through a FileOps
object chosen once per invocation:

1. DirectFileOps - performed by this process with ordinary filesystem calls
2. SudoFileOps - delegated to `sudo` so that files end up owned by (and
   readable by) the unprivileged user codex runs as

SECURITY: SudoFileOps never goes through a shell. Arguments are passed as an
argv list and file contents travel on stdin.
"""

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol

from codex_runner.core.models import ElevationError

logger = logging.getLogger(__name__)

SUDO = "sudo"


def check_output(cmd: list[str], input: str | None = None) -> str:
    """Run a helper command and return its stdout.

    Raises:
        ElevationError: If the command can't be spawned or exits non-zero.
            Failures are never retried.
    """
    logger.debug("Running helper: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            input=input,
            capture_output=True,
            encoding="utf-8",
        )
    except OSError as e:
        raise ElevationError(f"Failed to spawn '{cmd[0]}': {e}") from e

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise ElevationError(
            f"'{' '.join(cmd)}' exited with code {result.returncode}: {stderr}",
            returncode=result.returncode,
        )
    return result.stdout


class FileOps(Protocol):
    """Filesystem capability used by OutputCapture and credential setup."""

    def make_temp_dir(self, prefix: str) -> Path:
        """Create a fresh private temp directory and return its path."""
        ...

    def write_text(self, path: Path, content: str) -> None: ...

    def read_text(self, path: Path) -> str: ...

    def move(self, src: Path, dst: Path) -> None: ...

    def chown(self, path: Path, user: str) -> None: ...

    def chmod(self, path: Path, mode: int) -> None: ...

    def remove_tree(self, path: Path) -> None:
        """Delete a directory tree. A missing path is not an error."""
        ...


class DirectFileOps:
    """FileOps performed by the current process."""

    def __init__(self, tmp_root: Path | None = None):
        self.tmp_root = tmp_root

    def make_temp_dir(self, prefix: str) -> Path:
        return Path(tempfile.mkdtemp(prefix=prefix, dir=self.tmp_root))

    def write_text(self, path: Path, content: str) -> None:
        path.write_text(content, encoding="utf-8")

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def move(self, src: Path, dst: Path) -> None:
        shutil.move(str(src), str(dst))

    def chown(self, path: Path, user: str) -> None:
        shutil.chown(path, user=user)

    def chmod(self, path: Path, mode: int) -> None:
        os.chmod(path, mode)

    def remove_tree(self, path: Path) -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass


class SudoFileOps:
    """FileOps delegated to `sudo`.

    Scratch operations (mktemp, tee, cat, rm) run as `user` so the files
    belong to the principal codex runs as. mv/chown/chmod run as root since
    they hand files over between principals.
    """

    def __init__(self, user: str, sudo: str = SUDO):
        self.user = user
        self.sudo = sudo

    def _as_user(self, *args: str) -> list[str]:
        return [self.sudo, "-u", self.user, *args]

    def _as_root(self, *args: str) -> list[str]:
        return [self.sudo, *args]

    def make_temp_dir(self, prefix: str) -> Path:
        # mktemp's -t template is relative to the user's TMPDIR
        stdout = check_output(self._as_user("mktemp", "-d", "-t", f"{prefix}.XXXXXX"))
        path = stdout.rstrip()
        if not path:
            raise ElevationError(f"mktemp as '{self.user}' printed no directory path")
        return Path(path)

    def write_text(self, path: Path, content: str) -> None:
        check_output(self._as_user("tee", str(path)), input=content)

    def read_text(self, path: Path) -> str:
        return check_output(self._as_user("cat", str(path)))

    def move(self, src: Path, dst: Path) -> None:
        check_output(self._as_root("mv", str(src), str(dst)))

    def chown(self, path: Path, user: str) -> None:
        check_output(self._as_root("chown", user, str(path)))

    def chmod(self, path: Path, mode: int) -> None:
        check_output(self._as_root("chmod", f"{mode:o}", str(path)))

    def remove_tree(self, path: Path) -> None:
        check_output(self._as_user("rm", "-rf", str(path)))


def file_ops_for(run_as_user: str | None, tmp_root: Path | None = None) -> FileOps:
    """Pick the FileOps implementation for one invocation."""
    if run_as_user is None:
        return DirectFileOps(tmp_root)
    return SudoFileOps(run_as_user)
