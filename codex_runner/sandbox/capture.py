"""Lifecycle of the files codex reads and writes outside the repo.

Two kinds of scratch file exist per invocation:
- the result file codex writes its last message into (--output-last-message)
- an optional output schema (--output-schema)

Each is either EXPLICIT (a path the caller supplied, never created or
deleted here) or MANAGED (created in a fresh temp directory that this module
owns and always deletes).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import TracebackType

from codex_runner.core.models import (
    CleanupError,
    InlineSchema,
    OutputSchemaSource,
)
from codex_runner.sandbox.fileops import FileOps

logger = logging.getLogger(__name__)

RESULT_DIR_PREFIX = "codex-exec-"
RESULT_FILE_NAME = "output.md"
SCHEMA_DIR_PREFIX = "codex-output-schema-"
SCHEMA_FILE_NAME = "schema.json"


class ScratchKind(str, Enum):
    EXPLICIT = "explicit"
    MANAGED = "managed"


@dataclass(frozen=True)
class ScratchFile:
    """A file passed to codex, tagged with who owns its deletion."""

    kind: ScratchKind
    path: Path
    directory: Path | None = None

    @classmethod
    def explicit(cls, path: Path) -> "ScratchFile":
        return cls(kind=ScratchKind.EXPLICIT, path=path)

    @classmethod
    def managed(cls, directory: Path, name: str) -> "ScratchFile":
        return cls(kind=ScratchKind.MANAGED, path=directory / name, directory=directory)

    @property
    def owns_deletion(self) -> bool:
        return self.kind is ScratchKind.MANAGED


class OutputCapture:
    """Creates, reads and releases the scratch files of one invocation.

    Use as a context manager: leaving the block always releases every
    managed resource. If the block raised, cleanup failures are logged and
    the original exception propagates. Otherwise they raise CleanupError.
    """

    def __init__(self, file_ops: FileOps):
        self.file_ops = file_ops
        self.result_file: ScratchFile | None = None
        self.schema_file: ScratchFile | None = None
        self._resources: list[ScratchFile] = []

    def __enter__(self) -> "OutputCapture":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        failures = self.release()
        if failures and exc is None:
            raise CleanupError(failures)

    def prepare_result_file(self, explicit_path: Path | None) -> ScratchFile:
        """Designate the file codex writes its final message into."""
        if explicit_path is not None:
            self.result_file = ScratchFile.explicit(explicit_path)
        else:
            directory = self.file_ops.make_temp_dir(RESULT_DIR_PREFIX)
            self.result_file = self._track(ScratchFile.managed(directory, RESULT_FILE_NAME))
        return self.result_file

    def prepare_schema(self, source: OutputSchemaSource | None) -> ScratchFile | None:
        """Resolve the output schema, materializing inline content if needed."""
        if source is None:
            return None

        if isinstance(source, InlineSchema):
            directory = self.file_ops.make_temp_dir(SCHEMA_DIR_PREFIX)
            # Track before writing so a failed write still gets its directory removed
            schema = self._track(ScratchFile.managed(directory, SCHEMA_FILE_NAME))
            self.file_ops.write_text(schema.path, source.content)
            self.schema_file = schema
        else:
            self.schema_file = ScratchFile.explicit(source.path)
        return self.schema_file

    def read_final_message(self) -> str:
        if self.result_file is None:
            raise RuntimeError("prepare_result_file() must be called first")
        return self.file_ops.read_text(self.result_file.path)

    def release(self) -> list[Exception]:
        """Delete every managed resource. Returns (and logs) the failures.

        Each resource is attempted once even if an earlier one failed.
        """
        failures: list[Exception] = []
        while self._resources:
            resource = self._resources.pop()
            if not resource.owns_deletion or resource.directory is None:
                continue
            try:
                self.file_ops.remove_tree(resource.directory)
                logger.debug("Removed scratch directory %s", resource.directory)
            except Exception as e:
                logger.error("Failed to remove scratch directory %s: %s", resource.directory, e)
                failures.append(e)
        return failures

    def _track(self, resource: ScratchFile) -> ScratchFile:
        self._resources.append(resource)
        return resource
