"""
Ad-hoc SQL Application

Writes an arbitrary SQL payload to a temporary file and applies it with psql
in single-transaction mode. The file is removed on every exit path unless the
caller asks to keep it for inspection.
"""

import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import BaseModel

from extdeploy.config import ApplyOptions, ConnectionCredentials
from extdeploy.database.client import PostgresCommands, ProcessRunner
from extdeploy.domain.errors import TempArtifactDeleteError, TempArtifactWriteError

logger = logging.getLogger(__name__)

ARTIFACT_PREFIX = "temp_query_"


class ApplyResult(BaseModel):
    """Outcome of one ad-hoc application"""

    database: str
    stdout: str = ""
    kept_sql: Path | None = None


def _remove_artifact(path: Path) -> None:
    try:
        path.unlink()
    except OSError as exc:
        raise TempArtifactDeleteError(
            message=f"Cannot delete written query file {path}: {exc}", path=str(path)
        ) from exc


@contextmanager
def sql_artifact(
    sql_text: str, *, database: str, directory: Path | None = None, keep: bool = False
) -> Iterator[Path]:
    """Write sql_text to a uniquely named temp file and yield its path.

    The file is deleted when the block exits, whether it raised or not,
    unless keep is set. When the block raised, a delete failure is logged and
    the original error propagates.

    Raises:
        TempArtifactWriteError: If the file cannot be created or written
        TempArtifactDeleteError: If the file cannot be removed after a clean exit
    """
    try:
        file_descriptor, temp_name = tempfile.mkstemp(
            prefix=f"{ARTIFACT_PREFIX}{database}_", suffix=".sql", dir=directory
        )
    except OSError as exc:
        raise TempArtifactWriteError(message=f"Cannot write query to file: {exc}") from exc

    path = Path(temp_name)
    try:
        with os.fdopen(file_descriptor, "w", encoding="utf-8") as handle:
            handle.write(sql_text)
    except OSError as exc:
        try:
            os.unlink(temp_name)
        except OSError as unlink_error:
            logger.error("Cannot delete partially written query file %s: %s", path, unlink_error)
        raise TempArtifactWriteError(
            message=f"Cannot write query to file {path}: {exc}", path=str(path)
        ) from exc

    try:
        yield path
    except BaseException:
        if keep:
            logger.info("SQL file kept as %s", path)
        else:
            try:
                _remove_artifact(path)
            except TempArtifactDeleteError as delete_error:
                logger.error("%s", delete_error)
        raise

    if keep:
        logger.info("SQL file kept as %s", path)
    else:
        _remove_artifact(path)


class AdHocExecutor:
    """Apply SQL payloads through psql via a scoped temp file"""

    def __init__(self, runner: ProcessRunner, commands: PostgresCommands | None = None) -> None:
        self.runner = runner
        self.commands = commands or PostgresCommands()

    def apply(
        self,
        sql_text: str,
        credentials: ConnectionCredentials,
        options: ApplyOptions | None = None,
    ) -> ApplyResult:
        """Apply sql_text to credentials.database in a single transaction

        Raises:
            TempArtifactWriteError: If the payload cannot be written
            ProcessExecutionError: If psql fails
            TempArtifactDeleteError: If the payload file cannot be removed
        """
        options = options or ApplyOptions()
        with sql_artifact(
            sql_text,
            database=credentials.database,
            directory=options.sql_dir,
            keep=options.keep_sql,
        ) as path:
            try:
                process = self.runner.run(
                    self.commands.apply_file(credentials, path),
                    env=self.commands.environment(credentials),
                )
            except Exception:
                logger.error("Cannot install file %s", path)
                raise

        return ApplyResult(
            database=credentials.database,
            stdout=process.stdout,
            kept_sql=path if options.keep_sql else None,
        )
