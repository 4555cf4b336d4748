"""
Database Client Adapters

Contracts for the two ways extdeploy reaches a database server: running
single queries through a driver, and shelling out to the PostgreSQL client
binaries for file application and backup restore. Components depend on the
protocols; the concrete psycopg and subprocess implementations live here.
"""

import logging
import os
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import psycopg
from pydantic import BaseModel, Field

from extdeploy.config import ConnectionCredentials
from extdeploy.domain.errors import ProcessExecutionError, QueryExecutionError

logger = logging.getLogger(__name__)

# 200x a conservative default
MAX_OUTPUT_BYTES = 40000 * 1024


class ProcessResult(BaseModel):
    """Result of one external client invocation

    Attributes:
        args: Command line that was run
        returncode: Process exit status
        stdout: Captured standard output
        stderr: Captured standard error
    """

    args: list[str] = Field(..., description="Command line")
    returncode: int = Field(..., description="Exit status")
    stdout: str = Field(default="", description="Captured stdout")
    stderr: str = Field(default="", description="Captured stderr")


class ProcessRunner(Protocol):
    """Protocol for blocking external process invocation"""

    def run(self, args: Sequence[str], *, env: dict[str, str] | None = None) -> ProcessResult:
        """Run a command to completion

        Raises:
            ProcessExecutionError: On non-zero exit, start failure or oversized output
        """
        ...


class QueryClient(Protocol):
    """Protocol for running one query against a database"""

    def query(
        self,
        sql: str,
        credentials: ConnectionCredentials,
        parameters: Sequence[Any] | None = None,
    ) -> list[tuple[Any, ...]]:
        """Execute sql against credentials.database and return any rows

        Raises:
            QueryExecutionError: If the connection or statement fails
        """
        ...


class ExtensionInspector(Protocol):
    """Protocol for discovering the extensions installed in a database"""

    def __call__(self, credentials: ConnectionCredentials) -> list[str]: ...


class SubprocessRunner:
    """Run external commands with subprocess, capturing text output"""

    def __init__(self, max_output_bytes: int = MAX_OUTPUT_BYTES) -> None:
        self.max_output_bytes = max_output_bytes

    def run(self, args: Sequence[str], *, env: dict[str, str] | None = None) -> ProcessResult:
        command = [str(arg) for arg in args]
        process_env = {**os.environ, **env} if env else None
        logger.debug("Running %s", " ".join(command))

        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                env=process_env,
                check=False,
            )
        except OSError as exc:
            raise ProcessExecutionError(
                message=f"Cannot run {command[0]}: {exc}",
                command=command,
            ) from exc

        stdout = completed.stdout or ""
        stderr = completed.stderr or ""
        output_size = len(stdout.encode("utf-8")) + len(stderr.encode("utf-8"))
        if output_size > self.max_output_bytes:
            raise ProcessExecutionError(
                message=(
                    f"{command[0]} produced {output_size} bytes of output, "
                    f"more than the {self.max_output_bytes} byte limit"
                ),
                command=command,
                returncode=completed.returncode,
            )
        if completed.returncode != 0:
            raise ProcessExecutionError(
                message=f"{command[0]} exited with status {completed.returncode}: {stderr.strip()}",
                command=command,
                returncode=completed.returncode,
                stdout=stdout,
                stderr=stderr,
            )
        return ProcessResult(
            args=command, returncode=completed.returncode, stdout=stdout, stderr=stderr
        )


class PsycopgQueryClient:
    """QueryClient backed by psycopg 3

    Connections run in autocommit mode: DROP/CREATE DATABASE cannot run inside
    a transaction block.
    """

    def __init__(self, connect_timeout: int | None = None) -> None:
        self.connect_timeout = connect_timeout

    def query(
        self,
        sql: str,
        credentials: ConnectionCredentials,
        parameters: Sequence[Any] | None = None,
    ) -> list[tuple[Any, ...]]:
        kwargs = credentials.connection_kwargs()
        if self.connect_timeout is not None:
            kwargs["connect_timeout"] = self.connect_timeout
        try:
            with psycopg.connect(autocommit=True, **kwargs) as conn:
                with conn.cursor() as cursor:
                    cursor.execute(sql, parameters)
                    if cursor.description is None:
                        return []
                    return list(cursor.fetchall())
        except psycopg.Error as exc:
            raise QueryExecutionError(
                message=f"Query against {credentials.database} failed: {exc}",
                database=credentials.database,
                sql=sql,
            ) from exc


@dataclass(slots=True)
class PostgresCommands:
    """Command lines for the PostgreSQL client binaries"""

    psql: str = "psql"
    pg_restore: str = "pg_restore"

    def apply_file(self, credentials: ConnectionCredentials, path: Path) -> list[str]:
        """psql invocation applying one file in a single transaction."""
        return [
            self.psql,
            "-d",
            credentials.database,
            "-U",
            credentials.username,
            "-h",
            credentials.hostname,
            "-p",
            str(credentials.port),
            "-f",
            str(path),
            "--single-transaction",
        ]

    def restore(
        self, credentials: ConnectionCredentials, backup: Path, jobs: int | None = None
    ) -> list[str]:
        """pg_restore invocation parallelized across available CPUs."""
        return [
            self.pg_restore,
            "-U",
            credentials.username,
            "-h",
            credentials.hostname,
            "-p",
            str(credentials.port),
            "-d",
            credentials.database,
            "-j",
            str(jobs or os.cpu_count() or 1),
            str(backup),
        ]

    @staticmethod
    def environment(credentials: ConnectionCredentials) -> dict[str, str] | None:
        """Environment overrides for a client process (password never goes on argv)."""
        if credentials.password:
            return {"PGPASSWORD": credentials.password}
        return None
