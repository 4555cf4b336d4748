"""
Database Provisioner

Whole-database lifecycle: drop and recreate the target, then either build it
from source (schema file + seed data) or restore it from a binary backup.

Building from source is strictly fail-fast. Restoring tolerates pg_restore
failures unless strict_restore is set, and always goes on to introspect the
restored database for its installed extensions.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from extdeploy.config import MAINTENANCE_DATABASE, BuildSpec, ConnectionCredentials
from extdeploy.core.pipeline import run_series
from extdeploy.core.templating import format_sql
from extdeploy.database.client import (
    ExtensionInspector,
    PostgresCommands,
    ProcessRunner,
    QueryClient,
)
from extdeploy.database.introspection import QueryExtensionInspector
from extdeploy.domain.errors import ConfigurationError, ExtDeployError, ProcessExecutionError

logger = logging.getLogger(__name__)

TEMPLATE_DATABASE = "template1"
SCHEMA_FILENAME = "440_schema.sql"
DROP_DATABASE_SQL = "drop database if exists %@;"
CREATE_DATABASE_SQL = "create database %@ template %@;"


class ProvisionResult(BaseModel):
    """Outcome of one provisioning run

    Attributes:
        database: Target database name
        branch: "source" or "backup"
        steps: Names of the steps that completed, in order
        extensions: Introspected extension paths (backup branch only)
        restore_error: pg_restore failure that was tolerated, if any
    """

    database: str
    branch: Literal["source", "backup"]
    steps: list[str] = Field(default_factory=list)
    extensions: list[str] = Field(default_factory=list)
    restore_error: str | None = None


class DatabaseProvisioner:
    """Drop, create and populate a database from source or backup

    Attributes:
        query_client: Runs drop/create statements against the maintenance database
        runner: Runs psql / pg_restore
        commands: Builds client command lines
        inspector: Lists extensions installed in a restored database
        strict_restore: Treat pg_restore failures as fatal
    """

    def __init__(
        self,
        query_client: QueryClient,
        runner: ProcessRunner,
        commands: PostgresCommands | None = None,
        *,
        inspector: ExtensionInspector | None = None,
        maintenance_database: str = MAINTENANCE_DATABASE,
        template_database: str = TEMPLATE_DATABASE,
        schema_filename: str = SCHEMA_FILENAME,
        strict_restore: bool = False,
    ) -> None:
        self.query_client = query_client
        self.runner = runner
        self.commands = commands or PostgresCommands()
        self.inspector = inspector or QueryExtensionInspector(query_client)
        self.maintenance_database = maintenance_database
        self.template_database = template_database
        self.schema_filename = schema_filename
        self.strict_restore = strict_restore

    def provision(self, spec: BuildSpec, credentials: ConnectionCredentials) -> ProvisionResult:
        """Run the branch selected by spec.source / spec.backup

        In the backup branch spec.extensions is overwritten with the introspected
        list, ignoring whatever the caller supplied.

        Raises:
            ConfigurationError: If the spec names neither a source nor a backup
            ExtDeployError: The first failing step of the source branch, or a
                drop/create/introspection failure of the backup branch
        """
        if spec.source is not None:
            result = ProvisionResult(database=spec.database, branch="source")
            steps = [
                ("drop", lambda: self.drop_database(spec.database, credentials)),
                ("create", lambda: self.create_database(spec.database, credentials)),
                ("build_schema", lambda: self.build_schema(spec, credentials)),
                ("populate", lambda: self.populate_data(spec, credentials)),
            ]
        elif spec.backup is not None:
            result = ProvisionResult(database=spec.database, branch="backup")
            steps = [
                ("drop", lambda: self.drop_database(spec.database, credentials)),
                ("create", lambda: self.create_database(spec.database, credentials)),
                ("restore", lambda: self._restore_step(spec, credentials, result)),
                ("introspect", lambda: self._introspect_step(spec, credentials, result)),
            ]
        else:
            raise ConfigurationError(
                message=f"Build spec for {spec.database} has neither a source nor a backup"
            )

        try:
            run_series(self._tracked(name, step, result) for name, step in steps)
        except ExtDeployError as err:
            logger.error("init database error: %s", err)
            raise
        return result

    @staticmethod
    def _tracked(name: str, step: Callable[[], object], result: ProvisionResult) -> Callable[[], object]:
        def run() -> object:
            value = step()
            result.steps.append(name)
            return value

        return run

    def _maintenance_credentials(self, credentials: ConnectionCredentials) -> ConnectionCredentials:
        return credentials.with_database(self.maintenance_database)

    def drop_database(self, database: str, credentials: ConnectionCredentials) -> None:
        logger.info("Dropping database %s", database)
        self.query_client.query(
            format_sql(DROP_DATABASE_SQL, database), self._maintenance_credentials(credentials)
        )

    def create_database(self, database: str, credentials: ConnectionCredentials) -> None:
        logger.info("Creating database %s", database)
        self.query_client.query(
            format_sql(CREATE_DATABASE_SQL, database, self.template_database),
            self._maintenance_credentials(credentials),
        )

    def schema_path(self, spec: BuildSpec) -> Path:
        """Schema file located alongside the source file."""
        if spec.source is None:
            raise ConfigurationError(message=f"Build spec for {spec.database} has no source")
        return Path(spec.source).parent / self.schema_filename

    def build_schema(self, spec: BuildSpec, credentials: ConnectionCredentials) -> None:
        logger.info("Building schema for database %s", spec.database)
        self._apply_file(self.schema_path(spec), credentials.with_database(spec.database))

    def populate_data(self, spec: BuildSpec, credentials: ConnectionCredentials) -> None:
        logger.info("Populating data for database %s from %s", spec.database, spec.source)
        if spec.source is None:
            raise ConfigurationError(message=f"Build spec for {spec.database} has no source")
        self._apply_file(Path(spec.source), credentials.with_database(spec.database))

    def restore_backup(self, spec: BuildSpec, credentials: ConnectionCredentials) -> None:
        """Restore spec.backup into the target database with pg_restore."""
        if spec.backup is None:
            raise ConfigurationError(message=f"Build spec for {spec.database} has no backup")
        logger.info("Restoring database %s from %s", spec.database, spec.backup)
        target = credentials.with_database(spec.database)
        self.runner.run(
            self.commands.restore(target, Path(spec.backup)),
            env=self.commands.environment(target),
        )

    def _apply_file(self, path: Path, credentials: ConnectionCredentials) -> None:
        self.runner.run(
            self.commands.apply_file(credentials, path),
            env=self.commands.environment(credentials),
        )

    def _restore_step(
        self, spec: BuildSpec, credentials: ConnectionCredentials, result: ProvisionResult
    ) -> None:
        try:
            self.restore_backup(spec, credentials)
        except ProcessExecutionError as err:
            if self.strict_restore:
                raise
            # pg_restore also exits non-zero on partial-restore warnings
            logger.warning("Ignoring restore db error: %s", err)
            result.restore_error = str(err)

    def _introspect_step(
        self, spec: BuildSpec, credentials: ConnectionCredentials, result: ProvisionResult
    ) -> None:
        extensions = self.inspector(credentials.with_database(spec.database))
        spec.extensions = list(extensions)
        result.extensions = list(extensions)
