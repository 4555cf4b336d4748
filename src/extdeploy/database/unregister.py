"""
Extension Unregistration

Removes a named extension's bookkeeping rows from one or more databases.
Within a database the deletions run leaf tables first and the extension row
last; different databases are handled independently of each other.
"""

import logging
from collections.abc import Sequence
from pathlib import PurePosixPath

from pydantic import BaseModel, Field

from extdeploy.config import ConnectionCredentials
from extdeploy.core.pipeline import run_each
from extdeploy.database.client import QueryClient
from extdeploy.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

UNREGISTER_SQL: tuple[str, ...] = (
    "delete from xt.usrext where usrext_id in "
    "(select usrext_id from xt.usrext inner join xt.ext on usrext_ext_id = ext_id where ext_name = %s);",
    "delete from xt.grpext where grpext_id in "
    "(select grpext_id from xt.grpext inner join xt.ext on grpext_ext_id = ext_id where ext_name = %s);",
    "delete from xt.clientcode where clientcode_id in "
    "(select clientcode_id from xt.clientcode inner join xt.ext on clientcode_ext_id = ext_id "
    "where ext_name = %s);",
    "delete from xt.dict where dict_id in "
    "(select dict_id from xt.dict inner join xt.ext on dict_ext_id = ext_id where ext_name = %s);",
    "delete from xt.extdep where extdep_id in "
    "(select extdep_id from xt.extdep inner join xt.ext "
    "on extdep_from_ext_id = ext_id or extdep_to_ext_id = ext_id where ext_name = %s);",
    "delete from xt.ext where ext_name = %s;",
)


class UnregisterTarget(BaseModel):
    """One database to unregister from, with the extension paths it names"""

    database: str
    extensions: list[str] = Field(default_factory=list)


def extension_name(extension_path: str) -> str:
    """Bare extension name: the final path segment, trailing separator ignored."""
    return PurePosixPath(extension_path.rstrip("/")).name


class ExtensionUnregisterer:
    """Delete an extension's bookkeeping rows from target databases"""

    def __init__(self, query_client: QueryClient) -> None:
        self.query_client = query_client

    def unregister(
        self, targets: Sequence[UnregisterTarget], credentials: ConnectionCredentials
    ) -> str:
        """Unregister the extension named by the first target from every target

        Returns:
            The bare extension name that was unregistered

        Raises:
            ConfigurationError: If no target or extension path is given
            AggregateExecutionError: If unregistration failed on any database
        """
        if not targets or not targets[0].extensions:
            raise ConfigurationError(message="No extension given to unregister")

        name = extension_name(targets[0].extensions[0])
        if not name:
            raise ConfigurationError(
                message=f"Cannot derive an extension name from {targets[0].extensions[0]!r}"
            )
        logger.info("Unregistering extension: %s", name)
        run_each(
            targets,
            lambda target: self.unregister_from(target.database, name, credentials),
            describe=lambda target: target.database,
        )
        return name

    def unregister_from(
        self, database: str, name: str, credentials: ConnectionCredentials
    ) -> None:
        """Run the deletion statements, in order, against one database."""
        target = credentials.with_database(database)
        for statement in UNREGISTER_SQL:
            self.query_client.query(statement, target, [name])
