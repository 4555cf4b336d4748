"""Discover which extensions are registered in a database."""

from extdeploy.config import ConnectionCredentials
from extdeploy.database.client import QueryClient

INSTALLED_EXTENSIONS_SQL = (
    "select ext_location, ext_name from xt.ext order by ext_load_order, ext_name;"
)


def extension_path(location: str | None, name: str) -> str:
    """Join a registered location and extension name into an extension path."""
    return f"{(location or '').rstrip('/')}/{name}"


def inspect_installed_extensions(
    credentials: ConnectionCredentials, query_client: QueryClient
) -> list[str]:
    """List ``<location>/<name>`` for every extension registered in credentials.database."""
    rows = query_client.query(INSTALLED_EXTENSIONS_SQL, credentials)
    return [extension_path(location, name) for location, name in rows]


class QueryExtensionInspector:
    """ExtensionInspector bound to a query client"""

    def __init__(self, query_client: QueryClient) -> None:
        self.query_client = query_client

    def __call__(self, credentials: ConnectionCredentials) -> list[str]:
        return inspect_installed_extensions(credentials, self.query_client)
