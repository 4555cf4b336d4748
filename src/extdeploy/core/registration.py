"""
Registration SQL

Generates the statements that grant administrative access to an extension,
record it in the bookkeeping tables, and record its dependency edges.
"""

from extdeploy.core.manifest import ExtensionDescriptor
from extdeploy.core.templating import format_sql

GRANT_ROLE_EXT_SQL = "select xt.grant_role_ext('ADMIN', '%@');\n"
REGISTER_NOTICE_SQL = 'do $$ plv8.elog(NOTICE, "About to register extension %@"); $$ language plv8;\n'
REGISTER_EXTENSION_SQL = "select xt.register_extension('%@', '%@', '%@', '', %@);\n"
REGISTER_DEPENDENCY_SQL = "select xt.register_extension_dependency('%@', '%@');\n"


def build_registration_sql(descriptor: ExtensionDescriptor, location: str | None = None) -> str:
    """Build registration SQL for an extension and its dependencies.

    Every step prepends to the text built so far. Dependencies are processed
    in listed order and the extension's own grant/registration is prepended
    last, so the emitted order is: own grant, own registration, then each
    dependency's registration and grant in reverse of the listed order.
    """
    name = descriptor.name
    register_sql = ""
    for dependency in descriptor.dependencies:
        register_sql = (
            format_sql(REGISTER_DEPENDENCY_SQL, name, dependency)
            + format_sql(GRANT_ROLE_EXT_SQL, dependency)
            + register_sql
        )

    own_sql = (
        format_sql(GRANT_ROLE_EXT_SQL, name)
        + format_sql(REGISTER_NOTICE_SQL, name)
        + format_sql(
            REGISTER_EXTENSION_SQL,
            name,
            descriptor.description_text,
            location if location is not None else (descriptor.location or ""),
            descriptor.load_order,
        )
    )
    return own_sql + register_sql
