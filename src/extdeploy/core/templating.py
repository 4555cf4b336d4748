"""
Positional SQL templating.

Each ``%@`` placeholder is replaced, left to right, by the next argument. Values
are inserted verbatim: there is no quoting or escaping, so this must never be
fed untrusted input.
"""

PLACEHOLDER = "%@"


def format_sql(template: str, *args: object) -> str:
    """Substitute positional arguments into ``%@`` placeholders.

    Placeholders without a matching argument are left as-is; surplus
    arguments are ignored.
    """
    parts = template.split(PLACEHOLDER)
    rendered = [parts[0]]
    for index, part in enumerate(parts[1:]):
        rendered.append(str(args[index]) if index < len(args) else PLACEHOLDER)
        rendered.append(part)
    return "".join(rendered)
