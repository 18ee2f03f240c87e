import re

_BRACES = re.compile(r"[{}]")
_ESCAPED_BRACES = re.compile(r"\\([{}])")
# An unescaped {name} reference inside a prompt template.
_TEMPLATE_VAR = re.compile(r"(?<!\\)\{([^{}\\]+)\}")


def escape_braces(text: str) -> str:
    """Prefix every '{' and '}' with a backslash so the text is never read as a template."""
    return _BRACES.sub(lambda m: "\\" + m.group(0), text)


def unescape_braces(text: str) -> str:
    return _ESCAPED_BRACES.sub(lambda m: m.group(1), text)


def template_variables(template: str) -> list:
    """Names of the unescaped {var} references in *template*, in order of first use."""
    names = []
    for match in _TEMPLATE_VAR.finditer(template):
        name = match.group(1)
        if name not in names:
            names.append(name)
    return names
