"""api-cli errors - one exception type per failure kind."""

from pathlib import Path


class ApiCliError(Exception):
    """Base class for every failure surfaced to the CLI boundary."""


class IoError(ApiCliError):
    """Reading or writing a definition file failed."""

    def __init__(self, error: OSError, path: Path | None = None):
        self.path = path
        self.error = error
        location = f" ({path})" if path else ""
        super().__init__(f"I/O error{location}: {error}")


class DeserializationError(ApiCliError):
    """A YAML or JSON document could not be parsed or validated."""

    def __init__(self, fmt: str, error: Exception | str, path: Path | None = None):
        self.fmt = fmt
        self.path = path
        self.error = error
        location = f" ({path})" if path else ""
        super().__init__(f"Invalid {fmt.upper()}{location}: {error}")


class NetworkError(ApiCliError):
    """The request could not be sent or no response was received."""


class TemplateRenderError(ApiCliError):
    """A template referenced a variable that is not in scope."""

    def __init__(self, variable: str, template: str):
        self.variable = variable
        self.template = template
        super().__init__(
            f"Template render error: variable '{variable}' is not defined "
            f"(in template {template!r})",
        )


class ConfigurationError(ApiCliError):
    """Request definition data that cannot be turned into a valid request.

    Invalid method, URL, header name or value, base64 payload, JSON body
    after rendering, or JSON-path expression.
    """


class NotFoundError(ApiCliError):
    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"{kind.capitalize()} not found: {name}")


class AlreadyExistsError(ApiCliError):
    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"{kind.capitalize()} already exists: {name}")
