# errors.py


class CommandGeneratorError(Exception):
    """Base class for everything the command generator raises."""


class GrammarError(CommandGeneratorError):
    """The grammar text or file cannot be turned into a usable grammar."""


class RecursiveGrammarError(CommandGeneratorError):
    """Sentence expansion exceeded the maximum recursion depth."""

    def __init__(self, depth: int):
        super().__init__(f"Can't generate sentence: grammar is recursive (depth > {depth})")
        self.depth = depth


class WhereSyntaxError(CommandGeneratorError):
    """A where clause could not be parsed."""

    def __init__(self, message: str, clause: str = "", position: int = -1):
        if clause:
            message = f"{message} in where clause {clause!r} (at {position})"
        super().__init__(message)
        self.clause = clause
        self.position = position


class WildcardSyntaxError(CommandGeneratorError):
    """A wildcard marker is structurally invalid."""


class PoolExhaustedError(CommandGeneratorError):
    """No candidate left in a pool satisfies the active filters."""

    def __init__(self, domain: str, keyword: str | None = None, where: str | None = None):
        detail = domain
        if keyword and keyword != domain:
            detail += f" ({keyword})"
        if where:
            detail += f" where {where}"
        super().__init__(f"No candidates left for {detail}")
        self.domain = domain
        self.keyword = keyword
        self.where = where


class EntityDataError(CommandGeneratorError):
    """Entity data (mapping or YAML text) has an unexpected shape."""
