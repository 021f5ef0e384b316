# task.py
import re

_MULTISPACE = re.compile(r" {2,}")
_SPACE_BEFORE_PUNCT = re.compile(r" ([,;.:?])")


class Token:
    """
    A piece of a task: literal text (value is None) or the entity that
    replaced a wildcard. 'key' is the source text the token came from.
    """

    def __init__(self, key: str, value=None, metadata=None):
        self.key = key
        self.value = value
        self.metadata: list[str] = list(metadata or [])
        if value is not None:
            self.metadata.extend(getattr(value, "metadata", None) or [])

    @property
    def name(self) -> str:
        return self.key if self.value is None else self.value.name

    @property
    def is_literal(self) -> bool:
        return self.value is None

    def __str__(self):
        if self.value is None:
            return self.key
        return f"{self.key} => {self.value.name}"

    def __repr__(self):
        return f"Token({self.key!r}, {self.name!r})"


def cleanup_text(s: str) -> str:
    """Collapse repeated spaces, drop spaces before , ; . : ? and trim the ends."""
    s = _MULTISPACE.sub(" ", s)
    return _SPACE_BEFORE_PUNCT.sub(r"\1", s).strip()


class Task:
    """
    Ordered tokens of one generated command. 'assignments' maps each resolved
    keycode to the concrete name it was bound to.
    """

    def __init__(self, tokens=None, assignments: dict | None = None, grammar_name: str = ""):
        self.tokens: list[Token] = list(tokens or [])
        self.assignments: dict[str, str] = dict(assignments or {})
        self.grammar_name = grammar_name

    @property
    def metadata(self) -> list[str]:
        lines = []
        for token in self.tokens:
            lines.extend(token.metadata)
        return lines

    def __str__(self):
        return cleanup_text("".join(t.name for t in self.tokens))

    def __repr__(self):
        return f"Task({str(self)!r})"
