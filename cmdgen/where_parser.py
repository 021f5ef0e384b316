"""
Command Prompts: where_parser
Tokenizer, parser and evaluator for the boolean filter expressions found in
wildcard where clauses, e.g.

    {object where category="drinks" and tier <= 3}
    {location placement where not room = "kitchen"}

Grammar (no precedence, no parentheses; operators bind left to right):

    clause    := term (BOOLOP term)*
    term      := [not] condition
    condition := identifier comparator literal

A malformed clause raises WhereSyntaxError; it is never treated as "no filter".
"""

from collections import namedtuple
from enum import Enum

from .errors import WhereSyntaxError
from .scanner import (
    is_alpha,
    is_digit,
    read_identifier,
    read_number,
    read_quoted,
    skip_spaces,
)

# Returned by property lookups when an entity has no such property.
MISSING = object()

# Token kinds
IDENT = "identifier"
OP = "comparator"
STRING = "string"
NUMBER = "number"
BOOL = "boolean"
NULL = "null"
BOOLOP = "boolean operator"
NOT = "not"
END = "end"

LITERAL_KINDS = (STRING, NUMBER, BOOL, NULL)
ORDERING_OPS = (">", ">=", "<", "<=")

WhereToken = namedtuple("WhereToken", "kind text value pos")

_TRUE_WORDS = ("true", "yes", "1")
_FALSE_WORDS = ("false", "no", "0")

# ------------------------------- Tokenizer ----------------------------------


def _read_operator(s: str, i: int) -> tuple[str | None, int]:
    c = s[i]
    nxt = s[i + 1] if i + 1 < len(s) else ""
    if c == "=":
        return "=", i + (2 if nxt == "=" else 1)
    if c == "!":
        if nxt == "=":
            return "!=", i + 2
        return None, i
    if c == ">":
        if nxt == "=":
            return ">=", i + 2
        return ">", i + 1
    if c == "<":
        if nxt == "=":
            return "<=", i + 2
        if nxt == ">":
            return "!=", i + 2
        return "<", i + 1
    return None, i


def tokenize(text: str) -> list[WhereToken]:
    """
    Split a where clause into tokens. The list always ends with an END token.
    """
    tokens = []
    i = skip_spaces(text, 0)
    L = len(text)
    while i < L:
        c = text[i]
        start = i
        if c in "'\"":
            value, i = read_quoted(text, i)
            if value is None:
                raise WhereSyntaxError("Unterminated string", text, start)
            tokens.append(WhereToken(STRING, text[start:i], value, start))
        elif c in "=!<>":
            op, i = _read_operator(text, i)
            if op is None:
                raise WhereSyntaxError("Invalid comparator", text, start)
            tokens.append(WhereToken(OP, op, op, start))
        elif is_digit(c) or c in "+-.":
            value, i = read_number(text, i)
            if value is None:
                raise WhereSyntaxError("Invalid number", text, start)
            tokens.append(WhereToken(NUMBER, text[start:i], value, start))
        elif is_alpha(c) or c == "_":
            word, i = read_identifier(text, i)
            lowered = word.lower()
            if lowered in ("and", "or", "xor"):
                tokens.append(WhereToken(BOOLOP, word, lowered, start))
            elif lowered == "not":
                tokens.append(WhereToken(NOT, word, lowered, start))
            elif lowered in ("true", "false"):
                tokens.append(WhereToken(BOOL, word, lowered == "true", start))
            elif lowered == "null":
                tokens.append(WhereToken(NULL, word, None, start))
            else:
                tokens.append(WhereToken(IDENT, word, word, start))
        else:
            raise WhereSyntaxError(f"Unexpected character {c!r}", text, start)
        i = skip_spaces(text, i)
    tokens.append(WhereToken(END, "", None, L))
    return tokens

# ------------------------------ Value coercion ------------------------------


def _as_text(value) -> str:
    if isinstance(value, Enum):
        return value.name.lower()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_number(value) -> float | None:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_bool(value) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
    return None


def _compare_ordered(op: str, a, b) -> bool:
    if op == "=":
        return a == b
    if op == "!=":
        return a != b
    if op == ">":
        return a > b
    if op == ">=":
        return a >= b
    if op == "<":
        return a < b
    if op == "<=":
        return a <= b
    return False


def default_lookup(entity, name: str):
    """Property lookup used when the caller does not supply one."""
    getter = getattr(entity, "get_property", None)
    if getter is not None:
        return getter(name)
    return getattr(entity, name, MISSING)

# ------------------------------ Expression tree -----------------------------


class Condition:
    """A single 'property comparator literal' comparison."""

    def __init__(self, property_name: str, operator: str, value, kind: str):
        self.property_name = property_name
        self.operator = operator
        self.value = value
        self.kind = kind

    def evaluate(self, entity, lookup=None) -> bool:
        if entity is None:
            return False
        actual = (lookup or default_lookup)(entity, self.property_name)

        if self.kind == NULL:
            is_null = actual is MISSING or actual is None
            return is_null if self.operator == "=" else not is_null

        if actual is MISSING or actual is None:
            return False

        if self.kind == STRING:
            equal = _as_text(actual).lower() == self.value.lower()
            return equal if self.operator == "=" else not equal

        if self.kind == BOOL:
            flag = _as_bool(actual)
            if flag is None:
                return False
            return (flag == self.value) if self.operator == "=" else (flag != self.value)

        number = _as_number(actual)
        if number is None:
            return False
        return _compare_ordered(self.operator, number, float(self.value))

    def __str__(self):
        if self.kind == STRING:
            literal = '"' + self.value.replace("\\", "\\\\").replace('"', '\\"') + '"'
        elif self.kind == BOOL:
            literal = "true" if self.value else "false"
        elif self.kind == NULL:
            literal = "null"
        else:
            literal = str(self.value)
        return f"{self.property_name} {self.operator} {literal}"


class ConditionalStatement:
    """
    Combines conditions. With operator 'not' only 'a' is used.
    """

    def __init__(self, operator: str, a, b=None):
        self.operator = operator
        self.a = a
        self.b = b

    def evaluate(self, entity, lookup=None) -> bool:
        op = self.operator
        if op == "not":
            return not self.a.evaluate(entity, lookup)
        if op == "and":
            return self.a.evaluate(entity, lookup) and self.b.evaluate(entity, lookup)
        if op == "or":
            return self.a.evaluate(entity, lookup) or self.b.evaluate(entity, lookup)
        if op == "xor":
            return self.a.evaluate(entity, lookup) != self.b.evaluate(entity, lookup)
        raise ValueError(f"Operator {op!r} is not supported")

    def __str__(self):
        if self.operator == "not":
            return f"not {self.a}"
        return f"{self.a} {self.operator} {self.b}"


class WhereClause:
    """A parsed where clause. Instances are callable predicates."""

    def __init__(self, text: str, root):
        self.text = text
        self.root = root

    def evaluate(self, entity, lookup=None) -> bool:
        return self.root.evaluate(entity, lookup)

    def __call__(self, entity, lookup=None) -> bool:
        return self.root.evaluate(entity, lookup)

    def __str__(self):
        return str(self.root)

    def __repr__(self):
        return f"WhereClause({self.text!r})"

# --------------------------------- Parser -----------------------------------


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    def peek(self) -> WhereToken:
        return self.tokens[self.pos]

    def take(self) -> WhereToken:
        tok = self.tokens[self.pos]
        if tok.kind != END:
            self.pos += 1
        return tok

    def fail(self, message: str, tok: WhereToken):
        raise WhereSyntaxError(message, self.text, tok.pos)

    def parse(self) -> WhereClause:
        if self.peek().kind == END:
            self.fail("Empty where clause", self.peek())
        root = self.parse_term()
        while self.peek().kind == BOOLOP:
            op = self.take().value
            root = ConditionalStatement(op, root, self.parse_term())
        tok = self.peek()
        if tok.kind != END:
            self.fail(f"Expected a boolean operator, found {tok.text!r}", tok)
        return WhereClause(self.text, root)

    def parse_term(self):
        if self.peek().kind == NOT:
            self.take()
            return ConditionalStatement("not", self.parse_condition())
        return self.parse_condition()

    def parse_condition(self) -> Condition:
        ident = self.take()
        if ident.kind != IDENT:
            self.fail(f"Expected a property name, found {ident.text or 'end of clause'!r}", ident)
        op = self.take()
        if op.kind != OP:
            self.fail(f"Expected a comparator after {ident.text!r}", op)
        literal = self.take()
        if literal.kind not in LITERAL_KINDS:
            self.fail(f"Expected a value after {op.text!r}", literal)
        if literal.kind != NUMBER and op.value in ORDERING_OPS:
            self.fail(f"Comparator {op.value!r} needs a number", op)
        return Condition(ident.value, op.value, literal.value, literal.kind)


def parse_where(text: str) -> WhereClause:
    """Parse a where clause. Raises WhereSyntaxError on malformed input."""
    return _Parser(text).parse()


def all_of(clauses) -> WhereClause | None:
    """
    AND together clauses that were parsed separately. Each clause keeps its
    own left-to-right grouping. Returns None for no clauses.
    """
    clauses = list(clauses)
    if not clauses:
        return None
    root = clauses[0].root
    for clause in clauses[1:]:
        root = ConditionalStatement("and", root, clause.root)
    return WhereClause(" and ".join(c.text for c in clauses), root)


def quote_literal(value: str) -> str:
    """Render 'value' as a double-quoted where-clause string literal."""
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'
