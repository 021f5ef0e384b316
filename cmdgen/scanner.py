"""
Command Prompts: scanner
Character-level read helpers shared by the grammar, wildcard and where-clause parsers.

Every reader takes the input string and a read position and returns the value
found (or None) together with the position right after what was consumed.
A failed read never moves the position.
"""

SPACES = " \t\n\r\f\v"


def is_lower(ch: str) -> bool:
    return "a" <= ch <= "z"


def is_alpha(ch: str) -> bool:
    return ("a" <= ch <= "z") or ("A" <= ch <= "Z")


def is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def is_ident_char(ch: str) -> bool:
    return is_alpha(ch) or is_digit(ch) or ch == "_"


def skip_spaces(s: str, i: int) -> int:
    L = len(s)
    while i < L and s[i] in SPACES:
        i += 1
    return i


def read_char(s: str, i: int, ch: str) -> int | None:
    """Return i + 1 when s[i] == ch, otherwise None."""
    if i < len(s) and s[i] == ch:
        return i + 1
    return None


def read_keyword(s: str, i: int, word: str) -> int | None:
    """
    Match 'word' at i as a whole word (not followed by a letter, digit or '_').
    """
    if not s.startswith(word, i):
        return None
    end = i + len(word)
    if end < len(s) and is_ident_char(s[end]):
        return None
    return end


def read_lower_run(s: str, i: int) -> tuple[str, int]:
    start = i
    L = len(s)
    while i < L and is_lower(s[i]):
        i += 1
    return s[start:i], i


def read_identifier(s: str, i: int) -> tuple[str | None, int]:
    """C-like identifier: a letter or '_' followed by letters, digits or '_'."""
    if i >= len(s) or not (is_alpha(s[i]) or s[i] == "_"):
        return None, i
    start = i
    i += 1
    L = len(s)
    while i < L and is_ident_char(s[i]):
        i += 1
    return s[start:i], i


def read_uint(s: str, i: int, max_digits: int = 5) -> tuple[int | None, int]:
    start = i
    L = len(s)
    while i < L and is_digit(s[i]):
        i += 1
    if i == start or (i - start) > max_digits:
        return None, start
    return int(s[start:i]), i


def read_number(s: str, i: int) -> tuple[int | float | None, int]:
    """
    Read an optionally signed number with optional decimals and exponent.
    Integers come back as int, anything with '.' or an exponent as float.
    """
    start = i
    L = len(s)
    is_float = False
    if i < L and s[i] in "+-":
        i += 1
    digits_start = i
    while i < L and is_digit(s[i]):
        i += 1
    int_digits = i - digits_start
    if i < L and s[i] == ".":
        i += 1
        frac_start = i
        while i < L and is_digit(s[i]):
            i += 1
        if i == frac_start:
            return None, start
        is_float = True
    elif int_digits == 0:
        return None, start
    if i < L and s[i] in "eE":
        j = i + 1
        if j < L and s[j] in "+-":
            j += 1
        exp_start = j
        while j < L and is_digit(s[j]):
            j += 1
        if j == exp_start:
            return None, start
        i = j
        is_float = True
    text = s[start:i]
    return (float(text) if is_float else int(text)), i


def read_quoted(s: str, i: int) -> tuple[str | None, int]:
    """
    Read a string delimited by the quote character found at s[i] (' or ").
    A backslash escapes the delimiter and the backslash itself; any other
    escape sequence is preserved verbatim.
    """
    if i >= len(s) or s[i] not in "'\"":
        return None, i
    quote = s[i]
    start = i
    i += 1
    L = len(s)
    buf = []
    while i < L:
        c = s[i]
        if c == quote:
            return "".join(buf), i + 1
        if c == "\\":
            if i + 1 >= L:
                break
            nxt = s[i + 1]
            if nxt != quote and nxt != "\\":
                buf.append(c)
            buf.append(nxt)
            i += 2
            continue
        buf.append(c)
        i += 1
    return None, start


def skip_quoted(s: str, i: int) -> int:
    """Return the index right after the quoted string at i (or len(s) if unterminated)."""
    quote = s[i]
    i += 1
    L = len(s)
    while i < L:
        if s[i] == "\\":
            i += 2
            continue
        if s[i] == quote:
            return i + 1
        i += 1
    return L


def find_close(s: str, i: int, open_ch: str = "(", close_ch: str = ")") -> int | None:
    """
    'i' points right after an opening character. Returns the index of the
    matching closing character, or None when unbalanced. Backslash escapes
    the next character.
    """
    depth = 1
    L = len(s)
    while i < L:
        c = s[i]
        if c == "\\":
            i += 2
            continue
        if c == open_ch:
            depth += 1
        elif c == close_ch:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def split_top_level(s: str, sep: str = "|", open_ch: str = "(", close_ch: str = ")") -> list[str]:
    """
    Split on 'sep' only where it is not nested inside open/close pairs and not
    escaped. Segments are returned untrimmed; escapes are kept as written.
    """
    parts = []
    buf = []
    depth = 0
    i = 0
    L = len(s)
    while i < L:
        c = s[i]
        if c == "\\" and i + 1 < L:
            buf.append(s[i:i + 2])
            i += 2
            continue
        if c == open_ch:
            depth += 1
        elif c == close_ch and depth > 0:
            depth -= 1
        elif c == sep and depth == 0:
            parts.append("".join(buf))
            buf = []
            i += 1
            continue
        buf.append(c)
        i += 1
    parts.append("".join(buf))
    return parts
