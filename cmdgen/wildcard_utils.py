# wildcard_utils.py
"""
Wildcard markers found in generated sentences, and the identity groups they form.

    {name[?][ subtype][ id][ where <clause>][ meta: <text>]}

    {object}                          any object
    {location? placement 2}           placement #2, shown obfuscated
    {object where category = {category 1}}
    {question meta: ask {name 1} about it}

Wildcards nested in a where clause or in metadata are registered like any
other and replaced in the outer text by a <<keycode>> reference.
"""

import re
from collections import Counter

from .errors import WildcardSyntaxError
from .scanner import (
    find_close,
    is_digit,
    is_ident_char,
    read_char,
    read_keyword,
    read_lower_run,
    read_uint,
    skip_quoted,
    skip_spaces,
)

AUTO_ID_START = 1000

WILDCARD_NAMES = frozenset({
    "object", "aobject", "kobject",
    "location", "beacon", "placement", "room",
    "name", "male", "female",
    "category", "gesture", "question",
    "pron", "void",
})

RESERVED_SUBTYPES = ("meta", "where")

# reference left in where/meta text in place of a nested wildcard
REF_PATTERN = re.compile(r"<<([a-z]+\d{4,})>>")


def make_keycode(name: str, wildcard_id: int) -> str:
    return f"{name}{wildcard_id:04d}"


def make_reference(keycode: str) -> str:
    return f"<<{keycode}>>"


class KeycodeCounter:
    """
    Source of automatic wildcard ids. Owned by one generator and never reset,
    so automatic ids never repeat within it.
    """

    def __init__(self, start: int = AUTO_ID_START):
        self.next_id = start

    def next(self) -> int:
        value = self.next_id
        self.next_id += 1
        return value

# ------------------------------ Occurrences ---------------------------------


class TextWildcard:
    """One {...} marker as written in the text."""

    def __init__(self, name: str, obfuscated: bool = False, subtype: str | None = None,
                 wildcard_id: int = -1, where: str | None = None, metadata: str | None = None,
                 start: int = 0, end: int = 0, value: str = "", nested: bool = False):
        self.name = name
        self.obfuscated = obfuscated
        self.subtype = subtype
        self.id = wildcard_id
        self.where = where
        self.metadata = metadata
        self.start = start
        self.end = end
        self.value = value
        self.nested = nested

    @property
    def keycode(self) -> str:
        return make_keycode(self.name, self.id)

    @property
    def is_known(self) -> bool:
        return self.name in WILDCARD_NAMES

    def __repr__(self):
        return f"TextWildcard({self.value!r}, keycode={self.keycode!r})"


def _find_where_end(s: str, i: int) -> int | None:
    """
    End of a where clause starting at i: the closing '}' of the wildcard or a
    top-level 'meta:'. Braces of nested wildcards are skipped, and so are quoted
    strings outside them (nested meta text is free text).
    """
    depth = 0
    L = len(s)
    while i < L:
        c = s[i]
        if depth == 0 and c in "'\"":
            i = skip_quoted(s, i)
            continue
        if c == "\\":
            i += 2
            continue
        if c == "{":
            depth += 1
        elif c == "}":
            if depth == 0:
                return i
            depth -= 1
        elif depth == 0 and c == "m" and not is_ident_char(s[i - 1]):
            k = read_keyword(s, i, "meta")
            if k is not None and read_char(s, skip_spaces(s, k), ":") is not None:
                return i
        i += 1
    return None


class WildcardScanner:
    """
    Extracts wildcard occurrences from text. Every occurrence found, nested or
    not, is appended to 'occurrences' in order of appearance.
    """

    def __init__(self, counter: KeycodeCounter | None = None):
        self.counter = counter or KeycodeCounter()
        self.occurrences: list[TextWildcard] = []

    def scan(self, text: str) -> list[TextWildcard]:
        """Return the top-level occurrences of 'text'."""
        top_level = []
        i = 0
        L = len(text)
        while i < L:
            if text[i] != "{":
                i += 1
                continue
            w = self.read_wildcard(text, i)
            if w is None:
                i += 1
                continue
            top_level.append(w)
            i = w.end
        return top_level

    def read_wildcard(self, s: str, i: int, nested: bool = False) -> TextWildcard | None:
        """
        Read the wildcard whose '{' is at s[i]. Returns None (nothing consumed)
        when the text there is not a well formed wildcard.
        """
        start = i
        j = skip_spaces(s, i + 1)
        name, j = read_lower_run(s, j)
        if not name:
            return None

        obfuscated = False
        k = read_char(s, j, "?")
        if k is not None:
            obfuscated, j = True, k

        j = skip_spaces(s, j)
        subtype, k = read_lower_run(s, j)
        if subtype and subtype not in RESERVED_SUBTYPES:
            j = k
        else:
            subtype = None

        j = skip_spaces(s, j)
        wildcard_id, j = read_uint(s, j)
        if wildcard_id is None and j < len(s) and is_digit(s[j]):
            raise WildcardSyntaxError(f"Wildcard id too long in {s[start:]!r} (use ids below {AUTO_ID_START})")

        raw_where = None
        j = skip_spaces(s, j)
        k = read_keyword(s, j, "where")
        if k is not None:
            end = _find_where_end(s, k)
            if end is None:
                return None
            raw_where = s[k:end].strip()
            j = end

        raw_meta = None
        j = skip_spaces(s, j)
        k = read_keyword(s, j, "meta")
        if k is not None:
            k = read_char(s, skip_spaces(s, k), ":")
        if k is not None:
            close = find_close(s, k, "{", "}")
            if close is None:
                return None
            raw_meta = s[k:close]
        else:
            # anything else up to the closing brace is ignored
            close = find_close(s, j, "{", "}")
            if close is None:
                return None

        if wildcard_id is None:
            wildcard_id = self.counter.next()
        elif wildcard_id >= AUTO_ID_START:
            raise WildcardSyntaxError(
                f"Wildcard id {wildcard_id} in {s[start:close + 1]!r} is reserved (use ids below {AUTO_ID_START})"
            )

        w = TextWildcard(name, obfuscated, subtype, wildcard_id, start=start, end=close + 1,
                         value=s[start:close + 1], nested=nested)
        self.occurrences.append(w)
        if raw_where is not None:
            w.where = self._replace_nested(raw_where, unescape=False).strip() or None
        if raw_meta is not None:
            w.metadata = self._replace_nested(raw_meta, unescape=True).strip()
        return w

    def _replace_nested(self, text: str, unescape: bool) -> str:
        """
        Register nested wildcards and put <<keycode>> references in their place.
        With 'unescape', \\{ \\} and \\\\ become the plain character.
        """
        out = []
        i = 0
        L = len(text)
        while i < L:
            c = text[i]
            if c == "\\" and i + 1 < L:
                if unescape and text[i + 1] in "{}\\":
                    out.append(text[i + 1])
                else:
                    out.append(text[i:i + 2])
                i += 2
                continue
            if c == "{":
                inner = self.read_wildcard(text, i, nested=True)
                if inner is not None:
                    out.append(make_reference(inner.keycode))
                    i = inner.end
                    continue
            out.append(c)
            i += 1
        return "".join(out)


def find_wildcards(text: str, counter: KeycodeCounter | None = None):
    """
    Scan 'text'. Returns (top_level, occurrences): the wildcards written
    directly in the text, and every occurrence including nested ones.
    """
    scanner = WildcardScanner(counter)
    top_level = scanner.scan(text)
    return top_level, scanner.occurrences


def find_references(text: str | None) -> list[str]:
    if not text:
        return []
    return REF_PATTERN.findall(text)

# ----------------------------- Identity groups ------------------------------


class Wildcard:
    """
    All occurrences sharing a keycode. They resolve to one entity.
    """

    def __init__(self, first: TextWildcard):
        self.keycode = first.keycode
        self.members: list[TextWildcard] = [first]
        self.replacement = None
        self.obfuscated = None
        self.keyword: str | None = None
        self.resolved = False

    def add(self, w: TextWildcard):
        if w.keycode != self.keycode:
            raise ValueError(f"Keycode mismatch: {w.keycode} added to {self.keycode}")
        self.members.append(w)

    @property
    def name(self) -> str:
        return self.members[0].name

    @property
    def subtype(self) -> str | None:
        """Most frequent subtype among members; ties go to the first written."""
        counts = Counter(m.subtype for m in self.members if m.subtype)
        if not counts:
            return None
        return counts.most_common(1)[0][0]

    @property
    def clauses(self) -> list[str]:
        """Where clause of every member that has one, in order."""
        return [m.where for m in self.members if m.where]

    @property
    def where(self) -> str:
        return " and ".join(self.clauses)

    @property
    def references(self) -> list[str]:
        return find_references(self.where)

    def __len__(self):
        return len(self.members)

    def __iter__(self):
        return iter(self.members)

    def __repr__(self):
        return f"Wildcard({self.keycode!r}, {len(self.members)})"


def group_wildcards(occurrences) -> dict[str, Wildcard]:
    """Identity groups keyed by keycode, in first-appearance order."""
    groups: dict[str, Wildcard] = {}
    for w in occurrences:
        group = groups.get(w.keycode)
        if group is None:
            groups[w.keycode] = Wildcard(w)
        else:
            group.add(w)
    return groups
