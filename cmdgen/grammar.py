"""
Command Prompts: grammar
Loads production-rule grammars and expands them into raw command sentences.

    ; grammar name Bring me
    ; grammar tier Easy
    ; import common.txt
    $Main    = $bring me the {object} from the {placement}
    $bring   = (bring | give) | hand

Parenthesised groups are split into synthetic rules ($Main_0, $Main_1, ...)
once, when the grammar is built. Sentence generation only ever picks one
alternative per non-terminal.
"""

import functools
import logging
import os
import re

from .entities import DifficultyDegree
from .errors import GrammarError, RecursiveGrammarError
from .scanner import find_close, split_top_level

logger = logging.getLogger(__name__)

DEFAULT_GRAMMAR_ROOT = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "grammars")
)

MAX_RECURSION_DEPTH = 1000
START_SYMBOL = "$Main"

RULE_PATTERN = re.compile(r"^\s*(\$[0-9A-Za-z_]+)\s*=\s*(.*)$")
NONTERMINAL_PATTERN = re.compile(r"\$[0-9A-Za-z_]+")
NAME_PATTERN = re.compile(r"^\s*grammar\s+name\s+(.*?)\s*$", re.IGNORECASE)
TIER_PATTERN = re.compile(r"^\s*grammar\s+tier\s+(\w+)", re.IGNORECASE)
IMPORT_PATTERN = re.compile(
    r"^\s*(load|import)\s+(\"[^\"]+\"|'[^']+'|\S+)(?:\s+as\s+(\$[0-9A-Za-z_]+))?\s*$",
    re.IGNORECASE,
)
UNESCAPE_PATTERN = re.compile(r"\\([()|])")

# ---------------------------- Production rules ------------------------------


def split_alternatives(text: str) -> list[str]:
    """
    Split the right-hand side of a rule on top-level '|'. An alternative that
    is wrapped entirely in one pair of parentheses is unwrapped and its
    content split as well.
    """
    alternatives = []
    for part in split_top_level(text):
        part = part.strip()
        if part.startswith("(") and find_close(part, 1) == len(part) - 1:
            alternatives.extend(split_alternatives(part[1:-1]))
        else:
            alternatives.append(part)
    return alternatives


class ProductionRule:
    def __init__(self, nonterminal: str, alternatives=None):
        self.nonterminal = nonterminal
        self.alternatives: list[str] = list(alternatives or [])

    @classmethod
    def from_string(cls, line: str):
        """Parse '$Name = alt | alt'. Returns None when the line is not a rule."""
        m = RULE_PATTERN.match(line)
        if not m:
            return None
        body = m.group(2).strip()
        if not body:
            return None
        return cls(m.group(1), split_alternatives(body))

    def add_alternatives(self, alternatives):
        if isinstance(alternatives, ProductionRule):
            alternatives = alternatives.alternatives
        for alt in alternatives:
            if alt not in self.alternatives:
                self.alternatives.append(alt)

    def __len__(self):
        return len(self.alternatives)

    def __repr__(self):
        return f"{self.nonterminal} = {' | '.join(self.alternatives)}"


def _merge_rule(rules: dict, rule: ProductionRule):
    if not rule.alternatives:
        return
    if rule.nonterminal in rules:
        rules[rule.nonterminal].add_alternatives(rule)
    else:
        rules[rule.nonterminal] = rule


def _fresh_nonterminal(parent: str, index: int, rules: dict) -> tuple[str, int]:
    while True:
        name = f"{parent}_{index}"
        index += 1
        if name not in rules:
            return name, index


def expand_rules(rules: dict):
    """
    Replace every parenthesised group with a reference to a new synthetic rule.
    Rules created here are appended to the worklist and expanded in turn.
    Unbalanced parentheses leave the rest of the alternative untouched.
    """
    worklist = list(rules.values())
    ix = 0
    while ix < len(worklist):
        rule = worklist[ix]
        ix += 1
        next_index = 0
        for n, alt in enumerate(rule.alternatives):
            i = 0
            while i < len(alt):
                c = alt[i]
                if c == "\\":
                    i += 2
                    continue
                if c != "(":
                    i += 1
                    continue
                close = find_close(alt, i + 1)
                if close is None:
                    break
                name, next_index = _fresh_nonterminal(rule.nonterminal, next_index, rules)
                sub = ProductionRule(name, split_alternatives(alt[i + 1:close]))
                rules[name] = sub
                worklist.append(sub)
                alt = alt[:i] + name + alt[close + 1:]
                i += len(name)
            rule.alternatives[n] = alt

# -------------------------------- Grammar -----------------------------------


class Grammar:
    """
    A named set of production rules. Read-only once built.
    """

    def __init__(self, name: str = "", tier=DifficultyDegree.UNKNOWN,
                 rules: dict | None = None, path: str | None = None):
        self.name = name
        self.tier = DifficultyDegree.parse(tier, DifficultyDegree.UNKNOWN)
        self.rules: dict[str, ProductionRule] = rules if rules is not None else {}
        self.path = path

    @property
    def has_start_rule(self) -> bool:
        return START_SYMBOL in self.rules

    def find_replacement(self, nonterminal: str, rng) -> str:
        """Random alternative of 'nonterminal'; '' when the rule does not exist."""
        rule = self.rules.get(nonterminal)
        if rule is None or not rule.alternatives:
            return ""
        return rng.choice(rule.alternatives)

    def generate_sentence(self, rng) -> str:
        """
        Expand $Main into a flat string of literal text and wildcard markers.
        Each non-terminal is fully expanded before being spliced in, and the
        scan resumes right after the inserted text.
        """
        # each frame: [text, read position, expanded pieces]
        stack = [[self.find_replacement(START_SYMBOL, rng), 0, []]]
        while True:
            frame = stack[-1]
            text, pos, pieces = frame
            m = NONTERMINAL_PATTERN.search(text, pos)
            if m is not None:
                pieces.append(text[pos:m.start()])
                frame[1] = m.end()
                if len(stack) >= MAX_RECURSION_DEPTH:
                    raise RecursiveGrammarError(MAX_RECURSION_DEPTH)
                stack.append([self.find_replacement(m.group(0), rng), 0, []])
                continue
            pieces.append(text[pos:])
            expanded = "".join(pieces)
            stack.pop()
            if not stack:
                return UNESCAPE_PATTERN.sub(r"\1", expanded)
            stack[-1][2].append(expanded)

    def __repr__(self):
        return f"Grammar(name={self.name!r}, tier={self.tier.name.capitalize()}, rules={len(self.rules)})"

# -------------------------------- Loading -----------------------------------


def _split_comments(text: str) -> tuple[list[str], list[tuple[int, str]]]:
    """
    Strip '//', '/* */', '#', ';' and '%' comments.
    Returns (code lines, [(line number, single-line comment text)]).
    """
    code_lines = []
    comments = []
    in_block = False
    for lineno, raw in enumerate(text.splitlines()):
        line = raw.strip()
        code = []
        i = 0
        L = len(line)
        while i < L:
            if in_block:
                end = line.find("*/", i)
                if end == -1:
                    break
                in_block = False
                i = end + 2
                continue
            c = line[i]
            if c == "/" and line.startswith("//", i):
                comments.append((lineno, line[i + 2:]))
                break
            if c == "/" and line.startswith("/*", i):
                in_block = True
                i += 2
                continue
            if c in "#;%":
                comments.append((lineno, line[i + 1:]))
                break
            code.append(c)
            i += 1
        code_line = "".join(code).strip()
        if code_line:
            code_lines.append((lineno, code_line))
    return code_lines, comments


class _GrammarLoader:
    """
    Builds the raw (unexpanded) rule set of one grammar file, following its
    load/import directives. Rules are expanded once, by the outermost call.
    """

    def __init__(self):
        self.loading: list[str] = []

    def read_rules(self, text: str, path: str | None = None):
        base_dir = os.path.dirname(path) if path else os.getcwd()
        if path:
            self.loading.append(os.path.abspath(path))
        try:
            name, tier = None, DifficultyDegree.UNKNOWN
            rules: dict[str, ProductionRule] = {}
            code_lines, comments = _split_comments(text)
            events = [(lineno, "comment", c) for lineno, c in comments]
            events += [(lineno, "code", c) for lineno, c in code_lines]
            # comments sort before code on the same line; directives apply first
            events.sort(key=lambda e: (e[0], e[1] != "comment"))
            for _, kind, content in events:
                if kind == "code":
                    rule = ProductionRule.from_string(content)
                    if rule is None:
                        logger.debug("Ignoring grammar line %r", content)
                        continue
                    _merge_rule(rules, rule)
                    continue
                if name is None:
                    m = NAME_PATTERN.match(content)
                    if m:
                        name = m.group(1)
                if tier == DifficultyDegree.UNKNOWN:
                    m = TIER_PATTERN.match(content)
                    if m:
                        tier = DifficultyDegree.parse(m.group(1), DifficultyDegree.UNKNOWN)
                m = IMPORT_PATTERN.match(content)
                if m:
                    target = m.group(2).strip("\"'")
                    self._import(rules, m.group(1).lower(), os.path.join(base_dir, target), m.group(3))
            return name, tier, rules
        finally:
            if path:
                self.loading.pop()

    def _read_file(self, path: str):
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        return self.read_rules(text, path)

    def _import(self, rules: dict, directive: str, path: str, nonterminal: str | None):
        full = os.path.abspath(path)
        if full in self.loading:
            logger.debug("Ignoring recursive %s of %s", directive, path)
            return

        if directive == "import" and nonterminal:
            # mounting a grammar under a non-terminal is not supported
            if not os.path.isfile(full):
                reason = f"File {path} not found"
            else:
                try:
                    _, _, sub_rules = self._read_file(full)
                    loaded = START_SYMBOL in sub_rules
                except OSError:
                    loaded = False
                if loaded:
                    reason = f"Importing {path} under a non-terminal is not implemented"
                else:
                    reason = f"Cannot load grammar file {path}"
            logger.warning("%s; inserting placeholder into %s", reason, nonterminal)
            escaped = re.sub(r"([()|])", r"\\\1", reason)
            _merge_rule(rules, ProductionRule(nonterminal, [f"{{void meta: {escaped}}}"]))
            return

        if not os.path.isfile(full):
            logger.warning("Grammar %s: %s not found, skipped", directive, path)
            return
        try:
            _, _, sub_rules = self._read_file(full)
        except OSError as e:
            logger.warning("Grammar %s: cannot read %s (%s), skipped", directive, path, e)
            return
        if directive == "import":
            sub_rules.pop(START_SYMBOL, None)
        for rule in sub_rules.values():
            _merge_rule(rules, rule)


def parse_grammar(text: str, path: str | None = None, name: str | None = None,
                  require_main: bool = True) -> Grammar:
    """
    Build a grammar from its text. 'path' resolves relative imports (defaults
    to the current directory) and provides the fallback name.
    Raises GrammarError if the result has no $Main rule and 'require_main' is set.
    """
    declared_name, tier, rules = _GrammarLoader().read_rules(text, path)
    expand_rules(rules)
    if name is None:
        name = declared_name
    if not name and path:
        name = os.path.splitext(os.path.basename(path))[0]
    grammar = Grammar(name or "", tier, rules, path)
    if require_main and not grammar.has_start_rule:
        raise GrammarError(f"Grammar {grammar.name or path or '<text>'!r} has no {START_SYMBOL} rule")
    logger.debug("Loaded %r", grammar)
    return grammar


def load_grammar(path: str, require_main: bool = True) -> Grammar:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise GrammarError(f"Cannot read grammar file {path}: {e}") from e
    return parse_grammar(text, path, require_main=require_main)


def load_grammars(directory: str | None = None) -> list[Grammar]:
    """
    Load every *.txt grammar in 'directory' (defaults to DEFAULT_GRAMMAR_ROOT).
    Files that fail to load are logged and skipped.
    """
    directory = directory or DEFAULT_GRAMMAR_ROOT
    grammars = []
    try:
        names = sorted(f for f in os.listdir(directory) if f.lower().endswith(".txt"))
    except OSError as e:
        logger.warning("Cannot list grammar folder %s: %s", directory, e)
        return grammars
    for fname in names:
        try:
            grammars.append(load_grammar(os.path.join(directory, fname)))
        except GrammarError as e:
            logger.warning("Skipping grammar %s: %s", fname, e)
    return grammars

# ----------------------------- Folder discovery -----------------------------


@functools.lru_cache(maxsize=4)
def build_grammar_options(base_dir: str | None = None):
    """
    List the grammar files found in 'base_dir' (defaults to DEFAULT_GRAMMAR_ROOT).
    Returns: (labels_list, label_to_path_map, tooltip_str)

    - 'inline' uses the grammar typed into the node
    - 'random' picks a loaded grammar by tier
    - every other label is a file name without its .txt extension
    """
    if base_dir is None:
        base_dir = DEFAULT_GRAMMAR_ROOT

    file_names = []
    try:
        for name in sorted(os.listdir(base_dir)):
            path = os.path.join(base_dir, name)
            if os.path.isfile(path) and name.lower().endswith(".txt"):
                file_names.append(name)
    except OSError:
        file_names = []

    label_list = ["inline", "random"]
    label_to_path = {}
    for fname in file_names:
        label = fname[:-4]
        label_list.append(label)
        label_to_path[label] = os.path.join(base_dir, fname)

    tooltip = (
        "Where the grammar comes from. 'inline' uses the grammar text below, "
        "'random' picks one of the files in the grammars folder by tier, "
        "anything else is a single grammar file."
    )

    return label_list, label_to_path, tooltip


def clear_grammar_cache():
    """
    Clear the cached folder listing (useful if grammar files are added or
    removed at runtime and the dropdown needs to refresh).
    """
    build_grammar_options.cache_clear()
