"""
Command Prompts: replacer
Turns a raw sentence full of wildcards into a Task.

Resolution happens in passes over the identity groups of the sentence:
  1. groups whose where clause references no other wildcard
  2. groups whose references are all resolved (repeated until no progress)
  3. pronouns, which look back at what was placed before them
Each draw removes the entity from its pool, so no entity is used twice.
"""

import logging
import re

from .entities import (
    DifficultyDegree,
    Gender,
    HiddenTaskElement,
    ObjectType,
    Obfuscator,
    PersonName,
    Pronoun,
    Room,
    SpecificLocation,
    personal_pronoun,
)
from .errors import PoolExhaustedError
from .task import Task, Token
from .where_parser import all_of, parse_where, quote_literal
from .wildcard_utils import (
    REF_PATTERN,
    KeycodeCounter,
    find_wildcards,
    group_wildcards,
    make_reference,
)

logger = logging.getLogger(__name__)

# wildcard name -> candidate pool
DOMAINS = {
    "object": "object", "aobject": "object", "kobject": "object",
    "location": "location", "beacon": "location", "placement": "location", "room": "location",
    "name": "name", "male": "name", "female": "name",
    "category": "category",
    "gesture": "gesture",
    "question": "question",
}

LOCATION_KEYWORDS = ("beacon", "placement", "room")
NAME_KEYWORDS = ("male", "female")
OBJECT_SUBTYPES = {"known": "kobject", "alike": "aobject"}

KEYWORD_FILTERS = {
    "beacon": lambda e: isinstance(e, SpecificLocation) and e.is_beacon,
    "placement": lambda e: isinstance(e, SpecificLocation) and e.is_placement,
    "room": lambda e: isinstance(e, Room),
    "male": lambda e: e.gender == Gender.MALE,
    "female": lambda e: e.gender == Gender.FEMALE,
    "kobject": lambda e: e.type == ObjectType.KNOWN,
    "aobject": lambda e: e.type == ObjectType.ALIKE,
}

_META_LINE_BREAK = re.compile(r"\r\n|\r|\n|\\n")


class WildcardReplacer:
    """
    Owns the candidate pools of one generation attempt. Pools are filled and
    shuffled once, when the replacer is created.
    """

    def __init__(self, store, tier=DifficultyDegree.HIGH, rng=None, counter: KeycodeCounter | None = None):
        if rng is None:
            raise ValueError("WildcardReplacer needs a random source")
        self.store = store
        self.tier = DifficultyDegree.parse(tier, DifficultyDegree.HIGH)
        self.rng = rng
        self.counter = counter or KeycodeCounter()
        self.pools = self._fill_pools()

    # ---------- pools ----------

    def _tiered(self, items) -> list:
        return [item for item in items if item.tier <= self.tier]

    def _fill_pools(self) -> dict[str, list]:
        pools = {
            "category": list(self.store.categories),
            "gesture": self._tiered(self.store.gestures),
            "location": self.store.all_locations(),
            "name": list(self.store.names),
            "object": self._tiered(self.store.objects),
            "question": self._tiered(self.store.questions),
        }
        # unfiltered draws just pop the last element
        for pool in pools.values():
            self.rng.shuffle(pool)
        return pools

    def _matches(self, entity, keyword_filter, clause) -> bool:
        if keyword_filter is not None and not keyword_filter(entity):
            return False
        if clause is not None and not clause.evaluate(entity, self.store.get_property):
            return False
        return True

    def _draw(self, domain: str, keyword: str, clause):
        pool = self.pools[domain]
        keyword_filter = KEYWORD_FILTERS.get(keyword)
        if keyword_filter is None and clause is None:
            if not pool:
                raise PoolExhaustedError(domain, keyword)
            return pool.pop()
        for i, entity in enumerate(pool):
            if self._matches(entity, keyword_filter, clause):
                return pool.pop(i)
        raise PoolExhaustedError(domain, keyword, clause.text if clause is not None else None)

    def _random_keyword(self, domain: str, keywords, clause) -> str:
        pool = self.pools[domain]
        available = [kw for kw in keywords
                     if any(self._matches(e, KEYWORD_FILTERS[kw], clause) for e in pool)]
        if not available:
            raise PoolExhaustedError(domain, None, clause.text if clause is not None else None)
        return self.rng.choice(available)

    def _select_keyword(self, name: str, subtype: str | None, clause) -> str:
        if name == "location":
            if subtype in LOCATION_KEYWORDS:
                return subtype
            return self._random_keyword("location", LOCATION_KEYWORDS, clause)
        if name == "name":
            if subtype in NAME_KEYWORDS:
                return subtype
            return self._random_keyword("name", NAME_KEYWORDS, clause)
        if name == "object":
            return OBJECT_SUBTYPES.get(subtype, "object")
        return name

    # ---------- obfuscation ----------

    def _obfuscate(self, keyword: str, entity):
        """Vaguer stand-in for 'entity', or None when it has none."""
        if keyword in ("beacon", "placement"):
            room = self.store.room_of(entity)
            return room if room is not None else Obfuscator("somewhere")
        if keyword == "room":
            return Obfuscator("apartment")
        if keyword in ("object", "aobject", "kobject"):
            category = self.store.category_of(entity)
            return category if category is not None else Obfuscator("objects")
        if keyword in ("name", "male", "female"):
            return Obfuscator("a person")
        if keyword == "category":
            return Obfuscator("objects")
        return None

    # ---------- resolution ----------

    def _resolve_group(self, group, where_texts):
        if group.name == "void":
            group.replacement = HiddenTaskElement()
            group.keyword = "void"
            group.resolved = True
            return
        # each member's clause is parsed on its own, then all must hold
        clause = all_of(parse_where(text) for text in where_texts)
        keyword = self._select_keyword(group.name, group.subtype, clause)
        entity = self._draw(DOMAINS[group.name], keyword, clause)
        group.keyword = keyword
        group.replacement = entity
        group.obfuscated = self._obfuscate(keyword, entity)
        group.resolved = True
        logger.debug("%s -> %s", group.keycode, entity.name)

    def _substitute_references(self, where_texts, groups) -> list[str] | None:
        """
        Replace every <<keycode>> in the clauses with the quoted name it
        resolved to. Returns None while any reference is still unresolved.
        """
        substituted = []
        for where in where_texts:
            for keycode in REF_PATTERN.findall(where):
                ref = groups.get(keycode)
                if ref is None or not ref.resolved:
                    return None
                where = where.replace(make_reference(keycode), quote_literal(ref.replacement.name))
            substituted.append(where)
        return substituted

    def _resolve_pronoun(self, group, occurrences, groups):
        first = group.members[0]
        position = next(i for i, w in enumerate(occurrences) if w is first)
        gender = None
        # nearest earlier person; objects and places in between are skipped
        for prev in reversed(occurrences[:position]):
            if prev.name in ("void", "pron"):
                continue
            antecedent = groups[prev.keycode]
            if antecedent.resolved and isinstance(antecedent.replacement, PersonName):
                gender = antecedent.replacement.gender
                break
        objective = (group.subtype or "").startswith("obj")
        group.replacement = Pronoun(personal_pronoun(gender, objective))
        group.keyword = "pron"
        group.resolved = True

    def resolve(self, groups, occurrences):
        pending = []
        for group in groups.values():
            if group.name == "pron" or (group.name not in DOMAINS and group.name != "void"):
                continue
            if group.references:
                pending.append(group)
            else:
                self._resolve_group(group, group.clauses)

        while pending:
            queued, pending = pending, []
            for group in queued:
                where_texts = self._substitute_references(group.clauses, groups)
                if where_texts is None:
                    pending.append(group)
                else:
                    self._resolve_group(group, where_texts)
            if len(pending) == len(queued):
                logger.warning("Unresolvable wildcard references: %s",
                               ", ".join(g.keycode for g in pending))
                break

        for group in groups.values():
            if group.name == "pron":
                self._resolve_pronoun(group, occurrences, groups)

        for group in groups.values():
            if not group.resolved:
                logger.debug("Leaving %s unresolved", group.keycode)

    # ---------- tokens ----------

    def _fetch_metadata(self, w, groups) -> list[str]:
        if not w.metadata:
            return []

        def display(m):
            ref = groups.get(m.group(1))
            if ref is None or not ref.resolved:
                return ref.members[0].value if ref is not None else m.group(0)
            return ref.replacement.name

        text = REF_PATTERN.sub(display, w.metadata)
        return [line.strip() for line in _META_LINE_BREAK.split(text) if line.strip()]

    def _tokenize(self, w, groups) -> Token:
        group = groups[w.keycode]
        if not group.resolved:
            return Token(w.value)
        metadata = self._fetch_metadata(w, groups)
        if w.obfuscated and group.obfuscated is not None:
            token = Token(w.value, group.obfuscated, metadata)
            token.metadata.append(group.replacement.name)
            return token
        return Token(w.value, group.replacement, metadata)

    def get_task(self, prototype: str) -> Task:
        top_level, occurrences = find_wildcards(prototype, self.counter)
        groups = group_wildcards(occurrences)
        self.resolve(groups, occurrences)

        tokens = []
        pos = 0
        for w in top_level:
            if w.start > pos:
                tokens.append(Token(prototype[pos:w.start]))
            tokens.append(self._tokenize(w, groups))
            pos = w.end
        if pos < len(prototype):
            tokens.append(Token(prototype[pos:]))

        assignments = {
            keycode: group.replacement.name
            for keycode, group in groups.items()
            if group.resolved and group.keyword != "void"
        }
        return Task(tokens, assignments)

    def replace_wildcards(self, prototype: str) -> str:
        return str(self.get_task(prototype))
