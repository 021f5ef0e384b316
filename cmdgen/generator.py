"""
Command Prompts: generator
Picks a grammar, expands it and resolves its wildcards into a task.

A generation attempt can fail (recursive grammar, exhausted pool, malformed
where clause); the generator retries with a fresh grammar choice before
giving up.
"""

import logging
import random

from .entities import DifficultyDegree
from .errors import CommandGeneratorError
from .replacer import WildcardReplacer
from .wildcard_utils import KeycodeCounter

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

# grammar tiers tried from hardest to easiest
SELECTABLE_TIERS = sorted((t for t in DifficultyDegree if t >= DifficultyDegree.EASY), reverse=True)

# -------------------------------- RNG ---------------------------------------


class SeededRandom:
    def __init__(self, base_seed: int):
        self.seed = base_seed

    def next_rng(self) -> random.Random:
        """
        Advances the seed and returns a new Random instance.
        """
        self.seed += 1
        return random.Random(self.seed)

    def randint(self, a: int, b: int) -> int:
        rng = self.next_rng()
        return rng.randint(a, b)

    def choice(self, seq):
        rng = self.next_rng()
        return rng.choice(seq)

    def shuffle(self, items: list):
        """
        In-place Fisher-Yates shuffle.
        """
        rng = self.next_rng()
        for i in range(len(items) - 1, 0, -1):
            j = rng.randint(0, i)
            items[i], items[j] = items[j], items[i]

# ------------------------------ Task driver ---------------------------------


class TaskGenerator:
    """
    Holds the loaded grammars and entities. One instance owns one random
    source and one keycode counter, so its output only depends on the seed
    and on what was loaded.
    """

    def __init__(self, grammars, store, seed: int = 0):
        self.grammars = list(grammars)
        self.store = store
        self.rng = SeededRandom(seed)
        self.counter = KeycodeCounter()

    def find_grammar(self, name: str):
        key = name.strip().lower()
        for g in self.grammars:
            if g.name.lower() == key:
                return g
        return None

    def get_random_grammar(self, tier):
        """
        Random grammar of the highest tier not above 'tier'. Tiers with no
        grammar are skipped with a warning.
        """
        tier = DifficultyDegree.parse(tier, DifficultyDegree.HIGH)
        for dd in SELECTABLE_TIERS:
            if dd > tier:
                continue
            tiered = [g for g in self.grammars if g.tier == dd]
            if tiered:
                return self.rng.choice(tiered)
            logger.warning("No grammars were found for %s difficulty degree.%s",
                           dd.name.capitalize(), " Grammar tier reduced." if dd > DifficultyDegree.EASY else "")
        return None

    def select_grammar(self, tier, grammar_name: str | None = None):
        if grammar_name:
            grammar = self.find_grammar(grammar_name)
            if grammar is None:
                logger.error("Grammar %r does not exist.", grammar_name)
        else:
            grammar = self.get_random_grammar(tier)
            if grammar is None:
                logger.error("No grammars could be selected.")
        if grammar is not None:
            logger.debug("Selected %r", grammar)
        return grammar

    def get_task_prototype(self, tier, grammar_name: str | None = None) -> str | None:
        grammar = self.select_grammar(tier, grammar_name)
        if grammar is None:
            return None
        return grammar.generate_sentence(self.rng)

    def generate_task(self, tier=DifficultyDegree.HIGH, grammar_name: str | None = None):
        """
        Returns a Task, or None when no task could be generated.
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            grammar = self.select_grammar(tier, grammar_name)
            if grammar is None:
                return None
            try:
                prototype = grammar.generate_sentence(self.rng)
                logger.debug("Prototype: %s", prototype)
                replacer = WildcardReplacer(self.store, tier, self.rng, self.counter)
                task = replacer.get_task(prototype)
            except CommandGeneratorError as e:
                logger.warning("Attempt %d/%d failed: %s", attempt, MAX_ATTEMPTS, e)
                continue
            task.grammar_name = grammar.name
            return task
        return None
