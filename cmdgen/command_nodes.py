import logging

from .entity_data import load_entities_yaml, load_entity_file
from .errors import CommandGeneratorError
from .generator import SeededRandom, TaskGenerator
from .grammar import (
    DEFAULT_GRAMMAR_ROOT,
    build_grammar_options,
    load_grammar,
    load_grammars,
    parse_grammar,
)
from .replacer import WildcardReplacer

logger = logging.getLogger(__name__)

TIER_LABELS = ["Easy", "Moderate", "High"]

EXAMPLE_GRAMMAR = (
    "; grammar name Inline example\n"
    "; grammar tier Easy\n"
    "$Main = $deliver | $greet\n"
    "$deliver = (bring | give) the {object 1} to {name 1} and tell {pron obj} it is from the {room}.\n"
    "$greet = (go to | navigate to) the {location placement 1} and greet {name}.\n"
)


def _load_store(entities: str):
    """Entity YAML typed into the node, or the bundled entity file when empty."""
    if entities and entities.strip():
        return load_entities_yaml(entities)
    return load_entity_file()


def _failure(message: str) -> str:
    return f"No task generated: {message}"


class CommandGenerator:
    """
    Generates a robot command from a grammar and a set of entities.

    grammar_source:
      - inline: the grammar typed into 'grammar'
      - random: any grammar from the grammars folder, chosen by tier
      - <file>: that grammar file only

    Outputs the command, its metadata (one line per entry) and a context dict
    with the grammar used and the entity bound to every wildcard.
    """

    @classmethod
    def INPUT_TYPES(cls):
        labels, mapping, tooltip = build_grammar_options()
        cls._GRAMMAR_LABELS = labels
        cls._GRAMMAR_MAP = mapping

        return {
            "required": {
                "grammar_source": (labels, {"default": labels[0], "tooltip": tooltip}),
                "grammar": ("STRING", {"multiline": True, "default": EXAMPLE_GRAMMAR}),
                "entities": ("STRING", {"multiline": True, "default": "",
                                        "tooltip": "Entity YAML. Leave empty to use entities/entities.yaml"}),
                "seed": ("INT", {"default": 0, "min": 0, "max": 0xffffffffffffffff}),
                "tier": (TIER_LABELS, {"default": "High"}),
            },
            "optional": {
                "context": ("DICT", {}),
            },
        }

    RETURN_TYPES = ("STRING", "STRING", "DICT")
    RETURN_NAMES = ("command", "metadata", "context")
    FUNCTION = "generate"
    CATEGORY = "commandprompts/generation"

    def _grammars(self, grammar_source: str, grammar: str):
        """Returns (grammars, grammar name to force or None)."""
        if grammar_source == "inline":
            g = parse_grammar(grammar, name="inline")
            return [g], g.name
        if grammar_source == "random":
            return load_grammars(DEFAULT_GRAMMAR_ROOT), None
        mapping = getattr(self, "_GRAMMAR_MAP", None) or build_grammar_options()[1]
        path = mapping.get(grammar_source)
        if path is None:
            raise CommandGeneratorError(f"Unknown grammar source {grammar_source!r}")
        g = load_grammar(path)
        return [g], g.name

    def generate(self, grammar_source, grammar, entities, seed, tier, context=None):
        out_context = dict(context or {})
        try:
            store = _load_store(entities)
            grammars, grammar_name = self._grammars(grammar_source, grammar)
        except CommandGeneratorError as e:
            logger.error("CommandGenerator: %s", e)
            return ("", _failure(str(e)), out_context)

        generator = TaskGenerator(grammars, store, seed)
        task = generator.generate_task(tier, grammar_name)
        if task is None:
            return ("", _failure("every attempt failed"), out_context)

        out_context["command"] = str(task)
        out_context["grammar"] = task.grammar_name
        out_context["assignments"] = dict(task.assignments)
        return (str(task), "\n".join(task.metadata), out_context)


class GrammarSentence:
    """
    Expands a grammar into its raw sentence, wildcards left untouched.
    """

    @classmethod
    def INPUT_TYPES(cls):
        return {
            "required": {
                "grammar": ("STRING", {"multiline": True, "default": EXAMPLE_GRAMMAR}),
                "seed": ("INT", {"default": 0, "min": 0, "max": 0xffffffffffffffff}),
            },
        }

    RETURN_TYPES = ("STRING",)
    RETURN_NAMES = ("sentence",)
    FUNCTION = "expand"
    CATEGORY = "commandprompts/generation"

    def expand(self, grammar, seed):
        try:
            g = parse_grammar(grammar, name="inline")
            return (g.generate_sentence(SeededRandom(seed)),)
        except CommandGeneratorError as e:
            logger.error("GrammarSentence: %s", e)
            return ("",)


class WildcardResolver:
    """
    Replaces the wildcards of a sentence with entities.
    """

    @classmethod
    def INPUT_TYPES(cls):
        return {
            "required": {
                "sentence": ("STRING", {"multiline": True, "default": ""}),
                "entities": ("STRING", {"multiline": True, "default": "",
                                        "tooltip": "Entity YAML. Leave empty to use entities/entities.yaml"}),
                "seed": ("INT", {"default": 0, "min": 0, "max": 0xffffffffffffffff}),
                "tier": (TIER_LABELS, {"default": "High"}),
            },
        }

    RETURN_TYPES = ("STRING", "STRING")
    RETURN_NAMES = ("command", "metadata")
    FUNCTION = "resolve"
    CATEGORY = "commandprompts/generation"

    def resolve(self, sentence, entities, seed, tier):
        try:
            store = _load_store(entities)
            replacer = WildcardReplacer(store, tier, SeededRandom(seed))
            task = replacer.get_task(sentence)
        except CommandGeneratorError as e:
            logger.error("WildcardResolver: %s", e)
            return ("", _failure(str(e)))
        return (str(task), "\n".join(task.metadata))
