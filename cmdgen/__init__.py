from .entities import DifficultyDegree, EntityStore
from .entity_data import load_entities, load_entities_yaml, load_entity_file
from .errors import *
from .generator import SeededRandom, TaskGenerator
from .grammar import Grammar, load_grammar, load_grammars, parse_grammar
from .replacer import WildcardReplacer
