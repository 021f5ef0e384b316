"""
Command Prompts: entity_data
Builds an EntityStore from plain mappings or YAML text.

    rooms:
      - name: kitchen
        locations:
          - {name: fridge, placement: true}
          - {name: kitchen door, beacon: true}
    categories:
      - name: drinks
        location: fridge
        room: kitchen
        objects:
          - {name: coke, type: known}
          - orange juice
    names:
      - {name: James, gender: male}
      - Mary
    gestures:
      - {name: waving, tier: easy}
    questions:
      - {question: What day is today?, answer: "[varies]", tier: easy}

List entries may be bare strings (just a name). Keys that are not part of the
entity's own fields end up in its properties, where where clauses can see them.
"""

import logging
import os

import yaml

from .entities import EntityStore
from .errors import EntityDataError

logger = logging.getLogger(__name__)

DEFAULT_ENTITY_FILE = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "entities", "entities.yaml")
)


def _entries(data: dict, key: str) -> list:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise EntityDataError(f"'{key}' must be a list, got {type(value).__name__}")
    return value


def _as_entry(item, section: str, name_key: str = "name") -> dict:
    """Normalise a list entry into a dict that has 'name_key'."""
    if isinstance(item, str):
        return {name_key: item}
    if isinstance(item, dict):
        if not item.get(name_key):
            raise EntityDataError(f"Entry in '{section}' has no '{name_key}': {item!r}")
        return dict(item)
    raise EntityDataError(f"Unexpected entry in '{section}': {item!r}")


def _split(entry: dict, fields) -> tuple[dict, dict]:
    known = {k: entry[k] for k in fields if k in entry}
    extra = {str(k): v for k, v in entry.items() if k not in fields}
    return known, extra


def _add_locations(store: EntityStore, items, room: str | None, section: str):
    for item in items:
        entry = _as_entry(item, section)
        known, extra = _split(entry, ("name", "room", "placement", "beacon"))
        store.add_location(str(known["name"]), known.get("room", room),
                           bool(known.get("placement", False)), bool(known.get("beacon", False)),
                           extra)


def load_entities(data: dict | None, store: EntityStore | None = None) -> EntityStore:
    """
    Add the entities described by 'data' to 'store' (a new store by default).
    """
    store = store if store is not None else EntityStore()
    if not data:
        return store
    if not isinstance(data, dict):
        raise EntityDataError(f"Entity data must be a mapping, got {type(data).__name__}")

    for item in _entries(data, "rooms"):
        entry = _as_entry(item, "rooms")
        known, extra = _split(entry, ("name", "locations"))
        room = str(known["name"])
        store.add_room(room, extra)
        locations = known.get("locations") or []
        if not isinstance(locations, list):
            raise EntityDataError(f"'locations' of room {room!r} must be a list")
        _add_locations(store, locations, room, "locations")

    _add_locations(store, _entries(data, "locations"), None, "locations")

    for item in _entries(data, "categories"):
        entry = _as_entry(item, "categories")
        known, extra = _split(entry, ("name", "location", "room", "objects"))
        category = str(known["name"])
        store.add_category(category, known.get("location"), known.get("room"), extra)
        objects = known.get("objects") or []
        if not isinstance(objects, list):
            raise EntityDataError(f"'objects' of category {category!r} must be a list")
        for obj in objects:
            obj_entry = _as_entry(obj, "objects")
            obj_known, obj_extra = _split(obj_entry, ("name", "type", "tier", "difficulty"))
            store.add_object(str(obj_known["name"]), category,
                             obj_known.get("type", "known"),
                             obj_known.get("tier", obj_known.get("difficulty")),
                             obj_extra)

    for item in _entries(data, "objects"):
        entry = _as_entry(item, "objects")
        known, extra = _split(entry, ("name", "category", "type", "tier", "difficulty"))
        store.add_object(str(known["name"]), known.get("category"), known.get("type", "known"),
                         known.get("tier", known.get("difficulty")), extra)

    for item in _entries(data, "names"):
        entry = _as_entry(item, "names")
        known, extra = _split(entry, ("name", "gender"))
        store.add_name(str(known["name"]), known.get("gender", "female"), extra)

    for item in _entries(data, "gestures"):
        entry = _as_entry(item, "gestures")
        known, extra = _split(entry, ("name", "tier", "difficulty"))
        store.add_gesture(str(known["name"]), known.get("tier", known.get("difficulty", "easy")), extra)

    for item in _entries(data, "questions"):
        entry = _as_entry(item, "questions", name_key="question")
        known, extra = _split(entry, ("question", "answer", "tier", "difficulty"))
        store.add_question(str(known["question"]), str(known.get("answer", "[varies]")),
                           known.get("tier", known.get("difficulty", "easy")), extra)

    logger.debug("Loaded %r", store)
    return store


def load_entities_yaml(text: str, store: EntityStore | None = None) -> EntityStore:
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise EntityDataError(f"Invalid entity YAML: {e}") from e
    return load_entities(data, store)


def load_entity_file(path: str | None = None, store: EntityStore | None = None) -> EntityStore:
    path = path or DEFAULT_ENTITY_FILE
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise EntityDataError(f"Cannot read entity file {path}: {e}") from e
    return load_entities_yaml(text, store)
