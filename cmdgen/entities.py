"""
Command Prompts: entities
The things a wildcard can be replaced with, and the store that owns them.

Entities never point at each other directly. A location knows the index of its
room, an object the index of its category, a category the index of its
default location; the EntityStore resolves those indices.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum

from .where_parser import MISSING


class DifficultyDegree(IntEnum):
    UNKNOWN = -1
    NONE = 0
    EASY = 1
    MODERATE = 3
    HIGH = 5

    @classmethod
    def parse(cls, text, default=None):
        """
        Accepts a member, its name in any case ("Easy", "easy") or its integer value.
        Returns 'default' when the text is not recognised.
        """
        if isinstance(text, cls):
            return text
        if isinstance(text, int) and not isinstance(text, bool):
            try:
                return cls(text)
            except ValueError:
                return default
        if not isinstance(text, str):
            return default
        key = text.strip().upper()
        if key in cls.__members__:
            return cls.__members__[key]
        try:
            return cls(int(key))
        except ValueError:
            return default


class Gender(Enum):
    FEMALE = "female"
    MALE = "male"


class ObjectType(Enum):
    KNOWN = "known"
    ALIKE = "alike"
    SPECIAL = "special"
    UNKNOWN = "unknown"


def _parse_enum(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        for member in enum_cls:
            if member.value == lowered:
                return member
    return default

# ---------------------------- Replaceable types -----------------------------


class _PropertyBag:
    """
    Property lookup for where clauses: declared fields first (through
    _DECLARED, which maps clause names to attribute names), then the free
    'properties' mapping.
    """

    _DECLARED = {"name": "name"}
    KIND = "entity"

    def get_property(self, name: str):
        if name == "kind":
            return self.KIND
        attr = self._DECLARED.get(name)
        if attr is not None:
            return getattr(self, attr)
        return self.properties.get(name, MISSING)

    @property
    def metadata(self) -> list[str]:
        return []


@dataclass(eq=False)
class Room(_PropertyBag):
    name: str
    properties: dict = field(default_factory=dict)

    KIND = "room"


@dataclass(eq=False)
class SpecificLocation(_PropertyBag):
    name: str
    room_id: int | None = None
    is_placement: bool = False
    is_beacon: bool = False
    properties: dict = field(default_factory=dict)

    _DECLARED = {"name": "name", "placement": "is_placement", "beacon": "is_beacon"}
    KIND = "location"


@dataclass(eq=False)
class Category(_PropertyBag):
    name: str
    location_id: int | None = None
    properties: dict = field(default_factory=dict)

    KIND = "category"


@dataclass(eq=False)
class GpsrObject(_PropertyBag):
    name: str
    type: ObjectType = ObjectType.KNOWN
    tier: DifficultyDegree = DifficultyDegree.UNKNOWN
    category_id: int | None = None
    properties: dict = field(default_factory=dict)

    _DECLARED = {"name": "name", "type": "type", "tier": "tier", "difficulty": "tier"}
    KIND = "object"


@dataclass(eq=False)
class PersonName(_PropertyBag):
    name: str
    gender: Gender = Gender.FEMALE
    properties: dict = field(default_factory=dict)

    _DECLARED = {"name": "name", "gender": "gender"}
    KIND = "name"


@dataclass(eq=False)
class Gesture(_PropertyBag):
    name: str
    tier: DifficultyDegree = DifficultyDegree.EASY
    properties: dict = field(default_factory=dict)

    _DECLARED = {"name": "name", "tier": "tier", "difficulty": "tier"}
    KIND = "gesture"


@dataclass(eq=False)
class PredefinedQuestion(_PropertyBag):
    question: str
    answer: str = "[varies]"
    tier: DifficultyDegree = DifficultyDegree.EASY
    properties: dict = field(default_factory=dict)

    _DECLARED = {"question": "question", "answer": "answer", "tier": "tier", "difficulty": "tier"}
    KIND = "question"

    # the sentence only ever says "question"; the question itself is metadata
    @property
    def name(self) -> str:
        return "question"

    @property
    def metadata(self) -> list[str]:
        return [f"Q: {self.question}", f"A: {self.answer}"]


class Obfuscator:
    """A vague stand-in shown instead of the real entity."""

    def __init__(self, name: str):
        self.name = name

    @property
    def metadata(self) -> list[str]:
        return []

    def __repr__(self):
        return f"Obfuscator({self.name!r})"


class HiddenTaskElement(Obfuscator):
    """Replacement for {void}: prints nothing and carries no metadata."""

    def __init__(self):
        super().__init__("")


class Pronoun(Obfuscator):
    pass

# -------------------------------- Pronouns ----------------------------------

_PRONOUNS = {
    # (objective, gender) -> third person singular personal pronoun
    (False, Gender.MALE): "he",
    (False, Gender.FEMALE): "she",
    (False, None): "it",
    (True, Gender.MALE): "him",
    (True, Gender.FEMALE): "her",
    (True, None): "it",
}


def personal_pronoun(gender: Gender | None, objective: bool = False) -> str:
    return _PRONOUNS[(bool(objective), gender)]

# ------------------------------- Entity store -------------------------------


class EntityStore:
    """
    Owns every entity. Relations are integer indices into the lists below.
    Names are matched case-insensitively when merging.
    """

    def __init__(self):
        self.rooms: list[Room] = []
        self.locations: list[SpecificLocation] = []
        self.categories: list[Category] = []
        self.objects: list[GpsrObject] = []
        self.names: list[PersonName] = []
        self.gestures: list[Gesture] = []
        self.questions: list[PredefinedQuestion] = []

    @staticmethod
    def _index_of(items, name: str) -> int | None:
        key = name.strip().lower()
        for i, item in enumerate(items):
            if item.name.lower() == key:
                return i
        return None

    # ----------- building ------------

    def add_room(self, name: str, properties: dict | None = None) -> int:
        idx = self._index_of(self.rooms, name)
        if idx is None:
            self.rooms.append(Room(name.strip(), dict(properties or {})))
            return len(self.rooms) - 1
        if properties:
            self.rooms[idx].properties.update(properties)
        return idx

    def add_location(self, name: str, room: str | None = None,
                     placement: bool = False, beacon: bool = False,
                     properties: dict | None = None) -> int:
        """
        Add a specific location. A location with the same name in the same
        room is merged: its placement/beacon flags are OR-ed together.
        """
        room_id = self.add_room(room) if room else None
        key = name.strip().lower()
        for i, loc in enumerate(self.locations):
            if loc.name.lower() == key and loc.room_id == room_id:
                loc.is_placement |= bool(placement)
                loc.is_beacon |= bool(beacon)
                if properties:
                    loc.properties.update(properties)
                return i
        self.locations.append(SpecificLocation(name.strip(), room_id, bool(placement),
                                               bool(beacon), dict(properties or {})))
        return len(self.locations) - 1

    def add_category(self, name: str, location: str | None = None,
                     room: str | None = None, properties: dict | None = None) -> int:
        location_id = None
        if location:
            # a category's default location is always somewhere objects can be placed
            location_id = self.add_location(location, room, placement=True)
        idx = self._index_of(self.categories, name)
        if idx is None:
            self.categories.append(Category(name.strip(), location_id, dict(properties or {})))
            return len(self.categories) - 1
        cat = self.categories[idx]
        if location_id is not None:
            cat.location_id = location_id
        if properties:
            cat.properties.update(properties)
        return idx

    def add_object(self, name: str, category: str | None = None,
                   type=ObjectType.KNOWN, tier=None,
                   properties: dict | None = None) -> int:
        obj_type = _parse_enum(ObjectType, type, ObjectType.KNOWN)
        if tier is None:
            if obj_type == ObjectType.ALIKE:
                tier = DifficultyDegree.MODERATE
            elif obj_type == ObjectType.KNOWN:
                tier = DifficultyDegree.EASY
            else:
                tier = DifficultyDegree.UNKNOWN
        tier = DifficultyDegree.parse(tier, DifficultyDegree.UNKNOWN)
        category_id = self.add_category(category) if category else None
        # an object belongs to exactly one category; re-adding moves it
        idx = self._index_of(self.objects, name)
        if idx is not None:
            obj = self.objects[idx]
            obj.type, obj.tier = obj_type, tier
            if category_id is not None:
                obj.category_id = category_id
            if properties:
                obj.properties.update(properties)
            return idx
        self.objects.append(GpsrObject(name.strip(), obj_type, tier, category_id, dict(properties or {})))
        return len(self.objects) - 1

    def add_name(self, name: str, gender=Gender.FEMALE, properties: dict | None = None) -> int:
        self.names.append(PersonName(name.strip(), _parse_enum(Gender, gender, Gender.FEMALE),
                                     dict(properties or {})))
        return len(self.names) - 1

    def add_gesture(self, name: str, tier=DifficultyDegree.EASY, properties: dict | None = None) -> int:
        self.gestures.append(Gesture(name.strip(), DifficultyDegree.parse(tier, DifficultyDegree.EASY),
                                     dict(properties or {})))
        return len(self.gestures) - 1

    def add_question(self, question: str, answer: str = "[varies]",
                     tier=DifficultyDegree.EASY, properties: dict | None = None) -> int:
        self.questions.append(PredefinedQuestion(question, answer,
                                                 DifficultyDegree.parse(tier, DifficultyDegree.EASY),
                                                 dict(properties or {})))
        return len(self.questions) - 1

    # ----------- relations ------------

    def room_of(self, entity) -> Room | None:
        if isinstance(entity, Room):
            return entity
        if isinstance(entity, SpecificLocation) and entity.room_id is not None:
            return self.rooms[entity.room_id]
        return None

    def category_of(self, entity) -> Category | None:
        if isinstance(entity, GpsrObject) and entity.category_id is not None:
            return self.categories[entity.category_id]
        return None

    def location_of(self, entity) -> SpecificLocation | None:
        if isinstance(entity, GpsrObject):
            entity = self.category_of(entity)
        if isinstance(entity, Category) and entity.location_id is not None:
            return self.locations[entity.location_id]
        return None

    def all_locations(self) -> list:
        """Rooms first, then specific locations."""
        return list(self.rooms) + list(self.locations)

    def get_property(self, entity, name: str):
        """
        Lookup used by where clauses. Relations ('room', 'category',
        'location') resolve to the related entity's name.
        """
        if name == "room":
            room = self.room_of(entity)
            if room is not None and room is not entity:
                return room.name
        elif name == "category":
            cat = self.category_of(entity)
            if cat is not None:
                return cat.name
        elif name == "location":
            loc = self.location_of(entity)
            if loc is not None:
                return loc.name
        getter = getattr(entity, "get_property", None)
        if getter is None:
            return MISSING
        return getter(name)

    def __repr__(self):
        return (f"EntityStore(rooms={len(self.rooms)}, locations={len(self.locations)}, "
                f"categories={len(self.categories)}, objects={len(self.objects)}, "
                f"names={len(self.names)}, gestures={len(self.gestures)}, "
                f"questions={len(self.questions)})")
