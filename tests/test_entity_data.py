import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from cmdgen.entities import DifficultyDegree, EntityStore, Gender, ObjectType
from cmdgen.entity_data import load_entities, load_entities_yaml, load_entity_file
from cmdgen.errors import EntityDataError
from cmdgen.where_parser import parse_where

ARENA = """
rooms:
  - name: kitchen
    floor: ground
    locations:
      - {name: fridge, placement: true}
      - {name: door, beacon: true}
  - bedroom

locations:
  - {name: shelf, room: bedroom, placement: true}
  - {name: Door, room: kitchen, placement: true}

categories:
  - name: drinks
    location: fridge
    room: kitchen
    objects:
      - {name: coke, type: known, color: red}
      - orange juice
      - {name: tea, type: alike}

names:
  - {name: James, gender: male}
  - Mary

gestures:
  - waving
  - {name: pointing, tier: moderate}

questions:
  - {question: "What day is today?"}
  - {question: "What is the capital of Japan?", answer: Tokyo, tier: high}
"""


@pytest.fixture
def store():
    return load_entities_yaml(ARENA)


class TestLoading:
    def test_rooms_and_locations(self, store):
        assert [r.name for r in store.rooms] == ["kitchen", "bedroom"]
        assert store.rooms[0].properties == {"floor": "ground"}
        assert [loc.name for loc in store.locations] == ["fridge", "door", "shelf"]
        assert store.room_of(store.locations[2]).name == "bedroom"

    def test_locations_merge_flags(self, store):
        door = store.locations[1]
        assert door.is_beacon and door.is_placement
        fridge = store.locations[0]
        assert fridge.is_placement and not fridge.is_beacon

    def test_objects(self, store):
        coke, juice, tea = store.objects
        assert coke.properties == {"color": "red"}
        assert (juice.name, juice.type, juice.tier) == ("orange juice", ObjectType.KNOWN, DifficultyDegree.EASY)
        assert (tea.type, tea.tier) == (ObjectType.ALIKE, DifficultyDegree.MODERATE)
        assert store.category_of(coke).name == "drinks"
        assert store.location_of(coke).name == "fridge"

    def test_people_gestures_questions(self, store):
        assert [(n.name, n.gender) for n in store.names] == [("James", Gender.MALE), ("Mary", Gender.FEMALE)]
        assert [g.tier for g in store.gestures] == [DifficultyDegree.EASY, DifficultyDegree.MODERATE]
        first, second = store.questions
        assert first.answer == "[varies]"
        assert (second.answer, second.tier) == ("Tokyo", DifficultyDegree.HIGH)

    def test_extra_keys_are_visible_to_where_clauses(self, store):
        coke = store.objects[0]
        assert parse_where("color = 'red' and location = 'fridge'").evaluate(coke, store.get_property)
        kitchen = store.rooms[0]
        assert parse_where("floor = 'ground'")(kitchen)

    def test_adds_to_existing_store(self):
        store = EntityStore()
        result = load_entities({"names": ["Ann"]}, store)
        assert result is store
        assert store.names[0].name == "Ann"

    def test_empty(self):
        assert load_entities_yaml("").names == []
        assert load_entities(None).rooms == []


class TestErrors:
    @pytest.mark.parametrize("text", [
        "rooms: [kitchen",
        "- just\n- a list",
        "rooms: kitchen",
        "names:\n  - {gender: male}",
        "categories:\n  - name: drinks\n    objects: coke",
        "gestures:\n  - 3",
    ])
    def test_bad_data(self, text):
        with pytest.raises(EntityDataError):
            load_entities_yaml(text)

    def test_missing_file(self, tmp_path):
        with pytest.raises(EntityDataError):
            load_entity_file(str(tmp_path / "none.yaml"))


class TestDefaultFile:
    def test_bundled_entities(self):
        store = load_entity_file()
        assert len(store.rooms) == 4
        assert len(store.names) == 6
        assert len(store.questions) == 4
        ball = next(o for o in store.objects if o.name == "ball")
        assert ball.properties["color"] == "red"
        teddy = next(o for o in store.objects if o.name == "teddy bear")
        assert (teddy.type, teddy.tier) == (ObjectType.SPECIAL, DifficultyDegree.HIGH)
