"""
Tests for session serializers.

Tests cover:
- JSONSerializer supported types, tagging and registered pydantic models
- JSONSerializer refusal of unsupported types and malformed input
- Escaping of user keys in the tag namespace, cycles and depth limits
- PickleSerializer round-trip and refusal of arbitrary objects, including
  model fields
- Using each serializer through the Crypter
"""
import pytest
from datetime import date, datetime, time, timedelta, timezone
from pydantic import BaseModel, ConfigDict

from navigator_crypter import (
    Crypter,
    DeserializationError,
    JSONSerializer,
    PickleSerializer,
    SerializationError,
    get_serializer,
)

KEY = bytes(range(32))


# --- Test Fixtures ---

class UserModel(BaseModel):
    """Serializable pydantic model for testing."""
    username: str
    email: str
    age: int = 0


class DummyManager:
    """Non-serializable class for testing."""
    def __init__(self, name: str = "default"):
        self.name = name


class ManagedModel(BaseModel):
    """Pydantic model carrying a non-serializable field."""
    model_config = ConfigDict(arbitrary_types_allowed=True)
    name: str
    manager: DummyManager


@pytest.fixture
def json_serializer():
    return JSONSerializer()


@pytest.fixture
def pickle_serializer():
    return PickleSerializer()


def record(values, deadline=None):
    return {
        "deadline": deadline or datetime(2030, 1, 1, 10, 30, tzinfo=timezone.utc),
        "values": values,
    }


def nested(depth, leaf="leaf"):
    value = leaf
    for _ in range(depth):
        value = [value]
    return value


def cyclic_list():
    items = [1]
    items.append(items)
    return items


def cyclic_dict():
    config = {"a": 1}
    config["self"] = config
    return config


# --- Test JSONSerializer ---

class TestJSONSerializer:
    """Tests for the default orjson serializer."""

    def test_primitives_roundtrip(self, json_serializer):
        """Test primitive values round-trip unchanged."""
        values = {
            "string": "test",
            "int": -42,
            "big": 2 ** 63,
            "float": 0.1,
            "bool": False,
            "none": None,
            "list": [1, "two", 3.0],
            "dict": {"nested": {"deep": [True]}},
        }
        data = json_serializer.dumps(record(values))
        assert isinstance(data, bytes)
        assert json_serializer.loads(data) == record(values)

    def test_bytes_roundtrip(self, json_serializer):
        """Test bytes keep their type."""
        values = {"raw": b"\x00\xffBytes", "nested": [b"a"]}
        restored = json_serializer.loads(json_serializer.dumps(record(values)))
        assert restored["values"] == values
        assert isinstance(restored["values"]["raw"], bytes)

    def test_temporal_roundtrip(self, json_serializer):
        """Test datetime, date and time keep their type and offset."""
        tz = timezone(timedelta(hours=-5))
        values = {
            "aware": datetime(2024, 2, 29, 23, 59, 59, 999999, tzinfo=tz),
            "naive": datetime(2024, 1, 1, 0, 0),
            "day": date(2024, 7, 4),
            "clock": time(13, 45, 7),
        }
        restored = json_serializer.loads(json_serializer.dumps(record(values)))
        assert restored["values"] == values
        assert restored["values"]["aware"].utcoffset() == timedelta(hours=-5)
        assert type(restored["values"]["day"]) is date

    def test_tuple_restored_as_list(self, json_serializer):
        """Test tuples are flattened to lists."""
        restored = json_serializer.loads(json_serializer.dumps(record({"t": (1, 2)})))
        assert restored["values"]["t"] == [1, 2]

    @pytest.mark.parametrize("value", [
        DummyManager(),
        {1, 2},
        bytearray(b"raw"),
        frozenset({"a"}),
        {1: "int key"},
        2 ** 64,
        -(2 ** 63) - 1,
        float("nan"),
        float("inf"),
        object(),
        lambda: None,
    ])
    def test_unsupported_values(self, json_serializer, value):
        """Test unsupported values raise SerializationError."""
        with pytest.raises(SerializationError) as exc:
            json_serializer.dumps(record({"value": value}))
        assert exc.value.stage == "serialize"
        assert isinstance(exc.value, TypeError)

    def test_unregistered_model(self, json_serializer):
        """Test pydantic models must be registered."""
        user = UserModel(username="john", email="john@example.com")
        with pytest.raises(SerializationError):
            json_serializer.dumps(record({"user": user}))

    def test_registered_model(self):
        """Test registered pydantic models round-trip."""
        serializer = JSONSerializer(UserModel)
        user = UserModel(username="john", email="john@example.com", age=30)
        restored = serializer.loads(serializer.dumps(record({"user": user})))
        assert restored["values"]["user"] == user
        assert isinstance(restored["values"]["user"], UserModel)
        assert serializer.models == [f"{UserModel.__module__}.UserModel"]

    def test_register_after_init(self, json_serializer):
        """Test models can be registered later."""
        json_serializer.register(UserModel)
        user = UserModel(username="ann", email="ann@example.com")
        assert json_serializer.loads(json_serializer.dumps(record({"u": user})))

    def test_register_non_model(self, json_serializer):
        """Test only pydantic models can be registered."""
        with pytest.raises(TypeError):
            json_serializer.register(DummyManager)

    def test_unknown_model_on_load(self):
        """Test data referring to an unregistered model fails to load."""
        data = JSONSerializer(UserModel).dumps(
            record({"user": UserModel(username="a", email="b")})
        )
        with pytest.raises(DeserializationError):
            JSONSerializer().loads(data)

    @pytest.mark.parametrize("data", [
        b"foobar",
        b"",
        b'{"deadline": {"__crypter_datetime__": "not a date"}, "values": {}}',
        b'{"values": {"raw": {"__crypter_bytes__": "%%%"}}}',
        b"\xff\xfe",
    ])
    def test_malformed_input(self, json_serializer, data):
        """Test malformed bytes raise DeserializationError."""
        with pytest.raises(DeserializationError) as exc:
            json_serializer.loads(data)
        assert exc.value.stage == "deserialize"

    @pytest.mark.parametrize("values", [
        {"form": {"__crypter_bytes__": "QQ=="}},
        {"form": {"__crypter_date__": "hello"}},
        {"form": {"__crypter_datetime__": 1, "__crypter_time__": 2}},
        {"form": {"__crypter_model__": "x", "data": {"y": 1}}},
        {"form": {"__crypter_dict__": {"__crypter_bytes__": "QQ=="}}},
        {"__crypter_bytes__": [b"A", {"__crypter_dict__": "plain"}]},
    ])
    def test_tag_shaped_user_dicts(self, json_serializer, values):
        """Test user dicts that look like internal tags round-trip unchanged."""
        restored = json_serializer.loads(json_serializer.dumps(record(values)))
        assert restored["values"] == values

    def test_plain_dicts_not_escaped(self, json_serializer):
        """Test ordinary dicts are written as plain JSON objects."""
        data = json_serializer.dumps(record({"form": {"name": "john"}}))
        assert b'"form":{"name":"john"}' in data

    def test_unknown_tag_on_load(self, json_serializer):
        """Test a tagged object no encoder writes fails to load."""
        data = b'{"deadline": null, "values": {"__crypter_other__": 1}}'
        with pytest.raises(DeserializationError):
            json_serializer.loads(data)

    @pytest.mark.parametrize("value", [cyclic_list(), cyclic_dict()])
    def test_reference_cycle(self, json_serializer, value):
        """Test self-referencing containers raise SerializationError."""
        with pytest.raises(SerializationError) as exc:
            json_serializer.dumps(record({"value": value}))
        assert exc.value.stage == "serialize"

    def test_shared_reference_allowed(self, json_serializer):
        """Test the same list referenced twice is not a cycle."""
        shared = [1, 2]
        values = {"a": shared, "b": [shared, shared]}
        restored = json_serializer.loads(json_serializer.dumps(record(values)))
        assert restored["values"] == values

    def test_too_deep(self, json_serializer):
        """Test nesting past the depth limit raises SerializationError."""
        with pytest.raises(SerializationError):
            json_serializer.dumps(record({"deep": nested(300)}))

    def test_deep_within_limit(self, json_serializer):
        """Test moderately deep nesting round-trips."""
        values = {"deep": nested(100)}
        restored = json_serializer.loads(json_serializer.dumps(record(values)))
        assert restored["values"] == values


# --- Test PickleSerializer ---

class TestPickleSerializer:
    """Tests for the jsonpickle serializer."""

    def test_roundtrip(self, pickle_serializer):
        """Test richer Python values round-trip."""
        values = {
            "string": "test",
            "int": 42,
            "bytes": b"Bytes",
            "tuple": (1, 2),
            "set": {"a", "b"},
            "int_keys": {1: "one", 2: "two"},
            "when": datetime(2024, 1, 1, 12, 0, 0, 500),
        }
        deadline = datetime(2030, 1, 1, 10, 30)
        restored = pickle_serializer.loads(
            pickle_serializer.dumps(record(values, deadline))
        )
        assert restored == record(values, deadline)

    def test_pydantic_model(self, pickle_serializer):
        """Test pydantic models round-trip without registration."""
        user = UserModel(username="bob", email="bob@example.com", age=25)
        restored = pickle_serializer.loads(
            pickle_serializer.dumps(record({"user": user}, datetime(2030, 1, 1)))
        )
        assert isinstance(restored["values"]["user"], UserModel)
        assert restored["values"]["user"] == user

    def test_class_instance_refused(self, pickle_serializer):
        """Test arbitrary class instances are refused."""
        with pytest.raises(SerializationError):
            pickle_serializer.dumps(record({"manager": DummyManager()}))

    def test_nested_instance_refused(self, pickle_serializer):
        """Test class instances inside containers are refused."""
        with pytest.raises(SerializationError):
            pickle_serializer.dumps(record({"managers": [DummyManager()]}))

    def test_model_with_arbitrary_field_refused(self, pickle_serializer):
        """Test a model carrying a class instance field is refused."""
        model = ManagedModel(name="ops", manager=DummyManager())
        with pytest.raises(SerializationError):
            pickle_serializer.dumps(record({"model": model}))

    def test_bytearray_refused(self, pickle_serializer):
        with pytest.raises(SerializationError):
            pickle_serializer.dumps(record({"raw": bytearray(b"raw")}))

    @pytest.mark.parametrize("value", [cyclic_list(), cyclic_dict()])
    def test_reference_cycle(self, pickle_serializer, value):
        """Test self-referencing containers raise SerializationError."""
        with pytest.raises(SerializationError):
            pickle_serializer.dumps(record({"value": value}))

    def test_too_deep(self, pickle_serializer):
        """Test nesting past the depth limit raises SerializationError."""
        with pytest.raises(SerializationError):
            pickle_serializer.dumps(record({"deep": nested(300)}))

    @pytest.mark.parametrize("data", [b"foobar", b"\xff\xfe"])
    def test_malformed_input(self, pickle_serializer, data):
        """Test malformed bytes raise DeserializationError."""
        with pytest.raises(DeserializationError):
            pickle_serializer.loads(data)


# --- Test Serializer Registry ---

class TestGetSerializer:
    """Tests for serializer lookup."""

    def test_known_names(self):
        assert isinstance(get_serializer("json"), JSONSerializer)
        assert isinstance(get_serializer("pickle"), PickleSerializer)

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            get_serializer("gob")


# --- Test Serializers through Crypter ---

class TestCrypterSerializer:
    """Tests for serializers plugged into a Crypter."""

    def test_default_serializer(self):
        """Test the Crypter uses the JSON serializer by default."""
        assert isinstance(Crypter.aes_gcm(KEY).serializer, JSONSerializer)

    def test_pickle_crypter(self):
        """Test a Crypter with the pickle serializer."""
        crypter = Crypter.xchacha20_poly1305(KEY, serializer=PickleSerializer())
        deadline = datetime(2030, 1, 1, 10, 30)
        values = {"tuple": (1, 2), "set": {3}}
        assert crypter.decode(crypter.encode(deadline, values)) == (deadline, values)

    def test_registered_model_crypter(self):
        """Test a registered model travels through the envelope."""
        crypter = Crypter.chacha20_poly1305(KEY, serializer=JSONSerializer(UserModel))
        deadline = datetime.now(timezone.utc)
        user = UserModel(username="eve", email="eve@example.com")
        _, values = crypter.decode(crypter.encode(deadline, {"user": user}))
        assert values["user"] == user

    def test_serializers_are_not_interchangeable(self):
        """Test pickle data is not a valid JSON session record."""
        deadline = datetime(2030, 1, 1)
        pickled = Crypter.aes_gcm(KEY, serializer=PickleSerializer())
        envelope = pickled.encode(deadline, {"set": {1}})
        with pytest.raises(DeserializationError):
            Crypter.aes_gcm(KEY).decode(envelope)
