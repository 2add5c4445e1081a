"""
Session Serializers: flatten a session record into bytes and back.

Two serializers are available:
- ``JSONSerializer`` (default): strict orjson encoding. Only a closed set of
  types is accepted; bytes, dates and registered pydantic models are tagged
  so they round-trip with their original type.
- ``PickleSerializer``: jsonpickle encoding for richer Python values
  (tuples, sets, non-string keys, pydantic models).

Both raise ``SerializationError`` for values they cannot restore and
``DeserializationError`` for malformed input.
"""
import math
import base64
import binascii
from typing import Any, Optional, Protocol
from datetime import date, datetime, time

import orjson
import jsonpickle
from jsonpickle.unpickler import loadclass
from pydantic import BaseModel, ValidationError

from .exceptions import DeserializationError, SerializationError

_TAG_PREFIX = "__crypter_"
_DICT_TAG = "__crypter_dict__"
_BYTES_TAG = "__crypter_bytes__"
_DATETIME_TAG = "__crypter_datetime__"
_DATE_TAG = "__crypter_date__"
_TIME_TAG = "__crypter_time__"
_MODEL_TAG = "__crypter_model__"

_INT_MIN = -(2 ** 63)
_INT_MAX = 2 ** 64 - 1

# orjson refuses to nest deeper than this
MAX_DEPTH = 255


class Serializer(Protocol):
    """Reversible serializer for the session record."""

    name: str

    def dumps(self, record: dict[str, Any]) -> bytes:
        ...

    def loads(self, data: bytes) -> Any:
        ...


def _model_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


# ---------------------------------------------------------------------------
# orjson serializer
# ---------------------------------------------------------------------------

class JSONSerializer:
    """Strict JSON serializer built on orjson.

    Supported value types: None, bool, int (64-bit range), finite float, str,
    bytes, datetime, date, time, list, tuple (restored as list), dict with
    str keys, and pydantic models registered with :meth:`register`.
    Subclasses and look-alikes (bytearray, OrderedDict, enums) are refused,
    as are reference cycles and nesting deeper than ``MAX_DEPTH``.
    """

    name = "json"

    def __init__(self, *models: type[BaseModel]):
        self._models: dict[str, type[BaseModel]] = {}
        self.register(*models)

    def register(self, *models: type[BaseModel]) -> None:
        """Allow instances of the given pydantic models in session values.

        Raises:
            TypeError: If a class is not a pydantic model.
        """
        for model in models:
            if not (isinstance(model, type) and issubclass(model, BaseModel)):
                raise TypeError(
                    f"Only pydantic models can be registered, got {model!r}"
                )
            self._models[_model_name(model)] = model

    @property
    def models(self) -> list[str]:
        return sorted(self._models)

    def _pack(self, value: Any, depth: int = 0, path: Optional[set] = None) -> Any:
        if depth > MAX_DEPTH:
            raise SerializationError(
                f"session values nest deeper than {MAX_DEPTH} levels",
                stage="serialize",
            )
        kind = type(value)
        if value is None or kind in (bool, str):
            return value
        if kind is int:
            if not _INT_MIN <= value <= _INT_MAX:
                raise SerializationError(
                    f"integer {value} is out of the 64-bit range",
                    stage="serialize",
                )
            return value
        if kind is float:
            if not math.isfinite(value):
                raise SerializationError(
                    f"float {value} cannot be serialized", stage="serialize"
                )
            return value
        if kind is bytes:
            return {_BYTES_TAG: base64.b64encode(value).decode("ascii")}
        if kind is datetime:
            return {_DATETIME_TAG: value.isoformat()}
        if kind is date:
            return {_DATE_TAG: value.isoformat()}
        if kind is time:
            return {_TIME_TAG: value.isoformat()}
        if kind in (list, tuple, dict):
            path = path if path is not None else set()
            if id(value) in path:
                raise SerializationError(
                    "session values contain a reference cycle", stage="serialize"
                )
            path.add(id(value))
            try:
                if kind is dict:
                    return self._pack_dict(value, depth, path)
                return [self._pack(item, depth + 1, path) for item in value]
            finally:
                path.discard(id(value))
        name = _model_name(kind)
        if isinstance(value, BaseModel) and self._models.get(name) is kind:
            return {_MODEL_TAG: name, "data": value.model_dump(mode="json")}
        raise SerializationError(
            f"type not registered for session serialization: {name}",
            stage="serialize",
        )

    def _pack_dict(self, value: dict, depth: int, path: set) -> dict:
        packed = {}
        for key, item in value.items():
            if type(key) is not str:
                raise SerializationError(
                    f"dict key {key!r} is not a string", stage="serialize"
                )
            packed[key] = self._pack(item, depth + 1, path)
        # user keys colliding with the tag namespace are escaped
        if any(key.startswith(_TAG_PREFIX) for key in packed):
            return {_DICT_TAG: packed}
        return packed

    def _unpack(self, value: Any) -> Any:
        if isinstance(value, list):
            return [self._unpack(item) for item in value]
        if not isinstance(value, dict):
            return value
        if not any(key.startswith(_TAG_PREFIX) for key in value):
            return {key: self._unpack(item) for key, item in value.items()}
        if len(value) == 1:
            tag, raw = next(iter(value.items()))
            if tag == _DICT_TAG and isinstance(raw, dict):
                return {key: self._unpack(item) for key, item in raw.items()}
            if tag == _BYTES_TAG:
                return base64.b64decode(raw, validate=True)
            if tag == _DATETIME_TAG:
                return datetime.fromisoformat(raw)
            if tag == _DATE_TAG:
                return date.fromisoformat(raw)
            if tag == _TIME_TAG:
                return time.fromisoformat(raw)
        if set(value) == {_MODEL_TAG, "data"}:
            name = value[_MODEL_TAG]
            model = self._models.get(name)
            if model is None:
                raise DeserializationError(
                    f"unknown session model: {name}", stage="deserialize"
                )
            return model.model_validate(value["data"])
        raise DeserializationError(
            f"unexpected tagged value: {sorted(value)}", stage="deserialize"
        )

    def dumps(self, record: dict[str, Any]) -> bytes:
        try:
            return orjson.dumps(self._pack(record))
        except SerializationError:
            raise
        except (orjson.JSONEncodeError, RecursionError) as err:
            raise SerializationError(
                f"failed to encode session data: {err}", stage="serialize"
            ) from err

    def loads(self, data: bytes) -> Any:
        try:
            return self._unpack(orjson.loads(data))
        except DeserializationError:
            raise
        except (
            TypeError, ValueError, RecursionError, binascii.Error, ValidationError
        ) as err:
            raise DeserializationError(
                f"failed to decode session data: {err}", stage="deserialize"
            ) from err


# ---------------------------------------------------------------------------
# jsonpickle serializer
# ---------------------------------------------------------------------------

class PydanticHandler(jsonpickle.handlers.BaseHandler):
    """PydanticHandler.
    This class can handle with serializable Pydantic Models.
    """
    def flatten(self, obj, data):
        data['__dict__'] = self.context.flatten(obj.model_dump(), reset=False)
        return data

    def restore(self, obj):
        module_and_type = obj['py/object']
        mdl = loadclass(module_and_type)
        if mdl is None:
            raise DeserializationError(
                f"unknown session model: {module_and_type}", stage="deserialize"
            )
        return mdl.model_validate(
            self.context.restore(obj['__dict__'], reset=False)
        )

jsonpickle.handlers.registry.register(BaseModel, PydanticHandler, base=True)


class PickleSerializer:
    """jsonpickle serializer.

    Accepts everything the JSON serializer does plus sets, frozensets,
    tuples, non-string dict keys and any pydantic model. Arbitrary class
    instances are refused, since they may not restore in another process.
    """

    name = "pickle"

    def _is_serializable(
        self, value: Any, depth: int = 0, path: Optional[set] = None
    ) -> bool:
        """Check if a value can be reliably serialized and restored with jsonpickle.

        Containers and model fields are checked recursively. Reference
        cycles and nesting deeper than ``MAX_DEPTH`` are refused.
        """
        if depth > MAX_DEPTH:
            return False
        if value is None or isinstance(value, (bool, int, float, str, bytes)):
            return True
        if isinstance(value, (datetime, date, time)):
            return True
        if isinstance(value, BaseModel):
            return self._is_serializable(value.model_dump(), depth + 1, path)
        if not isinstance(value, (dict, list, tuple, set, frozenset)):
            return False
        path = path if path is not None else set()
        if id(value) in path:
            return False
        path.add(id(value))
        try:
            if isinstance(value, dict):
                return all(
                    self._is_serializable(k, depth + 1, path)
                    and self._is_serializable(v, depth + 1, path)
                    for k, v in value.items()
                )
            return all(self._is_serializable(v, depth + 1, path) for v in value)
        finally:
            path.discard(id(value))

    def dumps(self, record: dict[str, Any]) -> bytes:
        try:
            for key, value in record.items():
                if not self._is_serializable(value):
                    raise SerializationError(
                        f"value of {key!r} is not serializable: "
                        f"{type(value).__name__}",
                        stage="serialize",
                    )
            return jsonpickle.encode(record, keys=True).encode("utf-8")
        except SerializationError:
            raise
        except Exception as err:
            raise SerializationError(
                f"failed to encode session data: {err}", stage="serialize"
            ) from err

    def loads(self, data: bytes) -> Any:
        try:
            return jsonpickle.decode(data.decode("utf-8"), keys=True)
        except DeserializationError:
            raise
        except Exception as err:
            raise DeserializationError(
                f"failed to decode session data: {err}", stage="deserialize"
            ) from err


SERIALIZERS = {
    "json": JSONSerializer,
    "pickle": PickleSerializer,
}


def get_serializer(name: str) -> Serializer:
    """Return a new serializer instance by name.

    Raises:
        ValueError: If the serializer name is unknown.
    """
    try:
        return SERIALIZERS[name]()
    except KeyError:
        raise ValueError(f"Unsupported session serializer: {name}") from None
