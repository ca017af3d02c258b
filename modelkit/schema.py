"""
Model factories.

A schema is a mapping of field names to field declarations. Defining a schema
compiles every declaration once and builds a model class carrying one
descriptor per field. The resulting `ModelFactory` turns raw mappings into
live model instances.

Example:
```python
import modelkit

schema = modelkit.create_engine()


def set_full_name(person, value):
    person.first, person.last = value.split(" ", 1)


Person = schema(
    {
        "first": "string",
        "last": "string",
        "age": ["number", False, None],
        "full_name": modelkit.computed(
            ["first", "last"],
            get=lambda person: f"{person.first} {person.last}",
            set=set_full_name,
        ),
    },
    name="Person",
)

person = Person({"first": "Ada", "last": "Lovelace"})
person.on_change.add(print)
person.first = "Augusta"
# first Augusta Ada
# full_name Augusta Lovelace Ada Lovelace
```
"""

import collections.abc
import logging
import typing
from types import MappingProxyType

from .config import DEFAULT_CONFIG, EngineConfig
from .exceptions import (
    ConfigurationError,
    ModelKitError,
    SchemaError,
    ShapeError,
    TypeMismatch,
)
from .fields import BaseField, ComputedField, StoredField, compile_declaration
from .signals import Signal
from .typing import SupportsKeysAndGetItem


__all__ = ["Model", "ModelFactory", "Engine", "create_engine"]

logger = logging.getLogger(__name__)


class Model:
    """
    Base class for model instances.

    Subclasses are built by `ModelFactory`. Do not instantiate directly.
    """

    __slots__ = ("_store", "_changes", "_assigning", "__dict__", "__weakref__")
    __fields__: typing.Mapping[str, BaseField] = MappingProxyType({})
    __factory__: typing.Optional["ModelFactory"] = None

    def __init__(self, store: typing.Dict[str, typing.Any]) -> None:
        self._store = store
        self._changes: typing.Optional[Signal] = None
        """Channel change notifications are dispatched through."""
        self._assigning: typing.Set[str] = set()
        """Names of computed fields whose setter is running."""

    def to_dict(self) -> typing.Dict[str, typing.Any]:
        """Return the values of all declared fields, computed ones included."""
        cls = type(self)
        return {name: field.__get__(self, cls) for name, field in self.__fields__.items()}

    def __getitem__(self, key: str) -> typing.Any:
        if key not in self.__fields__:
            raise KeyError(key)
        return getattr(self, key)

    def __setitem__(self, key: str, value: typing.Any) -> None:
        if key not in self.__fields__:
            raise KeyError(key)
        setattr(self, key, value)

    def __repr__(self) -> str:
        cls = type(self)
        values = []
        for name, field in self.__fields__.items():
            try:
                value = repr(field.__get__(self, cls))
            except Exception as exc:
                value = f"<{type(exc).__name__}>"
            values.append(f"{name}={value}")
        return f"{cls.__name__}({', '.join(values)})"


_RESERVED_NAMES = frozenset(dir(Model)) | {"_data", "on_change"}


def _link_dependencies(fields: typing.Mapping[str, BaseField]) -> None:
    """
    Register every computed field on the stored fields it depends on.

    :raises ShapeError: If a computed field depends on an undeclared or computed field.
    """
    dependents: typing.Dict[str, typing.List[ComputedField]] = {}
    for name, field in fields.items():
        if not isinstance(field, ComputedField):
            continue

        for dependency in field.cache_key:
            target = fields.get(dependency)
            if target is None:
                raise ShapeError(
                    f"{name}: depends on undeclared field {dependency!r}.", name
                )
            if not isinstance(target, StoredField):
                raise ShapeError(
                    f"{name}: cannot depend on computed field {dependency!r}.", name
                )
            dependents.setdefault(dependency, []).append(field)

    for dependency, computed_fields in dependents.items():
        typing.cast(StoredField, fields[dependency]).dependents = tuple(computed_fields)


class ModelFactory:
    """
    Callable producing model instances from raw data.

    :param fields: Mapping of field names to field declarations.
    :param config: Effective configuration of the schema.
    :param name: Name of the generated model class.
    """

    def __init__(
        self,
        fields: typing.Mapping[str, typing.Any],
        config: EngineConfig = DEFAULT_CONFIG,
        name: typing.Optional[str] = None,
    ) -> None:
        if not isinstance(fields, collections.abc.Mapping):
            raise SchemaError(
                f"Field declarations must be a mapping, got {type(fields).__name__}."
            )

        compiled: typing.Dict[str, BaseField] = {}
        for field_name, declaration in fields.items():
            if not isinstance(field_name, str):
                raise ShapeError(f"Field name {field_name!r} is not a string.")
            if field_name in _RESERVED_NAMES:
                raise ShapeError(f"Field name {field_name!r} is reserved.", field_name)
            compiled[field_name] = compile_declaration(field_name, declaration, config)

        _link_dependencies(compiled)

        self.config = config
        self.fields: typing.Mapping[str, BaseField] = MappingProxyType(compiled)
        self.stored_fields: typing.Mapping[str, StoredField] = MappingProxyType(
            {k: v for k, v in compiled.items() if isinstance(v, StoredField)}
        )
        self.computed_fields: typing.Mapping[str, ComputedField] = MappingProxyType(
            {k: v for k, v in compiled.items() if isinstance(v, ComputedField)}
        )
        self.model_class: typing.Type[Model] = type(
            name or "Model",
            (Model,),
            {
                **compiled,
                "__slots__": (),
                "__fields__": self.fields,
                "__factory__": self,
            },
        )
        logger.debug(
            "Defined schema %r with %d stored and %d computed field(s)",
            self.model_class.__name__,
            len(self.stored_fields),
            len(self.computed_fields),
        )

    def __call__(
        self,
        data: typing.Optional[SupportsKeysAndGetItem] = None,
    ) -> Model:
        """
        Build a model instance from raw data.

        The input is shallow-copied and never modified.

        :param data: Mapping of raw field values.
        :raises FieldError: If a field value is missing or cannot be converted.
        """
        config = self.config
        model_class = self.model_class
        if data is None:
            data = {}
        elif not callable(getattr(data, "keys", None)):
            raise TypeMismatch(
                f"Model data must be a mapping, got {type(data).__name__}.", value=data
            )
        store = {key: data[key] for key in data.keys()}
        instance = model_class(store)

        if config.extra_properties:
            for key, value in store.items():
                if isinstance(key, str) and key not in self.fields and not hasattr(model_class, key):
                    instance.__dict__[key] = value
        if config.embed_plain_data:
            instance.__dict__["_data"] = store
        if config.change_event:
            channel = Signal()
            instance._changes = channel
            instance.__dict__["on_change"] = channel

        if config.pre_init is not None:
            result = config.pre_init(instance)
            if result is not None:
                if not isinstance(result, model_class):
                    raise ConfigurationError(
                        f"pre_init must return None or a {model_class.__name__} "
                        f"instance, got {type(result).__name__}."
                    )
                instance = result

        if instance._changes is not None and config.on_change_listener is not None:
            instance._changes.add(config.on_change_listener(instance))

        store = instance._store
        try:
            for name, field in self.stored_fields.items():
                store[name] = field.materialize(store.get(name))
        except ModelKitError as exc:
            logger.debug("Could not build %s: %s", model_class.__name__, exc)
            raise
        return instance

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.model_class.__name__}, fields={list(self.fields)})"


class Engine:
    """
    Schema definition entry point.

    Holds the engine-wide configuration. Calling the engine (or
    `define_schema`) with field declarations returns a `ModelFactory`.
    """

    def __init__(
        self,
        config: typing.Union[EngineConfig, typing.Mapping[str, typing.Any], None] = None,
        /,
        **options: typing.Any,
    ) -> None:
        self.config = DEFAULT_CONFIG.merge(config, **options)

    def define_schema(
        self,
        fields: typing.Mapping[str, typing.Any],
        config: typing.Union[EngineConfig, typing.Mapping[str, typing.Any], None] = None,
        /,
        *,
        name: typing.Optional[str] = None,
        **options: typing.Any,
    ) -> ModelFactory:
        """
        Define a schema.

        :param fields: Mapping of field names to field declarations.
        :param config: Schema options, merged over the engine configuration.
        :param name: Name of the generated model class.
        :param options: Additional schema options. These win over `config`.
        :raises ShapeError: If a field declaration is invalid.
        :raises ConfigurationError: If an option is invalid.
        """
        return ModelFactory(fields, self.config.merge(config, **options), name=name)

    __call__ = define_schema


def create_engine(
    config: typing.Union[EngineConfig, typing.Mapping[str, typing.Any], None] = None,
    /,
    **options: typing.Any,
) -> Engine:
    """
    Create a schema engine.

    :param config: Engine-wide options, merged over the defaults.
    :param options: Additional options. These win over `config`.
    """
    return Engine(config, **options)
