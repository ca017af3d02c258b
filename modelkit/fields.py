"""
Field declarations and descriptors.

Field declarations are compiled once, when a schema is defined, into either a
`StoredField` (a value kept in the instance's working store) or a
`ComputedField` (a value derived from other fields on demand). Both are
attribute descriptors installed on the schema's model class.
"""

import collections.abc
import logging
import re
import typing

from .config import DEFAULT_CONFIG, EngineConfig, identity
from .exceptions import FieldError, MissingRequiredField, ShapeError, TypeMismatch
from .typing import ArrayConstructor, ComputedGetter, ComputedSetter, Converter

if typing.TYPE_CHECKING:
    from .schema import Model


logger = logging.getLogger(__name__)

_UNAVAILABLE = object()
"""Marks a computed value that could not be evaluated."""


__all__ = [
    "FieldDescriptor",
    "Computed",
    "computed",
    "BaseField",
    "StoredField",
    "ComputedField",
    "TYPE_TAGS",
    "parse_float",
    "string_converter",
    "number_converter",
    "resolve_converter",
    "compile_descriptor",
    "compile_declaration",
    "is_computed_declaration",
]


class FieldDescriptor(typing.NamedTuple):
    """Compiled, canonical form of a stored field declaration."""

    is_array: bool
    converter: Converter
    required: bool = True
    default: typing.Any = None


class Computed(typing.NamedTuple):
    """Declaration of a computed field."""

    cache_key: typing.Tuple[str, ...]
    """Names of the fields the computed value depends on."""
    get: ComputedGetter
    set: typing.Optional[ComputedSetter] = None


def computed(
    cache_key: typing.Iterable[str],
    get: ComputedGetter,
    set: typing.Optional[ComputedSetter] = None,
) -> Computed:
    """
    Declare a computed field.

    :param cache_key: Names of the stored fields the value depends on.
        Changing any of them re-notifies the computed field.
    :param get: Called with the model instance to compute the value.
    :param set: Called with the model instance and a value. Should assign
        the instance's own fields. If omitted, the field is read-only.
    """
    return Computed(tuple(cache_key), get, set)


##############
# CONVERTERS #
##############

_FLOAT_PREFIX = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_float(text: str) -> float:
    """
    Parse the longest valid float prefix of `text`.

    Leading whitespace is skipped and trailing characters are ignored.
    Returns `nan` if `text` does not start with a number.
    """
    match = _FLOAT_PREFIX.match(text.lstrip())
    if match is None:
        return float("nan")
    return float(match.group())


def _is_number(value: typing.Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def string_converter(config: EngineConfig = DEFAULT_CONFIG) -> Converter:
    """Build the converter for the "string" type tag."""
    cast_string = config.cast_string

    def to_string(value: typing.Any) -> str:
        if isinstance(value, str):
            return value
        if cast_string:
            return str(value)
        raise TypeMismatch(f"Value {value!r} is not a string", value=value)

    return to_string


def number_converter(config: EngineConfig = DEFAULT_CONFIG) -> Converter:
    """Build the converter for the "number" type tag."""
    parse_numbers = config.parse_numbers

    def to_number(value: typing.Any) -> typing.Union[int, float]:
        if _is_number(value):
            return value
        if isinstance(value, str) and parse_numbers:
            return parse_float(value)
        raise TypeMismatch(f"Value {value!r} is not a number", value=value)

    return to_number


TYPE_TAGS: typing.Dict[str, typing.Callable[[EngineConfig], Converter]] = {
    "string": string_converter,
    "number": number_converter,
}
"""Built-in type tags and their converter factories."""


def resolve_converter(
    type_: typing.Any,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Converter:
    """
    Resolve a field type to a converter.

    :param type_: A callable (used as-is) or a built-in type tag.
    :param config: Coercion policy for the built-in type tags.
    :raises ShapeError: If the type cannot be resolved.
    """
    if callable(type_):
        return type_
    if isinstance(type_, str) and type_ in TYPE_TAGS:
        return TYPE_TAGS[type_](config)
    raise ShapeError(
        f"Cannot resolve field type {type_!r}. "
        f"Expected a callable or one of: {', '.join(map(repr, TYPE_TAGS))}."
    )


############
# COMPILER #
############


def _is_sequence(value: typing.Any) -> bool:
    return isinstance(value, (list, tuple))


def is_computed_declaration(declaration: typing.Any) -> bool:
    """Check if a declaration has the computed field shape."""
    if isinstance(declaration, Computed):
        return True
    return (
        isinstance(declaration, collections.abc.Mapping)
        and "get" in declaration
        and ("cache_key" in declaration or "cacheKey" in declaration)
    )


def compile_descriptor(
    declaration: typing.Any,
    config: EngineConfig = DEFAULT_CONFIG,
) -> FieldDescriptor:
    """
    Compile a stored field declaration into a `FieldDescriptor`.

    Accepted shapes:
    - `[element_type]`: required array, no default.
    - `[type, required]` and `[type, required, default]`: `type` may be
      wrapped as `[element_type]` to declare an array.
    - A callable: required, converted by the callable.
    - A type tag ("string" or "number"): required, no default.
    - An int/float or non-tag string: required field of that type,
      defaulting to the given value.

    :raises ShapeError: If the declaration matches none of the shapes.
    """
    if _is_sequence(declaration):
        if len(declaration) == 1:
            return FieldDescriptor(
                is_array=True,
                converter=resolve_converter(declaration[0], config),
            )

        if len(declaration) in (2, 3):
            type_, required = declaration[0], bool(declaration[1])
            default = declaration[2] if len(declaration) == 3 else None
            if _is_sequence(type_):
                if len(type_) != 1:
                    raise ShapeError(
                        f"Array type must have exactly one element type, got {type_!r}."
                    )
                return FieldDescriptor(
                    is_array=True,
                    converter=resolve_converter(type_[0], config),
                    required=required,
                    default=default,
                )
            return FieldDescriptor(
                is_array=False,
                converter=resolve_converter(type_, config),
                required=required,
                default=default,
            )

        raise ShapeError(
            f"Sequence declarations must have 1, 2 or 3 items, got {len(declaration)}."
        )

    if callable(declaration):
        return FieldDescriptor(is_array=False, converter=declaration)

    if isinstance(declaration, str):
        if declaration in TYPE_TAGS:
            return FieldDescriptor(
                is_array=False,
                converter=resolve_converter(declaration, config),
            )
        return FieldDescriptor(
            is_array=False,
            converter=string_converter(config),
            default=declaration,
        )

    if _is_number(declaration):
        return FieldDescriptor(
            is_array=False,
            converter=number_converter(config),
            default=declaration,
        )

    raise ShapeError(f"Unrecognized field declaration {declaration!r}.")


def _load_computed(declaration: typing.Any) -> Computed:
    if isinstance(declaration, Computed):
        cache_key, getter, setter = declaration
    else:
        cache_key = declaration.get("cache_key", declaration.get("cacheKey"))
        getter = declaration["get"]
        setter = declaration.get("set")

    if not _is_sequence(cache_key) or not all(isinstance(k, str) for k in cache_key):
        raise ShapeError(
            f"Computed field 'cache_key' must be a sequence of field names, got {cache_key!r}."
        )
    if not callable(getter):
        raise ShapeError(f"Computed field 'get' must be callable, got {getter!r}.")
    if setter is not None and not callable(setter):
        raise ShapeError(f"Computed field 'set' must be callable, got {setter!r}.")
    # Duplicate dependency names are dropped, order is kept.
    return Computed(tuple(dict.fromkeys(cache_key)), getter, setter)


def compile_declaration(
    name: str,
    declaration: typing.Any,
    config: EngineConfig = DEFAULT_CONFIG,
) -> "BaseField":
    """
    Compile a field declaration into a field descriptor bound to `name`.

    :raises ShapeError: If the declaration matches none of the shapes.
    """
    try:
        if is_computed_declaration(declaration):
            return ComputedField(_load_computed(declaration), name=name)
        return StoredField(
            compile_descriptor(declaration, config),
            name=name,
            array_constructor=config.array_constructor,
        )
    except ShapeError as exc:
        if exc.field_name is None:
            exc.field_name = name
            exc.args = (f"{name}: {exc.args[0]}",)
        raise


###############
# DESCRIPTORS #
###############


class BaseField:
    """Attribute descriptor for a declared model field."""

    def __init__(self, name: typing.Optional[str] = None) -> None:
        self.name = name

    def bind(self, parent: typing.Type[typing.Any], name: str) -> None:
        """Called when the field is bound to a model class."""
        self.name = name

    def __set_name__(self, owner: typing.Type[typing.Any], name: str) -> None:
        self.bind(owner, name)

    def __delete__(self, instance: typing.Any) -> None:
        raise AttributeError(f"Cannot delete field '{self.name}'.")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class StoredField(BaseField):
    """Field backed by the instance's working store."""

    def __init__(
        self,
        descriptor: FieldDescriptor,
        name: typing.Optional[str] = None,
        array_constructor: ArrayConstructor = identity,
    ) -> None:
        super().__init__(name)
        self.descriptor = descriptor
        self.array_constructor = array_constructor
        self.dependents: typing.Tuple["ComputedField", ...] = ()
        """Computed fields that depend on this field, in declaration order."""

    def materialize(self, value: typing.Any) -> typing.Any:
        """
        Convert a raw input value into the value to store.

        Missing (None) values are replaced by the field default. If there is
        still no value, required fields raise and optional ones store None.

        :raises MissingRequiredField: If a required field has no value.
        :raises TypeMismatch: If an array field is given a non-sequence value,
            or a value cannot be converted.
        """
        descriptor = self.descriptor
        try:
            if value is None:
                value = descriptor.default
                if descriptor.is_array and value is not None:
                    value = list(value)

            if value is None:
                if descriptor.required:
                    raise MissingRequiredField(
                        "Field is required and has no default.", self.name
                    )
                return None

            if not descriptor.is_array:
                return descriptor.converter(value)

            if not _is_sequence(value):
                raise TypeMismatch(
                    f"Expected a sequence for array field, got {type(value).__name__}.",
                    self.name,
                    value,
                )
            return self.array_constructor([descriptor.converter(item) for item in value])
        except FieldError as exc:
            if exc.field_name is None:
                exc.field_name = self.name
            raise

    def __get__(
        self,
        instance: typing.Optional["Model"],
        owner: typing.Optional[typing.Type[typing.Any]] = None,
    ) -> typing.Any:
        if instance is None:
            return self
        return instance._store.get(self.name)

    def __set__(self, instance: "Model", value: typing.Any) -> None:
        store = instance._store
        channel = instance._changes
        if channel is None or not len(channel):
            store[self.name] = value
            return

        # Dependents being assigned right now notify once their setter returns.
        previous = []
        for field in self.dependents:
            if field.name in instance._assigning:
                continue
            try:
                previous.append((field, field.__get__(instance)))
            except Exception:
                logger.debug(
                    "Computed field %r could not be evaluated before %r changed",
                    field.name,
                    self.name,
                    exc_info=True,
                )
        old_value = store.get(self.name)
        store[self.name] = value
        channel.dispatch(self.name, value, old_value)
        for field, before in previous:
            field.notify(instance, before)


class ComputedField(BaseField):
    """Field derived from other fields, with no storage of its own."""

    def __init__(self, declaration: Computed, name: typing.Optional[str] = None):
        super().__init__(name)
        self.cache_key = declaration.cache_key
        self.getter = declaration.get
        self.setter = declaration.set

    @property
    def read_only(self) -> bool:
        return self.setter is None

    def notify(self, instance: "Model", before: typing.Any) -> None:
        """Dispatch a change for this field, given its value before the change."""
        instance._changes.dispatch(self.name, self.getter(instance), before)

    def __get__(
        self,
        instance: typing.Optional["Model"],
        owner: typing.Optional[typing.Type[typing.Any]] = None,
    ) -> typing.Any:
        if instance is None:
            return self
        return self.getter(instance)

    def __set__(self, instance: "Model", value: typing.Any) -> None:
        if self.setter is None:
            raise AttributeError(f"Computed field '{self.name}' is read-only.")

        channel = instance._changes
        if channel is None or not len(channel):
            self.setter(instance, value)
            return

        try:
            before = self.getter(instance)
        except Exception:
            logger.debug(
                "Computed field %r could not be evaluated before assignment",
                self.name,
                exc_info=True,
            )
            before = _UNAVAILABLE
        nested = self.name in instance._assigning
        instance._assigning.add(self.name)
        try:
            self.setter(instance, value)
        finally:
            if not nested:
                instance._assigning.discard(self.name)
        if not nested and before is not _UNAVAILABLE:
            self.notify(instance, before)
