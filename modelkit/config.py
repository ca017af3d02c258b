"""
Engine configuration.

An `EngineConfig` is created once per engine and never mutated. Schemas merge
their own options over it, producing a new config.
"""

import typing

import attrs
from typing_extensions import Self

from .exceptions import ConfigurationError
from .typing import ArrayConstructor, ListenerFactory, PreInitHook


__all__ = ["EngineConfig", "DEFAULT_CONFIG", "normalize_options", "identity"]


def identity(value: typing.Any) -> typing.Any:
    return value


_bool_option = attrs.validators.instance_of(bool)
_optional_hook = attrs.validators.optional(attrs.validators.is_callable())

OPTION_ALIASES: typing.Dict[str, str] = {
    "castString": "cast_string",
    "parseNumbers": "parse_numbers",
    "changeEvent": "change_event",
    "extraProperties": "extra_properties",
    "embedPlainData": "embed_plain_data",
    "arrayConstructor": "array_constructor",
    "preInit": "pre_init",
    "onChangeListener": "on_change_listener",
}
"""camelCase spellings accepted for every option."""


@attrs.frozen(kw_only=True)
class EngineConfig:
    """
    Immutable engine/schema configuration.

    :param cast_string: If True, the "string" converter coerces non-string values with `str()`.
    :param parse_numbers: If True, the "number" converter parses textual numbers.
    :param change_event: If True, every model instance gets an `on_change` signal.
    :param extra_properties: If True, undeclared input keys are copied onto the instance.
    :param embed_plain_data: If True, the working store is exposed on the instance as `_data`.
    :param array_constructor: Post-processes every materialized array field.
    :param pre_init: Hook run with the partially built instance before fields are wired.
        A non-None return value replaces the instance.
    :param on_change_listener: Hook called once per instance; its return value is
        attached as a listener to the instance's change channel.
    """

    cast_string: bool = attrs.field(default=True, validator=_bool_option)
    parse_numbers: bool = attrs.field(default=True, validator=_bool_option)
    change_event: bool = attrs.field(default=True, validator=_bool_option)
    extra_properties: bool = attrs.field(default=False, validator=_bool_option)
    embed_plain_data: bool = attrs.field(default=True, validator=_bool_option)
    array_constructor: ArrayConstructor = attrs.field(
        default=identity, validator=attrs.validators.is_callable()
    )
    pre_init: typing.Optional[PreInitHook] = attrs.field(
        default=None, validator=_optional_hook
    )
    on_change_listener: typing.Optional[ListenerFactory] = attrs.field(
        default=None, validator=_optional_hook
    )

    @classmethod
    def from_options(
        cls,
        options: typing.Optional[typing.Mapping[str, typing.Any]] = None,
        /,
        **kwargs: typing.Any,
    ) -> Self:
        """Build a config from the defaults and the given options."""
        return cls().merge(options, **kwargs)

    def merge(
        self,
        overrides: typing.Union[
            "EngineConfig", typing.Mapping[str, typing.Any], None
        ] = None,
        /,
        **kwargs: typing.Any,
    ) -> Self:
        """
        Return a new config with `overrides` applied over this one.

        :param overrides: Another `EngineConfig` or a mapping of options.
            When a config is given, all of its values win.
        :param kwargs: Additional options. These win over `overrides`.
        """
        if isinstance(overrides, EngineConfig):
            options = attrs.asdict(overrides, recurse=False)
        else:
            options = normalize_options(overrides or {})
        options.update(normalize_options(kwargs))
        if not options:
            return self

        try:
            return attrs.evolve(self, **options)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    def as_dict(self) -> typing.Dict[str, typing.Any]:
        return attrs.asdict(self, recurse=False)


_OPTION_NAMES = frozenset(field.name for field in attrs.fields(EngineConfig))


def normalize_options(
    options: typing.Mapping[str, typing.Any],
) -> typing.Dict[str, typing.Any]:
    """
    Map option names to their canonical spelling.

    :raises ConfigurationError: If an option is not recognized.
    """
    normalized = {}
    for key, value in options.items():
        name = OPTION_ALIASES.get(key, key)
        if name not in _OPTION_NAMES:
            raise ConfigurationError(f"Unknown configuration option {key!r}")
        normalized[name] = value
    return normalized


DEFAULT_CONFIG = EngineConfig()
"""Process-wide defaults."""
