import typing

Converter: typing.TypeAlias = typing.Callable[[typing.Any], typing.Any]
"""Unary function mapping a raw value to its typed/coerced form."""
ArrayConstructor: typing.TypeAlias = typing.Callable[
    [typing.List[typing.Any]], typing.Sequence[typing.Any]
]
"""Post-processes every materialized array field."""
Listener: typing.TypeAlias = typing.Callable[..., typing.Any]
"""Change listener. Called with `(field_name, new_value, old_value)`."""
ComputedGetter: typing.TypeAlias = typing.Callable[[typing.Any], typing.Any]
ComputedSetter: typing.TypeAlias = typing.Callable[[typing.Any, typing.Any], None]
PreInitHook: typing.TypeAlias = typing.Callable[[typing.Any], typing.Any]
ListenerFactory: typing.TypeAlias = typing.Callable[[typing.Any], Listener]


class SupportsKeysAndGetItem(typing.Protocol):
    def __getitem__(self, name: typing.Any, /) -> typing.Any: ...

    def keys(self) -> typing.Iterable[typing.Any]: ...
