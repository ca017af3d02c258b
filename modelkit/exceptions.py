import typing


class ModelKitError(Exception):
    """Base class for modelkit errors."""

    pass


class ConfigurationError(ModelKitError):
    """Exception raised for invalid engine or schema options."""

    pass


class SchemaError(ModelKitError):
    """Exception raised for errors in a schema definition."""

    pass


class ShapeError(SchemaError):
    """Exception raised when a field declaration matches no recognized shape."""

    def __init__(
        self,
        message: str,
        field_name: typing.Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.field_name = field_name


class FieldError(ModelKitError):
    """Exception raised for field value errors."""

    def __init__(
        self,
        message: str,
        field_name: typing.Optional[str] = None,
        value: typing.Any = None,
    ) -> None:
        super().__init__(message)
        self.field_name = field_name
        self.value = value

    def __str__(self) -> str:
        message = super().__str__()
        if self.field_name:
            return f"{self.field_name}: {message}"
        return message


class TypeMismatch(FieldError, TypeError):
    """Exception raised when a value cannot be converted to the declared type."""

    pass


class MissingRequiredField(FieldError):
    """Exception raised when a required field has neither a value nor a default."""

    pass


class SignalError(ModelKitError):
    """Exception raised for invalid use of a signal."""

    pass


__all__ = [
    "ModelKitError",
    "ConfigurationError",
    "SchemaError",
    "ShapeError",
    "FieldError",
    "TypeMismatch",
    "MissingRequiredField",
    "SignalError",
]
