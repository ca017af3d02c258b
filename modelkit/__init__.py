"""
Runtime schema compiler.

Compiles declarative field declarations into model factories that build
objects with coerced fields, computed fields and change notifications.
"""

from .dependencies import deps_required

deps_required(
    {
        "attrs": "attrs",
        "typing_extensions": "typing-extensions",
    }
)

from .config import DEFAULT_CONFIG, EngineConfig  # noqa: E402
from .exceptions import *  # noqa: E402, F403
from .fields import (  # noqa: E402
    Computed,
    FieldDescriptor,
    compile_descriptor,
    computed,
    resolve_converter,
)
from .schema import Engine, Model, ModelFactory, create_engine  # noqa: E402
from .signals import Signal, SignalBinding  # noqa: E402

__version__ = "0.1.0"
