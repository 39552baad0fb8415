from .base import (
    EnumerableType,
    EnumerableTypeError,
    OptionNotFoundError,
    SerializationNotSupportedError,
    option,
)
