"""
An EnumerableType is a class with a predefined, closed list of options.

Every option is declared as a sealed classmethod (using the `option` decorator, or classmethod
together with typing.final) whose body returns `cls._get(id, name)`. The class hands out exactly
one instance per (id, name) pair, so options can safely be compared with `is`.

All options of a type are discovered automatically - there's no need to list them anywhere else.

Examples
--------
>>> class FlightType(EnumerableType):
...     @option
...     def Departure(cls):
...         return cls._get(1, "departure")
...
...     @option
...     def Arrival(cls):
...         return cls._get(2, "arrival")

>>> FlightType.Departure() is FlightType.Departure()
True
>>> FlightType.Departure().name, FlightType.Departure().id
('departure', 1)
>>> FlightType.enum() == (FlightType.Departure(), FlightType.Arrival())
True
>>> FlightType.from_id(2) is FlightType.Arrival()
True

Option factory names begin with an upper case letter, so they read like constants at the call site:

>>> if flight.type is FlightType.Arrival(): ...

Options are not picklable, since unpickling would create a second instance of the same option.
Store the `id` instead, and use `from_id` to get the option back.
"""
import threading
from typing import Any, Callable, TypeVar, final

from epic.logging import ClassLogger


class EnumerableTypeError(Exception):
    pass


class OptionNotFoundError(EnumerableTypeError, LookupError):
    pass


class SerializationNotSupportedError(EnumerableTypeError, TypeError):
    pass


E = TypeVar("E", bound="EnumerableType")


def option(func: Callable) -> classmethod:
    """
    Mark the given function as an option factory: a sealed classmethod which is enumerated by
    EnumerableType.enum(). Equivalent to stacking @classmethod on top of @typing.final.
    """
    return classmethod(final(func))


def _is_option_factory(attr: Any) -> bool:
    return isinstance(attr, classmethod) and getattr(attr.__func__, "__final__", False)


def _ids_equal(a, b) -> bool:
    # Strict comparison: 1, 1.0 and True are all different ids
    return type(a) is type(b) and a == b


def _id_to_str(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class EnumerableType:
    """
    Base class for types with a predefined list of options.

    Each subclass keeps its own cache of instances and its own enumeration cache, so two types
    declaring the same (id, name) pair never share an instance. Caches are guarded by a per-type
    re-entrant lock, making first access safe from multiple threads.
    """
    __slots__ = ("_id", "_name")

    LOGGER = ClassLogger()

    # Per-type state, re-created for every subclass in __init_subclass__
    _INSTANCES: dict = {}
    _ENUM_CACHE: tuple | None = None
    _LOCK = threading.RLock()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        # Option factories are sealed - a subclass may add options but never redefine one
        for name in vars(cls):
            for base in cls.__mro__[1:]:
                if base is EnumerableType:
                    break
                if _is_option_factory(vars(base).get(name)):
                    raise TypeError(f"{cls.__name__} cannot override option {base.__name__}.{name}")
        cls._INSTANCES = {}
        cls._ENUM_CACHE = None
        cls._LOCK = threading.RLock()

    def __init__(self, *args, **kwargs):
        raise TypeError(f"{type(self).__name__} cannot be instantiated directly, use its options instead")

    @classmethod
    def _get(cls: type[E], id, name=None) -> E:
        """
        Return the single instance of this type for the given id and name, creating it on first use.
        Should only be called from the body of option factories.

        Parameters
        ----------
        id : hashable scalar
            The option's id. None is a valid id (e.g. for an "Unknown" option).
        name : optional
            A human-readable name. Defaults to the id itself.

        Returns
        -------
        EnumerableType
            The canonical instance for (id, name).
        """
        if cls is EnumerableType:
            raise TypeError("EnumerableType is abstract, options must be declared on a subclass")
        if name is None:
            name = id
        key = (type(id), id, type(name), name)
        with cls._LOCK:
            instance = cls._INSTANCES.get(key)
            if instance is None:
                cls.LOGGER.debug(f"Creating option {cls.__name__}(id={id!r}, name={name!r})")
                # Bypass __init__, which is forbidden to everyone else
                instance = object.__new__(cls)
                object.__setattr__(instance, "_id", id)
                object.__setattr__(instance, "_name", name)
                cls._INSTANCES[key] = instance
        return instance

    @classmethod
    def _discover(cls) -> list[Callable]:
        """
        Collect the bound option factories of this type, from the furthest ancestor down to the
        type itself, each class in declaration order.
        """
        factories = {}
        for klass in reversed(cls.__mro__):
            if not issubclass(klass, EnumerableType) or klass is EnumerableType:
                continue
            for name, attr in vars(klass).items():
                if _is_option_factory(attr) and name not in factories:
                    factories[name] = getattr(cls, name)
        return list(factories.values())

    @classmethod
    def enum(cls: type[E]) -> tuple[E, ...]:
        """
        Return all options of this type, in declaration order (inherited options first).
        The result is computed once and the same tuple is returned on every call.
        """
        cache = cls._ENUM_CACHE
        if cache is None:
            with cls._LOCK:
                cache = cls._ENUM_CACHE
                if cache is None:
                    factories = cls._discover()
                    cls.LOGGER.debug(f"Discovered {len(factories)} options on {cls.__name__}")
                    cache = cls._ENUM_CACHE = tuple(factory() for factory in factories)
        return cache

    @classmethod
    def from_id(cls: type[E], id) -> E:
        """
        Return the option with the given id.

        Parameters
        ----------
        id : hashable scalar
            The id to look for. Must match the option's id strictly (same type and value).

        Returns
        -------
        EnumerableType
            The matching option.

        Raises
        ------
        OptionNotFoundError
            If no option of this type has the given id.
        """
        for value in cls.enum():
            if _ids_equal(value.id, id):
                return value
        raise OptionNotFoundError(
            f"{cls.__name__}.from_id({_id_to_str(id)}): given id doesn't exist on this enumerable type."
        )

    @property
    def id(self):
        return self._id

    @property
    def name(self):
        return self._name

    def __setattr__(self, key, value):
        raise AttributeError(f"{type(self).__name__} options are immutable")

    def __delattr__(self, item):
        raise AttributeError(f"{type(self).__name__} options are immutable")

    # Copies must not create new instances
    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce_ex__(self, protocol):
        cls = type(self)
        raise SerializationNotSupportedError(
            f"Pickling of EnumerableType is not supported. [{cls.__module__}.{cls.__qualname__}]"
        )

    def __reduce__(self):
        return self.__reduce_ex__(None)

    def __repr__(self):
        return f"<{type(self).__name__} id={self._id!r} name={self._name!r}>"

    def __str__(self):
        return str(self._name)
