"""
Field metadata for record classes.

A record class is any class that can be instantiated with no arguments and
whose declared fields are named after the LDAP attributes we want.  Either of
these works:

.. code-block:: python

    @dataclass
    class Person:
        cn: str | None = None
        sn: str | None = None
        mail: str | None = None

    class Person:
        cn: str | None = None
        sn: str | None = None
        mail: str | None = None

:py:class:`RecordShape` works out the field list for such a class once and
keeps it, along with a setter for each field, so that mapping an entry is a
dictionary walk instead of repeated introspection.
"""

import dataclasses
import inspect
import threading
import typing
from collections.abc import Callable
from typing import Any, ClassVar

from django.utils.functional import cached_property

from .exceptions import ConstructionError

Setter = Callable[[Any, str], None]


def _is_classvar(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is ClassVar or typing.get_origin(annotation) is ClassVar


class RecordShape:
    """
    The ordered field names of a record class and how to set each of them.

    Use :py:meth:`for_class` rather than the constructor: shapes are cached
    per class.

    Args:
        model: the record class

    """

    #: Class-level cache of shapes, keyed by record class
    _shapes: ClassVar[dict[type, "RecordShape"]] = {}
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, model: type) -> None:
        self.model = model
        self.object_name = model.__name__

    @classmethod
    def for_class(cls, model: type) -> "RecordShape":
        """
        Return the (cached) shape for record class ``model``.

        Raises:
            ConstructionError: ``model`` is not a class

        """
        if not isinstance(model, type):
            msg = f"{model!r} is not a class"
            raise ConstructionError(msg)
        shape = cls._shapes.get(model)
        if shape is None:
            with cls._lock:
                shape = cls._shapes.get(model)
                if shape is None:
                    shape = cls(model)
                    cls._shapes[model] = shape
        return shape

    def __repr__(self) -> str:
        return f"<RecordShape for {self.object_name}>"

    def _get_fields(self) -> list[str]:
        if dataclasses.is_dataclass(self.model):
            return [f.name for f in dataclasses.fields(self.model)]
        names: list[str] = []
        # Walk the MRO base-first so that inherited fields come first, the way
        # dataclasses order them
        for klass in reversed(self.model.__mro__):
            annotations = inspect.get_annotations(klass)
            for name, annotation in annotations.items():
                if name.startswith("_") or name in names:
                    continue
                if _is_classvar(annotation):
                    continue
                names.append(name)
        return names

    @cached_property
    def attributes(self) -> list[str]:
        """
        The LDAP attribute names for this shape: its field names, in
        declaration order.
        """
        return self._get_fields()

    @cached_property
    def attribute_lookup(self) -> dict[str, str]:
        """
        Lower-cased attribute name to field name.
        """
        return {name.lower(): name for name in self.attributes}

    @cached_property
    def setters(self) -> dict[str, Setter]:
        """
        Field name to a function that assigns that field on an instance.
        """

        def make_setter(name: str) -> Setter:
            def setter(obj: Any, value: str) -> None:
                setattr(obj, name, value)

            return setter

        return {name: make_setter(name) for name in self.attributes}

    def new(self) -> Any:
        """
        Return a fresh instance of our record class.

        Raises:
            ConstructionError: the class could not be instantiated with no
                arguments

        """
        try:
            return self.model()
        except Exception as e:
            msg = f"Could not create an instance of {self.object_name}: {e}"
            raise ConstructionError(msg) from e

    def set(self, obj: Any, name: str, value: str) -> None:
        """
        Assign ``value`` to field ``name`` of ``obj``.

        Raises:
            ConstructionError: ``name`` is not one of our fields, or the field
                refused the assignment (a frozen dataclass, or a property setter
                that raised)

        """
        try:
            setter = self.setters[name]
        except KeyError as e:
            msg = f"{self.object_name} has no field named '{name}'"
            raise ConstructionError(msg) from e
        try:
            setter(obj, value)
        except Exception as e:
            msg = f"Could not set {self.object_name}.{name}: {e}"
            raise ConstructionError(msg) from e
