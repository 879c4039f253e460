"""
Mapping of directory entries onto record instances.
"""

import logging
from typing import Any

from .constants import LOGGER_NAME
from .exceptions import ConstructionError
from .models import DirectoryEntry
from .options import RecordShape
from .typing import LDAPData


class AttributeMapper:
    """
    Build record instances from :py:class:`~ldaputility.models.DirectoryEntry`
    objects.

    For each field of the record's shape, if the entry has an attribute of
    that name (compared case-insensitively) the field is set to the
    attribute's first value as a string.  Fields whose attribute is absent
    keep their class default.  Attributes on the entry that the shape does not
    name are ignored.

    Keyword Args:
        logger: where to report ignored attributes; defaults to the package
            logger

    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    def map(
        self,
        entry: DirectoryEntry | LDAPData,
        shape: RecordShape | type,
    ) -> Any:
        """
        Return a new record populated from ``entry``.

        Args:
            entry: the entry, or a raw ``(dn, attrs)`` tuple from python-ldap
            shape: the record shape, or the record class itself

        Raises:
            ConstructionError: the record could not be created, a field could
                not be set, or a value was not valid UTF-8

        Returns:
            An instance of the shape's record class.

        """
        if not isinstance(shape, RecordShape):
            shape = RecordShape.for_class(shape)
        if not isinstance(entry, DirectoryEntry):
            entry = DirectoryEntry.from_ldap(entry)
        obj = shape.new()
        for name in shape.attributes:
            try:
                value = entry.value(name)
            except UnicodeDecodeError as e:
                msg = (
                    f"Could not set {shape.object_name}.{name} from {entry.dn}: "
                    "value is not valid UTF-8"
                )
                raise ConstructionError(msg) from e
            if value is not None:
                shape.set(obj, name, value)
        if self.logger.isEnabledFor(logging.DEBUG):
            ignored = [
                name
                for name in entry.attribute_names
                if name.lower() not in shape.attribute_lookup
            ]
            if ignored:
                self.logger.debug(
                    "mapper.attributes.ignored record=%s dn=%s attributes=%s",
                    shape.object_name,
                    entry.dn,
                    ",".join(ignored),
                )
        return obj
