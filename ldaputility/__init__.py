"""
Paged LDAP search, bind authentication and attribute-to-record mapping on top
of python-ldap.
"""

from .codegen import SimpleClassGenerator, generate_class_source
from .endpoint import DirectoryEndpoint
from .exceptions import (
    AuthenticationError,
    ConstructionError,
    DirectoryConnectionError,
    LdapUtilityError,
    SearchError,
)
from .mapper import AttributeMapper
from .models import Credential, DirectoryEntry, SearchRequest, SearchScope
from .options import RecordShape
from .utility import LdapUtility

__version__ = "1.0.0"

__all__ = [
    "AttributeMapper",
    "AuthenticationError",
    "ConstructionError",
    "Credential",
    "DirectoryConnectionError",
    "DirectoryEndpoint",
    "DirectoryEntry",
    "LdapUtility",
    "LdapUtilityError",
    "RecordShape",
    "SearchError",
    "SearchRequest",
    "SearchScope",
    "SimpleClassGenerator",
    "generate_class_source",
]
