# Tests patch ``ldaputility.ldap.initialize`` (python-ldap-faker patches the
# ``ldap`` attribute of each module listed in ``ldap_modules``), so every
# module in this package talks to python-ldap through this re-export.
import ldap
from ldap import *  # noqa: F403

__version__ = ldap.__version__
