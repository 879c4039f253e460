"""
Type aliases for the raw data python-ldap hands back from a search.
"""

#: The attribute dictionary for one entry: attribute name to list of values.
LDAPAttributes = dict[str, list[bytes]]
#: One search result entry as returned by ``result3()``: ``(dn, attributes)``.
LDAPData = tuple[str, LDAPAttributes]
