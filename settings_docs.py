"""
Minimal Django settings for Sphinx documentation generation.

Just enough for autodoc to import ldaputility; nothing here connects to a
directory server.
"""

SECRET_KEY = "django-insecure-docs-only-key-for-sphinx"  # noqa: S105

DEBUG = True

INSTALLED_APPS: list[str] = []

LDAP_SERVERS = {
    "default": {
        "url": "ldaps://ldap.example.com",
        "user": "cn=reader,dc=example,dc=com",
        "password": "docs-only",
        "tls_verify": "never",
    }
}

USE_TZ = True
