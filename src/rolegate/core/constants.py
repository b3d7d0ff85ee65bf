"""Constants shared across the authorization core.

This module defines limits and separators used by the store, the
requirement parser and the permission cache so they stay consistent.
"""

# String field lengths
MAX_IDENTITY_REF_LENGTH = 255
MAX_ROLE_NAME_LENGTH = 100
MAX_PERMISSION_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 255

# Requirement expression grammar
ALTERNATIVE_SEPARATOR = "|"
TERM_SEPARATOR = ","
ROLE_PREFIX = "role:"
PERMISSION_PREFIXES = ("permission:", "perm:")
RESERVED_NAME_CHARACTERS = frozenset(ALTERNATIVE_SEPARATOR + TERM_SEPARATOR)

# Permission cache
DEFAULT_CACHE_TTL = 300
DEFAULT_CACHE_NAMESPACE = "rolegate:perms"
DEFAULT_CACHE_MAX_ENTRIES = 10_000
