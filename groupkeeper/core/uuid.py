"""
UUID creation. Identifiers are time-ordered (UUIDv7) so that creation order can
be recovered from them; uuid7 is not part of the python standard as of 3.12.
"""

from uuid import UUID as UUID

from uuid_extensions import uuid7 as uuid7

__all__ = ["UUID", "uuid7"]
