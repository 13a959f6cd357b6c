"""
Meta functionality for the database.
"""

from .account import Account
from .group import Group
from .invite import Invite
from .member import Member

ALL_TABLES = (
    Account,
    Group,
    Member,
    Invite,
)
