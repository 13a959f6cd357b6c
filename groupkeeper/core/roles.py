"""
Member roles.
"""

from enum import Enum


class Role(str, Enum):
    """
    The role a member holds inside a group. Admins may remove other members,
    change roles, revoke invites and delete the group; users may read and send
    invites.
    """

    ADMIN = "admin"
    USER = "user"


def role_satisfies(held: Role, required: Role) -> bool:
    """
    Whether a member holding `held` meets or exceeds the `required` role.
    """
    match required:
        case Role.USER:
            return True
        case Role.ADMIN:
            return held is Role.ADMIN
