"""
Group membership, roles and invitations gated by signed identity tokens.
"""
