"""
Permission feature module.

Capabilities, roles, groups and ability grants, plus the resolver that
decides whether a user may perform an action in a team.
"""
