"""
Team feature module.

The team aggregate, its memberships and invitations, and the service
performing mutations on it.
"""
