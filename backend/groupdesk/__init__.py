"""Application package for the group management backend.

Teachers, coordinators and admins manage student groups across
locations. Controllers live in `main`, business rules in `services` and
`validators`, persistence in `repositories`; individual modules carry
their own documentation.
"""
