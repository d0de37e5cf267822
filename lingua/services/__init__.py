"""
Business Logic Services Package.

Services depend on the repository layer for data access and receive
every collaborator through ``__init__``.  Wiring lives in
:mod:`lingua.container`.
"""
