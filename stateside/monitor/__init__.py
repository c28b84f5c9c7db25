"""Terminal presentation of projections.

Modules
-------
renderer
    ``TimelineRenderer`` turns composed paths, reconciled cases, velocity
    estimates and case-status results into Rich renderables.  It holds no
    state; every render reads the projection it is given.
"""
