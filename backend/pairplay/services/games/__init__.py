"""Game domain services: rooms, rosters, rounds, scoring and bots.

The engine modules operate on in-memory ``Room`` aggregates and know
nothing about sockets; handlers and HTTP routes import from here and hold
``room.lock`` around each mutate-and-broadcast step. ``storage`` is the only
module that needs an application context.
"""
