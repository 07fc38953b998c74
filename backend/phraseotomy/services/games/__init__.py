"""Game domain services: turn progression, scoring, lobby and cleanup.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics. Every operation takes the SQLAlchemy session it
should use as its first argument.
"""
