"""Game domain services: round clock, scoring, settlement and rewards.

This package contains pure(ish) domain logic that should be imported by
HTTP routes, socket handlers and CLI commands, keeping transport concerns
separated from core game mechanics.
"""
