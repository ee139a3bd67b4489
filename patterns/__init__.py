"""Reusable patterns shared by the verticals.

Each module is a self-contained building block that a vertical adapts to
its domain: a registry-driven rules engine, a facility-scoped repository
layer, and frozen dataclass configuration.
"""
