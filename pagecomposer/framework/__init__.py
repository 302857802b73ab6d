"""Project-specific framework utilities.

This package holds the structural pieces that are generic *within* this repo
(typed app config parsing and request routing) but excludes unit implementations.

For reusable, project-agnostic composition primitives, use `composekit`.
"""
