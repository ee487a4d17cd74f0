"""
Tracked changelog sources.

Each module exposes one module-level adapter instance; the registry imports
every module here whose name does not start with ``_``.
"""
