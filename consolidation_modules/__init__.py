"""
Consolidation modules.

Configuration-facing building blocks around the engines: group and member
roster management, elimination rule management and consolidated
financial reporting. Each module follows the same layout: ``orm.py`` for
persistence, ``service.py`` as the public entry point, ``config.py`` for
module settings.
"""
