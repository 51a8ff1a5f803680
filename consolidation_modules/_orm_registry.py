"""
Module ORM Registry (``consolidation_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table definition before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``consolidation_kernel.db.engine.create_tables``; nothing else should
need it.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every module ``orm`` to register tables.

    Idempotent -- repeated calls are harmless.
    """
    # Kernel tables first (runs, locks, consolidated trial balance lines)
    import consolidation_kernel.models  # noqa: F401
    import consolidation_modules.elimination.orm  # noqa: F401
    import consolidation_modules.group.orm  # noqa: F401
