"""
Module ORM Registry (``billing_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``billing_kernel.db.engine.create_tables()`` calls this.

Architecture position
---------------------
**Modules layer** -- utility.  Imports sibling ``billing_modules``
packages.  MUST NOT be imported at module level by ``billing_kernel``.
"""


def import_all_orm_models() -> None:
    """Import every ``billing_modules.*.orm`` module to register ORM models.

    This function is idempotent -- repeated calls are harmless.
    """
    import billing_modules.receivables.orm  # noqa: F401
