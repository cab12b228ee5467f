"""
Module ORM Registry (``payables_modules._orm_registry``).

Responsibility
--------------
Ensure every ORM model is imported so that ``Base.metadata`` contains
its table definition before tables are created or listeners registered.

Usage
-----
``payables_kernel.db.engine.create_tables()`` and ``tests/conftest.py``
call ``import_all_orm_models()``.  Idempotent.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``payables_modules.*.orm`` module."""
    import payables_kernel.models  # noqa: F401
    import payables_modules.vendors.orm  # noqa: F401
    import payables_modules.approval_rules.orm  # noqa: F401
    import payables_modules.invoices.orm  # noqa: F401
    import payables_modules.payments.orm  # noqa: F401
