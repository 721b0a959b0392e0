"""
Service layer.

Services take an ``AsyncSession`` and a company id, scope every query to that
company and raise :mod:`repairtix.errors` exceptions on failure.
"""
