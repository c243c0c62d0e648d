"""
Custody Django Ledger Adapter
=============================
Durable Ledger Accessor on the Django ORM: one row per key version.
"""
