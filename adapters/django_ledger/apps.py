"""
Custody Adapters — Django Ledger App Configuration
====================================================
This app:
- Stores every version of every ledger key as an immutable row
- Answers point reads, history replay, and selector queries

This app does NOT:
- Interpret custody records
- Decide who may write what (the custody engine does)
"""

from django.apps import AppConfig


class DjangoLedgerConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "adapters.django_ledger"
    label = "django_ledger"
    verbose_name = "Custody Ledger"
