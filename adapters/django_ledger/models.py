"""
Custody Django Ledger — Version Model
=======================================
Each row is one version of one ledger key.

RULES (NON-NEGOTIABLE):
- No deletes, no updates after persistence
- A deletion is a new row with deleted=True
- Row id order is commit order; history replays in id order

This file contains NO business logic.
"""

from django.db import models


class LedgerVersion(models.Model):
    """One immutable version of a ledger key."""

    key = models.CharField(
        max_length=255,
        help_text="Ledger key (unit or delivery id).",
    )

    version = models.CharField(
        max_length=64,
        help_text="Transaction id that wrote this version.",
    )

    timestamp = models.CharField(
        max_length=32,
        help_text="Ledger timestamp of the writing transaction.",
    )

    deleted = models.BooleanField(
        default=False,
        help_text="True if this version is a tombstone.",
    )

    value = models.BinaryField(
        default=b"",
        help_text="Canonical bytes of the record. Empty for tombstones.",
    )

    class Meta:
        db_table = "custody_ledger_version"
        ordering = ["id"]
        indexes = [
            models.Index(fields=["key", "id"], name="idx_ledger_key_id"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=("key", "version"),
                name="uq_ledger_key_version",
            ),
        ]

    def save(self, *args, **kwargs):
        """GUARD: INSERT only."""
        if not self._state.adding:
            raise PermissionError(
                "Ledger versions are immutable. Write a new version instead."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """GUARD: versions are never removed."""
        raise PermissionError(
            "Ledger versions are never deleted. Write a tombstone instead."
        )

    def __str__(self):
        return f"{self.key}@{self.version}{' (deleted)' if self.deleted else ''}"
