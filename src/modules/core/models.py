"""Base abstract models shared by every module.

Provides:
- ``BaseModel``: UUIDv7 primary key + created_at / updated_at timestamps.
- ``AppendOnlyModel``: BaseModel for audit rows that may be inserted but
  never updated or deleted.

``save()`` guard ensures ``updated_at`` is included when ``update_fields``
is specified (Django skips ``auto_now`` fields otherwise).
"""

from __future__ import annotations

import uuid6
from django.db import models

# ---------------------------------------------------------------------------
# BaseModel
# ---------------------------------------------------------------------------


class BaseModel(models.Model):
    """Abstract base with UUIDv7 PK and timestamp bookkeeping."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid6.uuid7,
        editable=False,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs) -> None:
        """Ensure ``updated_at`` is refreshed even when ``update_fields`` is passed."""
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["updated_at"]
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# Append-only audit rows
# ---------------------------------------------------------------------------


class AppendOnlyError(Exception):
    """An audit record was about to be modified or removed."""


class AppendOnlyQuerySet(models.QuerySet):
    """QuerySet that refuses bulk updates and deletes."""

    def update(self, **kwargs):
        raise AppendOnlyError(f"{self.model._meta.label} rows are append-only.")

    def delete(self):
        raise AppendOnlyError(f"{self.model._meta.label} rows are append-only.")


class AppendOnlyModel(BaseModel):
    """Abstract model for immutable audit trails.

    - ``save()`` only inserts; saving an already persisted row raises.
    - ``delete()`` always raises, as does ``objects.filter(...).update()``.
    """

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            raise AppendOnlyError(f"{self._meta.label} rows are append-only.")
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        raise AppendOnlyError(f"{self._meta.label} rows are append-only.")
