"""Bill number allocation backed by a locked counter row."""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, transaction

from ..models import BillSequence, Booking

logger = logging.getLogger(__name__)

BILL_SEQUENCE = "bill"
CHALLAN_SEQUENCE = "challan"


class SequenceAllocator:
    """Issue unique bill numbers such as ``BILL-001``.

    The counter row is locked with ``SELECT ... FOR UPDATE`` so concurrent
    callers are serialised; the lock is held until the caller's transaction
    ends, which also means a rolled back booking gives its number back.
    """

    def __init__(
        self,
        using: str = DEFAULT_DB_ALIAS,
        name: str = BILL_SEQUENCE,
        *,
        prefix: str | None = None,
        model=Booking,
        field: str = "bill_number",
    ):
        self.using = using
        self.name = name
        self._prefix = prefix
        self.model = model
        self.field = field

    @property
    def prefix(self) -> str:
        if self._prefix is not None:
            return self._prefix
        return getattr(settings, "BILL_NUMBER_PREFIX", "BILL-")

    @property
    def width(self) -> int:
        return int(getattr(settings, "BILL_NUMBER_WIDTH", 3))

    def format(self, value: int) -> str:
        return f"{self.prefix}{value:0{self.width}d}"

    def next(self) -> str:
        with transaction.atomic(using=self.using):
            BillSequence.objects.using(self.using).get_or_create(name=self.name)
            sequence = (
                BillSequence.objects.using(self.using)
                .select_for_update()
                .get(name=self.name)
            )
            value = sequence.last_value + 1
            number = self.format(value)
            # Skip numbers already taken by rows numbered outside the sequence.
            while self.model._default_manager.using(self.using).filter(**{self.field: number}).exists():
                value += 1
                number = self.format(value)
            sequence.last_value = value
            sequence.save(using=self.using, update_fields=["last_value"])

        logger.debug("Allocated %s number %s", self.name, number)
        return number


__all__ = ["BILL_SEQUENCE", "CHALLAN_SEQUENCE", "SequenceAllocator"]
