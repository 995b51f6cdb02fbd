"""Human-readable record numbers.

Yearly sequences (``PAT-2025-000001``) come from a count of the rows
already created this year; callers run inside the creating transaction.
"""
import random
import string
import time

from django.utils import timezone

_BASE36 = string.digits + string.ascii_lowercase


def yearly_number(prefix: str, model, field: str, *, year=None) -> str:
    year = year or timezone.now().year
    stem = f"{prefix}-{year}-"
    seq = model.objects.filter(**{f"{field}__startswith": stem}).count() + 1
    number = f"{stem}{seq:06d}"
    # Deleted rows can leave a gap that makes the count collide
    while model.objects.filter(**{field: number}).exists():
        seq += 1
        number = f"{stem}{seq:06d}"
    return number


def sequence_number(prefix: str, model, field: str, width: int = 6) -> str:
    seq = model.objects.count() + 1
    number = f"{prefix}-{seq:0{width}d}"
    while model.objects.filter(**{field: number}).exists():
        seq += 1
        number = f"{prefix}-{seq:0{width}d}"
    return number


def stamped_number(prefix: str) -> str:
    """``PREFIX-<epoch ms>-<4 base36 chars>``, upper-cased."""
    suffix = ''.join(random.choice(_BASE36) for _ in range(4))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}".upper()
