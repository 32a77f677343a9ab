"""Half-open date interval helpers.

A stay occupies ``[check_in, check_out)``: the checkout day is free for the
next guest, so back-to-back stays on the same room never conflict.
"""
from datetime import date

from django.db.models import Q


def overlaps(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    return a_start < b_end and b_start < a_end


def nights(check_in: date, check_out: date) -> int:
    return (check_out - check_in).days


def overlapping(check_in: date, check_out: date, prefix: str = '') -> Q:
    """ORM filter matching rows whose stay overlaps ``[check_in, check_out)``."""
    return Q(**{
        f'{prefix}check_in__lt': check_out,
        f'{prefix}check_out__gt': check_in,
    })
