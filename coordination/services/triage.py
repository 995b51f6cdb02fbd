"""
Triage queue ordering and the aggregations behind the triage dashboards.
"""
from __future__ import annotations

import datetime as dt
from collections import Counter, defaultdict
from typing import Optional

from django.db.models import Case, Count, IntegerField, Value, When
from django.utils import timezone

from coordination.models import Department, TriageEntry

LEVELS = [code for code, _ in TriageEntry.LEVEL_CHOICES]
STATUSES = [code for code, _ in TriageEntry.STATUS_CHOICES]
QUEUE_STATUSES = ['WAITING', 'IN_ASSESSMENT']
PERIODS = {'today', 'week', 'month', 'custom'}

LEVEL_RANK = Case(
    *[When(triage_level=code, then=Value(i)) for i, code in enumerate(LEVELS)],
    default=Value(len(LEVELS)),
    output_field=IntegerField(),
)


def waiting_minutes(entry: TriageEntry, now=None) -> int:
    now = now or timezone.now()
    return max(0, int((now - entry.arrival_time).total_seconds() // 60))


def triage_queue(qs):
    """Entries still waiting or being assessed, most urgent first, then by arrival."""
    return (qs.filter(status__in=QUEUE_STATUSES)
              .annotate(level_rank=LEVEL_RANK)
              .order_by('level_rank', 'arrival_time'))


def period_range(period: str, *, start: Optional[dt.date] = None, end: Optional[dt.date] = None,
                 now=None) -> tuple[dt.datetime, Optional[dt.datetime]]:
    """Resolve a named period to ``(start, end)``; ``end`` is exclusive and may be ``None``."""
    now = timezone.localtime(now or timezone.now())
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == 'week':
        return now - dt.timedelta(days=7), None
    if period == 'month':
        return today.replace(day=1), None
    if period == 'custom' and start and end:
        tz = timezone.get_current_timezone()
        lo = timezone.make_aware(dt.datetime.combine(start, dt.time.min), tz)
        hi = timezone.make_aware(dt.datetime.combine(end + dt.timedelta(days=1), dt.time.min), tz)
        return lo, hi
    return today, today + dt.timedelta(days=1)


def _in_range(qs, lo, hi):
    qs = qs.filter(arrival_time__gte=lo)
    if hi is not None:
        qs = qs.filter(arrival_time__lt=hi)
    return qs


def triage_stats(qs, *, period: str = 'today', start=None, end=None, hospital_id=None, now=None) -> dict:
    lo, hi = period_range(period, start=start, end=end, now=now)
    qs = _in_range(qs, lo, hi)
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)

    by_level = {code: 0 for code in LEVELS}
    by_status = {code: 0 for code in STATUSES}
    matrix: dict[str, dict[str, int]] = {code: {} for code in LEVELS}
    for row in qs.values('triage_level', 'status').annotate(n=Count('id')):
        by_level[row['triage_level']] = by_level.get(row['triage_level'], 0) + row['n']
        by_status[row['status']] = by_status.get(row['status'], 0) + row['n']
        matrix.setdefault(row['triage_level'], {})[row['status']] = row['n']

    hours: dict[int, Counter] = defaultdict(Counter)
    for arrival, level in qs.values_list('arrival_time', 'triage_level'):
        h = timezone.localtime(arrival).hour
        hours[h]['total'] += 1
        if level == 'IMMEDIATE':
            hours[h]['immediate'] += 1
        elif level == 'URGENT':
            hours[h]['urgent'] += 1
    peak_hours = sorted(
        ({'hour': h, 'total': c['total'], 'immediate': c['immediate'], 'urgent': c['urgent']}
         for h, c in hours.items()),
        key=lambda x: (-x['total'], x['hour']),
    )

    dept_counts: dict[str, Counter] = defaultdict(Counter)
    for row in qs.exclude(department__isnull=True).values('department_id', 'status').annotate(n=Count('id')):
        dept_counts[row['department_id']][row['status']] += row['n']
    departments = Department.objects.all()
    if hospital_id:
        departments = departments.filter(hospital_id=hospital_id)
    else:
        departments = departments.filter(id__in=list(dept_counts))
    dept_rows = []
    for d in departments:
        c = dept_counts.get(d.id, Counter())
        dept_rows.append({
            'id': d.id,
            'name': d.name,
            'type': d.department_type,
            'hospitalId': d.hospital_id,
            'totalBeds': d.total_beds,
            'availableBeds': d.available_beds,
            'occupancyRate': round((d.total_beds - d.available_beds) / d.total_beds * 100, 1) if d.total_beds else 0,
            'patients': sum(c.values()),
            'waiting': c.get('WAITING', 0),
        })

    total = sum(by_level.values())
    return {
        'period': period,
        'range': {'start': lo.isoformat(), 'end': hi.isoformat() if hi else None},
        'total': total,
        'byLevel': by_level,
        'byStatus': by_status,
        'levelStatus': {k: v for k, v in matrix.items() if v},
        'critical': by_level['IMMEDIATE'] + by_level['URGENT'],
        'peakHours': peak_hours[:5],
        'departments': dept_rows,
    }


def triage_analytics(qs, *, start: dt.date, end: dt.date, hospital_id=None) -> dict:
    """Per-day level counts for ``[start, end]``; days without entries are zero-filled."""
    tz = timezone.get_current_timezone()
    lo = timezone.make_aware(dt.datetime.combine(start, dt.time.min), tz)
    hi = timezone.make_aware(dt.datetime.combine(end + dt.timedelta(days=1), dt.time.min), tz)
    qs = _in_range(qs, lo, hi)
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)

    days: dict[dt.date, Counter] = {}
    day = start
    while day <= end:
        days[day] = Counter()
        day += dt.timedelta(days=1)
    for arrival, level in qs.values_list('arrival_time', 'triage_level'):
        key = timezone.localtime(arrival, tz).date()
        if key in days:
            days[key][level] += 1

    series = [{'date': d.isoformat(), 'total': sum(c.values()), **{lvl: c.get(lvl, 0) for lvl in LEVELS}}
              for d, c in days.items()]
    totals = {lvl: sum(row[lvl] for row in series) for lvl in LEVELS}
    return {
        'start': start.isoformat(),
        'end': end.isoformat(),
        'series': series,
        'totals': totals,
        'total': sum(totals.values()),
    }
