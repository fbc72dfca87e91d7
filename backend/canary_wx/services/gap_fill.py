"""Fill missing daily mean temperatures in an imported series."""

from typing import Optional, Sequence

from .history_store import DailyRecord
from .interpolation import linear_interpolate, round_half_up


def fill_missing_tavg(records: Sequence[DailyRecord]) -> list[DailyRecord]:
    """Return the series sorted by date with missing tavg filled in.

    A gap takes the straight line between the nearest observed tavg before
    and after it (by calendar day), or copies the only neighbour there is.
    With no observed neighbour at all, the same-day (tmax + tmin) / 2 is
    used when both are present.  Filled records are flagged
    is_interpolated; inputs are left untouched.
    """
    ordered = sorted(records, key=lambda r: r.date)
    observed = [i for i, r in enumerate(ordered) if r.tavg is not None]

    filled: list[DailyRecord] = []
    prev_idx: Optional[int] = None
    next_pos = 0  # position in `observed` of the first observed index > i
    for i, record in enumerate(ordered):
        while next_pos < len(observed) and observed[next_pos] <= i:
            prev_idx = observed[next_pos]
            next_pos += 1

        if record.tavg is not None:
            filled.append(record)
            continue

        before = ordered[prev_idx] if prev_idx is not None else None
        after = ordered[observed[next_pos]] if next_pos < len(observed) else None

        if before is not None and after is not None:
            value = linear_interpolate(
                before.date.toordinal(), before.tavg,
                after.date.toordinal(), after.tavg,
                record.date.toordinal(),
            )
        elif before is not None:
            value = before.tavg
        elif after is not None:
            value = after.tavg
        elif record.tmax is not None and record.tmin is not None:
            value = (record.tmax + record.tmin) / 2
        else:
            filled.append(record)
            continue

        filled.append(record.with_tavg(round_half_up(value, 1)))

    return filled
