from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal("0.00")


def money(x) -> Decimal:
    """Always return 2-decimal Decimal with HALF_UP rounding."""
    if x is None:
        x = 0
    if not isinstance(x, Decimal):
        x = Decimal(str(x))
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def split_evenly(total: Decimal, parts: int) -> list[Decimal]:
    """
    Split ``total`` into ``parts`` 2-decimal amounts that sum exactly to it.

    Example:
      total=1000, parts=3 => [333.33, 333.33, 333.34]
    """
    total = money(total)
    if parts <= 0:
        raise ValueError("parts must be > 0")

    share = money(total / parts)
    shares = [share] * parts
    shares[-1] = money(total - share * (parts - 1))
    return shares


def build_weekly_schedule(
        principal: Decimal,
        interest_total: Decimal,
        duration_weeks: int,
        first_due_date: date,
):
    """
    Returns one dict per week:
      week_number, due_date, capital_portion, interest_portion, amount_due

    capital and interest are spread evenly; the rounding residue lands on
    the last week so the schedule totals match the loan exactly.
    """
    weeks = int(duration_weeks)
    if weeks <= 0:
        raise ValueError("duration_weeks must be > 0")

    capital_parts = split_evenly(principal, weeks)
    interest_parts = split_evenly(interest_total, weeks)

    rows = []
    due = first_due_date
    for i in range(weeks):
        rows.append(
            {
                "week_number": i + 1,
                "due_date": due,
                "capital_portion": capital_parts[i],
                "interest_portion": interest_parts[i],
                "amount_due": money(capital_parts[i] + interest_parts[i]),
            }
        )
        due += timedelta(days=7)

    return rows
