from datetime import date

# (minimum whole days before the appointment, refund percent), checked top-down
REFUND_TIERS = (
    (7, 100),
    (3, 80),
    (1, 50),
)


def days_until(reservation_date: date, today: date) -> int:
    return (reservation_date - today).days


def refund_percent(days: int) -> int:
    for min_days, percent in REFUND_TIERS:
        if days >= min_days:
            return percent
    return 0  # same day or already past


def refund_amount(final_amount: int, reservation_date: date, today: date) -> int:
    percent = refund_percent(days_until(reservation_date, today))
    # integer math keeps floor() exact
    return (final_amount * percent) // 100
