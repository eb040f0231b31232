"""
Length-of-stay cleaning policy.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterator, List, Tuple

from ..utils.errors import InvalidDateRangeError
from ..utils.models import ServiceType, parse_date


@dataclass
class CleaningSchedule:
    scheduled_dates: List[date] = field(default_factory=list)
    service_types: List[ServiceType] = field(default_factory=list)
    stay_duration_nights: int = 0

    def entries(self) -> Iterator[Tuple[date, ServiceType]]:
        return iter(zip(self.scheduled_dates, self.service_types))

    def add(self, day: date, service_type: ServiceType) -> None:
        self.scheduled_dates.append(day)
        self.service_types.append(service_type)

    def __len__(self) -> int:
        return len(self.scheduled_dates)


def generate_cleaning_schedule(check_in: Any, check_out: Any) -> CleaningSchedule:
    """
    Derive the housekeeping visits for a stay.

    Policy by length of stay:
      1-3 nights: Full on check-in only
      4-5 nights: plus one Standard at the midpoint
      6-7 nights: plus two Standard at the thirds
      8+ nights: plus a visit every 3 days alternating Full and
                 LinenAndTowelChange, none within a day of check-out

    Args:
        check_in: Arrival date (date, datetime or ISO string)
        check_out: Departure date (date, datetime or ISO string)

    Returns:
        CleaningSchedule with parallel date and service type lists

    Raises:
        InvalidDateRangeError: If check_out is not after check_in
    """
    start = parse_date(check_in)
    end = parse_date(check_out)
    if start is None or end is None or end <= start:
        raise InvalidDateRangeError(f"Check-out {end} must be after check-in {start}")

    nights = (end - start).days
    schedule = CleaningSchedule(stay_duration_nights=nights)
    schedule.add(start, ServiceType.FULL)

    if nights <= 3:
        return schedule

    if nights <= 5:
        schedule.add(start + timedelta(days=nights // 2), ServiceType.STANDARD)
        return schedule

    if nights <= 7:
        schedule.add(start + timedelta(days=nights // 3), ServiceType.STANDARD)
        schedule.add(start + timedelta(days=(2 * nights) // 3), ServiceType.STANDARD)
        return schedule

    current = start + timedelta(days=3)
    index = 0
    while (end - current).days > 1:
        schedule.add(current, ServiceType.FULL if index % 2 == 0 else ServiceType.LINEN_AND_TOWEL_CHANGE)
        index += 1
        current += timedelta(days=3)
    return schedule
