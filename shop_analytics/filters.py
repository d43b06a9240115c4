"""
Date range and webservice filter helpers.

PrestaShop filter syntax:
    filter[date_add]=[2024-01-01 00:00:00,2024-01-31 23:59:59]  (with date=1)
    filter[id_order]=[12|15|19]                                  (OR list)
    filter[current_state]=5                                      (single value)
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range with both date objects and string formats."""
    start: date
    end: date

    @property
    def start_str(self) -> str:
        """Start date as YYYY-MM-DD string."""
        return self.start.strftime("%Y-%m-%d")

    @property
    def end_str(self) -> str:
        """End date as YYYY-MM-DD string."""
        return self.end.strftime("%Y-%m-%d")

    @property
    def days(self) -> int:
        """Days between start and end (0 for a single day)."""
        return (self.end - self.start).days

    def contains(self, moment: datetime) -> bool:
        """Check whether a timestamp falls on a day inside the range."""
        return self.start <= moment.date() <= self.end

    def as_filter(self) -> str:
        """
        Bracketed range for filter[date_add].

        The end bound is pushed to 23:59:59 so orders placed during the
        last day are included.
        """
        start = datetime.combine(self.start, time.min)
        end = datetime.combine(self.end, time(23, 59, 59))
        return f"[{start:%Y-%m-%d %H:%M:%S},{end:%Y-%m-%d %H:%M:%S}]"

    def as_tuple(self) -> Tuple[date, date]:
        return (self.start, self.end)


def or_filter(values: Iterable[Any]) -> str:
    """Pipe-delimited OR list: [a|b|c]."""
    return "[" + "|".join(str(v) for v in values) + "]"


def state_filter(states: Union[int, Sequence[int]]) -> str:
    """Single state as plain value, several as an OR list."""
    if isinstance(states, int):
        return str(states)
    if len(states) == 1:
        return str(states[0])
    return or_filter(states)


@dataclass(frozen=True)
class OrderFilters:
    """Filters for the `orders` resource."""
    date_range: Optional[DateRange] = None
    states: Optional[Tuple[int, ...]] = None
    customer_id: Optional[int] = None

    def to_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if self.date_range is not None:
            params["filter[date_add]"] = self.date_range.as_filter()
            params["date"] = "1"
        if self.states:
            params["filter[current_state]"] = state_filter(self.states)
        if self.customer_id:
            params["filter[id_customer]"] = str(self.customer_id)
        return params


@dataclass(frozen=True)
class OrderDetailFilters:
    """Filters for the `order_details` resource."""
    order_ids: Optional[Tuple[int, ...]] = None
    product_id: Optional[int] = None

    def to_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if self.order_ids:
            if len(self.order_ids) == 1:
                params["filter[id_order]"] = str(self.order_ids[0])
            else:
                params["filter[id_order]"] = or_filter(self.order_ids)
        if self.product_id:
            params["filter[product_id]"] = str(self.product_id)
        return params
