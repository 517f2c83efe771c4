from typing import Iterable, List, Optional, Sequence, Tuple

from salonboard.models.entities import Station


def filter_stations(
    stations: Iterable[Station],
    visible_ids: Optional[Sequence[str]] = None,
    service_type: Optional[str] = None,
) -> List[Station]:
    """Active stations, optionally limited to chosen ids and one service type."""
    result = [s for s in stations if s.is_active]
    if visible_ids:
        chosen = set(visible_ids)
        result = [s for s in result if s.id in chosen]
    if service_type:
        result = [s for s in result if s.service_type == service_type]
    return result


class StationWindow:
    """
    Paging over the ordered station columns.

    Holds the user's explicit ordering and the index of the first visible
    column. The offset is clamped on refresh(), i.e. whenever the filtered
    station count or the column budget changes. It goes back to 0 when the
    station filter changes.
    """

    def __init__(self, max_visible: int, order_ids: Iterable[str] = (), window_start: int = 0):
        self.max_visible = max_visible
        self.order_ids: List[str] = list(order_ids)
        self.window_start = max(0, window_start)
        self.station_count = 0
        self.slots = max(0, max_visible)
        self._filter: Optional[Tuple[Optional[str], Optional[Tuple[str, ...]]]] = None

    def sync_order(self, stations: Iterable[Station]) -> List[str]:
        """Keep known ids in place, append new ones, drop ids that vanished."""
        incoming = [s.id for s in stations]
        present = set(incoming)
        preserved = [sid for sid in self.order_ids if sid in present]
        known = set(preserved)
        self.order_ids = preserved + [sid for sid in incoming if sid not in known]
        return self.order_ids

    def order(self, stations: Iterable[Station]) -> List[Station]:
        positions = {sid: i for i, sid in enumerate(self.order_ids)}
        fallback = len(self.order_ids)
        return sorted(
            stations,
            key=lambda s: (positions.get(s.id, fallback), s.display_order, s.name.casefold()),
        )

    def move_station(self, station_id: str, new_index: int) -> None:
        if station_id not in self.order_ids:
            return
        self.order_ids.remove(station_id)
        new_index = min(max(new_index, 0), len(self.order_ids))
        self.order_ids.insert(new_index, station_id)

    def column_slots(self, special_columns: int = 0) -> int:
        return max(0, self.max_visible - special_columns)

    @property
    def max_start(self) -> int:
        if self.slots <= 0:
            return 0
        return max(0, self.station_count - self.slots)

    def refresh(self, station_count: int, column_slots: int) -> int:
        self.station_count = max(0, station_count)
        self.slots = max(0, column_slots)
        self.window_start = min(max(self.window_start, 0), self.max_start)
        return self.window_start

    def reset(self) -> None:
        self.window_start = 0

    def apply_filter(
        self,
        service_type: Optional[str] = None,
        visible_ids: Optional[Sequence[str]] = None,
    ) -> bool:
        """Record the current filter; a change from the previous one resets the offset."""
        current = (service_type or None, tuple(visible_ids) if visible_ids else None)
        changed = self._filter is not None and current != self._filter
        self._filter = current
        if changed:
            self.reset()
        return changed

    def visible(self, stations: Sequence[Station]) -> List[Station]:
        if not stations or self.slots == 0:
            return []
        return list(stations[self.window_start : self.window_start + self.slots])

    @property
    def can_page_back(self) -> bool:
        return self.window_start > 0

    @property
    def can_page_forward(self) -> bool:
        return self.window_start < self.max_start

    def page_forward(self) -> bool:
        if not self.can_page_forward:
            return False
        self.window_start += 1
        return True

    def page_back(self) -> bool:
        if not self.can_page_back:
            return False
        self.window_start -= 1
        return True
