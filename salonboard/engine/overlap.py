"""
Overlap Engine

Stacks concurrent appointments inside one station column.

- overlap_count shrinks a card so concurrent cards tile side by side
- stacking_order puts later-starting cards above earlier ones within an
  overlap group (transitive closure), while cards with no overlap share
  a single lower layer
"""

from typing import Dict, Optional, Sequence, Set

from salonboard.engine.timeline import offset_of
from salonboard.graph.overlap_graph import build_overlap_graph, overlap_group
from salonboard.models.entities import Appointment, CardLayout, TimelineConfig

DEFAULT_Z_INDEX = 2
OVERLAP_BASE_Z_INDEX = 10


def overlap_count(appointment_id: str, graph: Dict[str, Set[str]]) -> int:
    return len(graph.get(appointment_id, ()))


def stacking_order(
    appointment: Appointment,
    appointments: Sequence[Appointment],
    graph: Dict[str, Set[str]],
) -> int:
    """
    z-order of `appointment` among its column.

    Ties on start time are broken by id so repeated runs agree.
    """
    if not overlap_count(appointment.id, graph):
        return DEFAULT_Z_INDEX

    group = overlap_group(appointment.id, graph)
    ordered = sorted((a for a in appointments if a.id in group), key=lambda a: (a.start, a.id))
    index = next(i for i, a in enumerate(ordered) if a.id == appointment.id)
    return OVERLAP_BASE_Z_INDEX + index


def layout_column(
    appointments: Sequence[Appointment],
    timeline: TimelineConfig,
    graph: Optional[Dict[str, Set[str]]] = None,
) -> Dict[str, CardLayout]:
    """Card geometry for every appointment of one station."""
    if graph is None:
        graph = build_overlap_graph(appointments)

    layouts = {}
    for appointment in appointments:
        count = overlap_count(appointment.id, graph)
        top = offset_of(timeline, appointment.start)
        height = appointment.duration.total_seconds() / 60 * timeline.pixels_per_minute
        layouts[appointment.id] = CardLayout(
            appointment_id=appointment.id,
            top=top,
            height=height,
            overlap_count=count,
            z_index=stacking_order(appointment, appointments, graph),
            width_fraction=1 / (count + 1),
        )
    return layouts
