from collections import defaultdict, deque
from typing import Dict, Iterable, List, Sequence, Set

from salonboard.models.entities import Appointment


def appointments_overlap(a: Appointment, b: Appointment) -> bool:
    """Half-open intersection: back-to-back appointments do not overlap."""
    return a.start < b.end and a.end > b.start


def build_overlap_graph(appointments: Sequence[Appointment]) -> Dict[str, Set[str]]:
    graph: Dict[str, Set[str]] = defaultdict(set)
    for i, a1 in enumerate(appointments):
        for a2 in appointments[i + 1 :]:
            if appointments_overlap(a1, a2):
                graph[a1.id].add(a2.id)
                graph[a2.id].add(a1.id)
    return graph


def overlap_group(appointment_id: str, graph: Dict[str, Set[str]]) -> Set[str]:
    """Transitive closure of `appointment_id` over the (symmetric) overlap graph."""
    group = {appointment_id}
    queue = deque([appointment_id])
    while queue:
        current = queue.popleft()
        for neighbour in graph.get(current, ()):
            if neighbour not in group:
                group.add(neighbour)
                queue.append(neighbour)
    return group


def overlap_groups(appointments: Iterable[Appointment], graph: Dict[str, Set[str]]) -> List[Set[str]]:
    seen: Set[str] = set()
    groups = []
    for appointment in appointments:
        if appointment.id in seen or not graph.get(appointment.id):
            continue
        group = overlap_group(appointment.id, graph)
        seen |= group
        groups.append(group)
    return groups
