"""Container statistics, aggregated on demand from one snapshot of rows."""

from typing import Iterable

from marketplace.models.enums import ContainerType
from marketplace.schemas.stats_schema import ContainerStats


def compute_stats(containers: Iterable, users: Iterable) -> ContainerStats:
    """Aggregate counts over ``containers``.

    The caller decides the scope by what it passes in. ``active_users`` is the
    number of distinct users in ``users``. Both iterables are materialised once,
    so the per-type counts always add up to ``total_containers``.
    """
    snapshot = list(containers)

    counts = {ContainerType.APP: 0, ContainerType.VOICE: 0, ContainerType.WORKFLOW: 0}
    total_views = 0
    for container in snapshot:
        total_views += container.views or 0
        counts[ContainerType(container.type)] += 1

    return ContainerStats(
        total_containers=len(snapshot),
        total_views=total_views,
        active_users=len({user.id for user in users}),
        apps=counts[ContainerType.APP],
        voices=counts[ContainerType.VOICE],
        workflows=counts[ContainerType.WORKFLOW],
    )
