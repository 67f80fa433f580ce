"""Work out which target groups a worker is responsible for."""

from __future__ import annotations

from netsmog.catalogue.model import Catalogue, TargetGroup


def resolve(catalogue: Catalogue, worker: str) -> Catalogue:
    """Return the part of ``catalogue`` that ``worker`` should execute.

    Groups with a membership list are handed out whole to listed workers only;
    groups without one go to everybody. Groups the worker is not part of stay
    in the result as empty groups. The input is never modified.
    """
    groups = {}
    for name, group in catalogue.groups.items():
        if group.allows(worker):
            groups[name] = group
        else:
            groups[name] = TargetGroup(name=name, membership=group.membership)
    return Catalogue(groups=groups)
