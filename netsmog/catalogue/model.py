"""Target catalogue model shared by the coordinator and the workers."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Tuple

from netsmog.errors import ProtocolError

PING = "ping"


@dataclass(frozen=True)
class Target:
    """One host to probe, and how often."""

    title: str
    probe: str
    interval: float
    count: int
    host: str
    workers: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "probe": self.probe,
            "host": self.host,
            "interval": self.interval,
            "count": self.count,
            "workers": list(self.workers),
        }

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "Target":
        """Build a Target from an assignment document entry."""
        try:
            host = data["host"]
            interval = float(data["interval"])
            count = int(data["count"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError(f"target {name!r}: missing or invalid field ({exc})") from exc
        if not isinstance(host, str) or not host:
            raise ProtocolError(f"target {name!r}: host must be a non-empty string")
        if interval <= 0 or count < 1:
            raise ProtocolError(f"target {name!r}: interval and count must be positive")
        workers = data.get("workers") or ()
        return cls(
            title=str(data.get("title") or name),
            probe=str(data.get("probe") or PING),
            interval=interval,
            count=count,
            host=host,
            workers=tuple(str(w) for w in workers),
        )


@dataclass(frozen=True)
class TargetGroup:
    """Named set of targets plus the workers allowed to run them.

    An empty ``membership`` means every worker runs the group.
    """

    name: str
    targets: Mapping[str, Target] = field(default_factory=lambda: MappingProxyType({}))
    membership: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.targets, MappingProxyType):
            object.__setattr__(self, "targets", MappingProxyType(dict(self.targets)))

    def allows(self, worker: str) -> bool:
        return not self.membership or worker in self.membership


@dataclass(frozen=True)
class Catalogue:
    """Immutable mapping of group name to TargetGroup."""

    groups: Mapping[str, TargetGroup] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.groups, MappingProxyType):
            object.__setattr__(self, "groups", MappingProxyType(dict(self.groups)))

    def __iter__(self) -> Iterator[Tuple[str, str, Target]]:
        """Yield ``(group, target_name, target)`` for every target."""
        for group_name, group in self.groups.items():
            for target_name, target in group.targets.items():
                yield group_name, target_name, target

    def __len__(self) -> int:
        return sum(len(group.targets) for group in self.groups.values())

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Assignment document: ``{group: {target: {...}}}``."""
        return {
            group_name: {name: target.to_dict() for name, target in group.targets.items()}
            for group_name, group in self.groups.items()
        }

    @classmethod
    def from_dict(cls, doc: Any) -> "Catalogue":
        """Parse an assignment document received from the coordinator."""
        if not isinstance(doc, dict):
            raise ProtocolError("assignment must be a JSON object")
        groups = {}
        for group_name, entries in doc.items():
            if not isinstance(entries, dict):
                raise ProtocolError(f"group {group_name!r} must be a JSON object")
            targets = {}
            for target_name, data in entries.items():
                if not isinstance(data, dict):
                    raise ProtocolError(f"target {group_name}.{target_name} must be a JSON object")
                targets[target_name] = Target.from_dict(target_name, data)
            groups[group_name] = TargetGroup(name=group_name, targets=targets)
        return cls(groups=groups)
