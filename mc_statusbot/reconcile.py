"""Turn a raw status sample into a player roster and a join/leave diff.

The sample list a server reports can be partial or missing, so a roster is
only marked *reliable* when it is backed by named players, an explicit
player count of zero, or a server that could not be reached at all after
having players.  Join/leave lists are produced from reliable rosters only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from mc_statusbot.protocol import StatusSample


@dataclass(frozen=True)
class Reconciliation:
    online: bool
    current_players: list[str]
    reliable: bool
    joined: list[str] = field(default_factory=list)
    left: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.joined or self.left)


def dedupe_names(names: Iterable[str]) -> list[str]:
    """Drop empty and repeated names, keeping first-seen order (case-sensitive)."""
    seen = set()
    out = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            out.append(name)
    return out


def reconcile(previous_players: Sequence[str], sample: StatusSample | None) -> Reconciliation:
    previous = dedupe_names(previous_players)

    if sample is None or not sample.reachable:
        return _diff(False, [], previous, reliable=bool(previous))

    count = sample.reported_count or 0
    # a reachable server with nobody on it counts as offline
    online = count > 0

    named = dedupe_names(sample.sampled_names)
    if named:
        return _diff(online, named, previous, reliable=True)

    if count == 0:
        return _diff(online, [], previous, reliable=True)

    # Only the head count is known: keep the old roster cut down to size and
    # hold back any join/leave claims. A negative count leaves it untouched.
    roster = previous[:count] if count > 0 else list(previous)
    return _diff(online, roster, previous, reliable=False)


def _diff(online: bool, current: list[str], previous: list[str], *, reliable: bool) -> Reconciliation:
    if not reliable:
        return Reconciliation(online=online, current_players=current, reliable=False)
    prev_set = set(previous)
    cur_set = set(current)
    return Reconciliation(
        online=online,
        current_players=current,
        reliable=True,
        joined=[p for p in current if p not in prev_set],
        left=[p for p in previous if p not in cur_set],
    )
