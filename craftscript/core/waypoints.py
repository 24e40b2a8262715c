"""Waypoint books — named world positions per actor.

``JsonWaypointBook`` keeps one file per actor::

    <dir>/<actor>_waypoints.json
    [{"name": "home", "x": 10, "y": 64, "z": -3, "description": "base"}, ...]

A missing or unreadable file reads as an empty book.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Protocol

from craftscript.core.constants import WAYPOINT_FILE_SUFFIX

LogFn = Callable[[str, str], None]


@dataclass(frozen=True)
class SavedWaypoint:
    name: str
    x: float
    y: float
    z: float
    description: str | None = None

    def to_dict(self) -> dict:
        d = asdict(self)
        if self.description is None:
            d.pop("description")
        return d


class WaypointBook(Protocol):
    def get_waypoint(self, actor_name: str, name: str) -> SavedWaypoint | None: ...


class InMemoryWaypointBook:
    """Dict-backed book; handy for tests and the dry runner."""

    def __init__(self) -> None:
        self._books: dict[str, dict[str, SavedWaypoint]] = {}

    def add(self, actor_name: str, waypoint: SavedWaypoint) -> None:
        self._books.setdefault(actor_name, {})[waypoint.name] = waypoint

    def get_waypoint(self, actor_name: str, name: str) -> SavedWaypoint | None:
        return self._books.get(actor_name, {}).get(name)

    def list_waypoints(self, actor_name: str) -> list[SavedWaypoint]:
        return list(self._books.get(actor_name, {}).values())


class JsonWaypointBook:
    def __init__(self, directory: Path, log_fn: LogFn | None = None) -> None:
        self.directory = Path(directory)
        self._log = log_fn or (lambda lvl, msg: None)

    def path_for(self, actor_name: str) -> Path:
        return self.directory / f"{actor_name}{WAYPOINT_FILE_SUFFIX}"

    # ------------------------------------------------------------------

    def list_waypoints(self, actor_name: str) -> list[SavedWaypoint]:
        path = self.path_for(actor_name)
        if not path.exists():
            return []
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self._log("WARNING", f"Cannot read waypoints from {path}: {exc}")
            return []
        waypoints = []
        for item in raw if isinstance(raw, list) else []:
            try:
                waypoints.append(SavedWaypoint(
                    name=str(item["name"]),
                    x=item["x"], y=item["y"], z=item["z"],
                    description=item.get("description"),
                ))
            except (KeyError, TypeError):
                self._log("WARNING", f"Skipping malformed waypoint in {path}: {item!r}")
        return waypoints

    def get_waypoint(self, actor_name: str, name: str) -> SavedWaypoint | None:
        for wp in self.list_waypoints(actor_name):
            if wp.name == name:
                return wp
        return None

    def save_waypoint(self, actor_name: str, waypoint: SavedWaypoint) -> None:
        """Insert or replace *waypoint* by name."""
        kept = [wp for wp in self.list_waypoints(actor_name) if wp.name != waypoint.name]
        kept.append(waypoint)
        self._write(actor_name, kept)

    def delete_waypoint(self, actor_name: str, name: str) -> bool:
        current = self.list_waypoints(actor_name)
        kept = [wp for wp in current if wp.name != name]
        if len(kept) == len(current):
            return False
        self._write(actor_name, kept)
        return True

    def _write(self, actor_name: str, waypoints: list[SavedWaypoint]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with open(self.path_for(actor_name), "w", encoding="utf-8") as f:
            json.dump([wp.to_dict() for wp in waypoints], f, indent=2)
