"""Settings manager — reads/writes settings.ini via configparser.

    [CRAFTSCRIPT]
    op_limit             = 10000
    default_scan_radius  = 2
    auto_scan_before_ops = true
    waypoints_dir        = logs
    functions_db         = craftscript.db
    actor_id             = bot1
"""
from configparser import ConfigParser
from pathlib import Path

from craftscript.core.constants import DEFAULT_OP_LIMIT, DEFAULT_SCAN_RADIUS

SECTION = "CRAFTSCRIPT"


class SettingsManager:
    def __init__(self, ini_path: Path) -> None:
        self.ini_path = Path(ini_path)
        self.config = ConfigParser(comment_prefixes=("#", ";"), inline_comment_prefixes=("#",))
        if self.ini_path.exists():
            self.config.read(self.ini_path, encoding="utf-8")

    # ------------------------------------------------------------------
    # Generic getters
    # ------------------------------------------------------------------
    def get(self, section: str, key: str, fallback: str = "") -> str:
        return self.config.get(section, key, fallback=fallback)

    def getint(self, section: str, key: str, fallback: int = 0) -> int:
        return self.config.getint(section, key, fallback=fallback)

    def getbool(self, section: str, key: str, fallback: bool = False) -> bool:
        return self.config.getboolean(section, key, fallback=fallback)

    def set(self, section: str, key: str, value: str) -> None:
        if not self.config.has_section(section):
            self.config.add_section(section)
        self.config.set(section, key, value)
        self.save()

    def save(self) -> None:
        with open(self.ini_path, "w", encoding="utf-8") as f:
            self.config.write(f)

    # ------------------------------------------------------------------
    # Convenience properties
    # ------------------------------------------------------------------
    @property
    def op_limit(self) -> int:
        return self.getint(SECTION, "op_limit", DEFAULT_OP_LIMIT)

    @property
    def default_scan_radius(self) -> int:
        return self.getint(SECTION, "default_scan_radius", DEFAULT_SCAN_RADIUS)

    @property
    def auto_scan_before_ops(self) -> bool:
        return self.getbool(SECTION, "auto_scan_before_ops", True)

    @property
    def waypoints_dir(self) -> Path:
        return Path(self.get(SECTION, "waypoints_dir", "logs"))

    @property
    def functions_db(self) -> Path | None:
        value = self.get(SECTION, "functions_db", "")
        return Path(value) if value else None

    @property
    def actor_id(self) -> str | None:
        return self.get(SECTION, "actor_id", "") or None

    def run_options(self, base_dir: Path | None = None, **overrides):
        """Build a RunOptions from this file; keyword args win over the ini.

        Relative ``waypoints_dir``/``functions_db`` paths resolve against
        *base_dir* (default: the ini file's directory).
        """
        from craftscript.core.functions import SqliteFunctionStore
        from craftscript.core.runner import RunOptions
        from craftscript.core.waypoints import JsonWaypointBook

        base = Path(base_dir) if base_dir is not None else self.ini_path.parent
        db = self.functions_db
        values = dict(
            op_limit             = self.op_limit,
            default_scan_radius  = self.default_scan_radius,
            auto_scan_before_ops = self.auto_scan_before_ops,
            waypoints            = JsonWaypointBook(base / self.waypoints_dir),
            function_store       = SqliteFunctionStore(base / db) if db else None,
            actor_id             = self.actor_id,
        )
        values.update(overrides)
        return RunOptions(**values)
