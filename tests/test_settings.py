"""Tests for craftscript.core.settings_manager — settings.ini → RunOptions."""
from craftscript.core.constants import DEFAULT_OP_LIMIT, DEFAULT_SCAN_RADIUS
from craftscript.core.functions import SqliteFunctionStore
from craftscript.core.settings_manager import SECTION, SettingsManager
from craftscript.core.waypoints import JsonWaypointBook

INI = """\
[CRAFTSCRIPT]
op_limit = 250
default_scan_radius = 4
auto_scan_before_ops = false
waypoints_dir = wp   # per-actor json files
functions_db = functions.db
actor_id = bot1
"""


def write_ini(tmp_path, text=INI):
    path = tmp_path / "settings.ini"
    path.write_text(text, encoding="utf-8")
    return SettingsManager(path)


class TestSettingsManager:
    def test_values(self, tmp_path):
        s = write_ini(tmp_path)
        assert s.op_limit == 250
        assert s.default_scan_radius == 4
        assert s.auto_scan_before_ops is False
        assert str(s.waypoints_dir) == "wp"
        assert str(s.functions_db) == "functions.db"
        assert s.actor_id == "bot1"

    def test_defaults_without_file(self, tmp_path):
        s = SettingsManager(tmp_path / "missing.ini")
        assert s.op_limit == DEFAULT_OP_LIMIT
        assert s.default_scan_radius == DEFAULT_SCAN_RADIUS
        assert s.auto_scan_before_ops is True
        assert s.functions_db is None
        assert s.actor_id is None

    def test_set_saves(self, tmp_path):
        s = SettingsManager(tmp_path / "new.ini")
        s.set(SECTION, "op_limit", "42")
        assert SettingsManager(tmp_path / "new.ini").op_limit == 42


class TestRunOptions:
    def test_build(self, tmp_path):
        opts = write_ini(tmp_path).run_options()
        assert opts.op_limit == 250
        assert opts.default_scan_radius == 4
        assert opts.auto_scan_before_ops is False
        assert opts.actor_id == "bot1"
        assert isinstance(opts.waypoints, JsonWaypointBook)
        assert opts.waypoints.directory == tmp_path / "wp"
        assert isinstance(opts.function_store, SqliteFunctionStore)
        assert opts.function_store.db_path == str(tmp_path / "functions.db")
        opts.function_store.close()

    def test_no_function_store(self, tmp_path):
        opts = write_ini(tmp_path, "[CRAFTSCRIPT]\nop_limit = 5\n").run_options()
        assert opts.function_store is None
        assert opts.actor_id is None

    def test_overrides_win(self, tmp_path):
        log = lambda lvl, msg: None   # noqa: E731
        opts = write_ini(tmp_path, "[CRAFTSCRIPT]\n").run_options(op_limit=7, log_fn=log)
        assert opts.op_limit == 7
        assert opts.log_fn is log

    def test_base_dir(self, tmp_path):
        other = tmp_path / "elsewhere"
        opts = write_ini(tmp_path, "[CRAFTSCRIPT]\n").run_options(base_dir=other)
        assert opts.waypoints.directory == other / "logs"
