"""Tests for craftscript.core.waypoints — in-memory and JSON waypoint books."""
import json

from craftscript.core.waypoints import InMemoryWaypointBook, JsonWaypointBook, SavedWaypoint


class TestSavedWaypoint:
    def test_to_dict_omits_missing_description(self):
        assert SavedWaypoint("home", 1, 2, 3).to_dict() == {"name": "home", "x": 1, "y": 2, "z": 3}

    def test_to_dict_with_description(self):
        d = SavedWaypoint("home", 1, 2, 3, "base").to_dict()
        assert d["description"] == "base"


class TestInMemoryWaypointBook:
    def test_add_and_get(self):
        book = InMemoryWaypointBook()
        book.add("bot", SavedWaypoint("home", 1, 2, 3))
        assert book.get_waypoint("bot", "home").x == 1
        assert book.get_waypoint("bot", "away") is None
        assert book.get_waypoint("other", "home") is None
        assert [wp.name for wp in book.list_waypoints("bot")] == ["home"]


class TestJsonWaypointBook:
    def test_path_per_actor(self, tmp_path):
        book = JsonWaypointBook(tmp_path)
        assert book.path_for("bot") == tmp_path / "bot_waypoints.json"

    def test_missing_file_is_empty(self, tmp_path):
        book = JsonWaypointBook(tmp_path / "nowhere")
        assert book.list_waypoints("bot") == []
        assert book.get_waypoint("bot", "home") is None

    def test_save_and_read_back(self, tmp_path):
        book = JsonWaypointBook(tmp_path / "wp")
        book.save_waypoint("bot", SavedWaypoint("home", 10, 64, -3, "base"))
        book.save_waypoint("bot", SavedWaypoint("mine", 0, 12, 0))
        assert book.get_waypoint("bot", "home") == SavedWaypoint("home", 10, 64, -3, "base")
        raw = json.loads(book.path_for("bot").read_text(encoding="utf-8"))
        assert [item["name"] for item in raw] == ["home", "mine"]

    def test_save_replaces_by_name(self, tmp_path):
        book = JsonWaypointBook(tmp_path)
        book.save_waypoint("bot", SavedWaypoint("home", 1, 1, 1))
        book.save_waypoint("bot", SavedWaypoint("home", 2, 2, 2))
        assert book.list_waypoints("bot") == [SavedWaypoint("home", 2, 2, 2)]

    def test_delete(self, tmp_path):
        book = JsonWaypointBook(tmp_path)
        book.save_waypoint("bot", SavedWaypoint("home", 1, 1, 1))
        assert book.delete_waypoint("bot", "home") is True
        assert book.delete_waypoint("bot", "home") is False
        assert book.list_waypoints("bot") == []

    def test_unreadable_file_logs_warning(self, tmp_path):
        logs = []
        book = JsonWaypointBook(tmp_path, log_fn=lambda lvl, msg: logs.append(lvl))
        book.path_for("bot").write_text("{not json", encoding="utf-8")
        assert book.list_waypoints("bot") == []
        assert logs == ["WARNING"]

    def test_malformed_entry_is_skipped(self, tmp_path):
        logs = []
        book = JsonWaypointBook(tmp_path, log_fn=lambda lvl, msg: logs.append(lvl))
        book.path_for("bot").write_text(
            json.dumps([{"name": "ok", "x": 1, "y": 2, "z": 3}, {"name": "bad"}]),
            encoding="utf-8",
        )
        assert [wp.name for wp in book.list_waypoints("bot")] == ["ok"]
        assert logs == ["WARNING"]
