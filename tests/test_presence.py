"""Tests for the presence and room registries."""

from realtime.presence import PresenceRegistry, RoomRegistry


class TestPresenceRegistry:

    def test_two_sessions_of_one_user_are_independent(self):
        registry = PresenceRegistry()
        registry.add("c1", "u1", "alice")
        registry.add("c2", "u1", "alice")

        registry.set_typing("c1", True, wpm=64)
        assert registry.get("c2").is_typing is False
        assert [e.user_id for e in registry.all()] == ["u1", "u1"]

        registry.remove("c1")
        assert "c1" not in registry
        assert "c2" in registry
        assert len(registry) == 1

    def test_set_typing_keeps_wpm_when_not_given(self):
        registry = PresenceRegistry()
        registry.add("c1", "u1", "alice")
        registry.set_typing("c1", True, wpm=50)
        registry.set_typing("c1", False)

        entry = registry.get("c1")
        assert entry.is_typing is False
        assert entry.current_wpm == 50

    def test_unknown_connection(self):
        registry = PresenceRegistry()
        assert registry.set_typing("nope", True) is None
        assert registry.remove("nope") is None

    def test_join_order(self):
        registry = PresenceRegistry()
        for cid in ("c3", "c1", "c2"):
            registry.add(cid, cid, cid)
        assert [e.connection_id for e in registry.all()] == ["c3", "c1", "c2"]

    def test_payload(self):
        registry = PresenceRegistry()
        entry = registry.add("c1", "u1", "alice")
        payload = entry.to_payload()

        assert payload['connectionId'] == "c1"
        assert payload['userId'] == "u1"
        assert payload['currentWpm'] == 0
        assert payload['isTyping'] is False
        assert payload['joinedAt'].endswith("+00:00")


class TestRoomRegistry:

    def test_join_and_leave(self):
        rooms = RoomRegistry()
        assert rooms.join("r", "c1") is True
        assert rooms.join("r", "c1") is False
        rooms.join("r", "c2")

        assert rooms.members("r") == {"c1", "c2"}
        assert rooms.leave("r", "c1") is True
        assert rooms.leave("r", "c1") is False

    def test_empty_rooms_are_dropped(self):
        rooms = RoomRegistry()
        rooms.join("r", "c1")
        rooms.leave("r", "c1")
        assert "r" not in rooms

    def test_leave_all(self):
        rooms = RoomRegistry()
        rooms.join("a", "c1")
        rooms.join("b", "c1")
        rooms.join("b", "c2")

        assert sorted(rooms.leave_all("c1")) == ["a", "b"]
        assert rooms.rooms_of("c1") == []
        assert rooms.members("b") == {"c2"}

    def test_members_is_a_copy(self):
        rooms = RoomRegistry()
        rooms.join("r", "c1")
        rooms.members("r").add("intruder")
        assert rooms.members("r") == {"c1"}
