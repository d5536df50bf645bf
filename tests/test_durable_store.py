from datetime import datetime, timedelta, timezone

from schemas import SpeakerRole, Turn


def test_append_and_load_recent_oldest_first(store):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i in range(5):
        turn = Turn(speaker_role=SpeakerRole.USER, author_label="u", text=f"t{i}", created_at=base + timedelta(seconds=i))
        store.append_turn("c1", turn)

    turns = store.load_recent("c1", 3)
    assert [t.text for t in turns] == ["t2", "t3", "t4"]
    assert all(t.created_at.tzinfo is not None for t in turns)
    assert store.count_turns("c1") == 5
    assert store.load_recent("missing", 3) == []


def test_roles_round_trip(store):
    store.append_turn("c1", Turn.user("alice", "q"))
    store.append_turn("c1", Turn.assistant("Miku", "a"))
    roles = [t.speaker_role for t in store.load_recent("c1", 10)]
    assert roles == [SpeakerRole.USER, SpeakerRole.ASSISTANT]


def test_filters_unique_per_scope(store):
    assert store.insert_filter("g1", "bad") is True
    assert store.insert_filter("g1", "bad") is False
    assert store.insert_filter("g2", "bad") is True
    assert store.insert_filter(None, "bad") is True

    assert store.load_filters("g1") == ["bad"]
    assert store.load_filters(None) == ["bad"]
    scopes = sorted((e.scope_id or "", e.term) for e in store.load_all_filters())
    assert scopes == [("", "bad"), ("g1", "bad"), ("g2", "bad")]
    assert any(e.scope_id is None for e in store.load_all_filters())


def test_delete_filter_reports_whether_a_row_went_away(store):
    store.insert_filter("g1", "bad")
    assert store.delete_filter("g1", "bad") is True
    assert store.delete_filter("g1", "bad") is False
    assert store.load_filters("g1") == []
