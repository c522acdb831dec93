"""Tests for the Activity model and its helpers."""

from datetime import datetime, timedelta, timezone

from hourglass.models import Activity, format_duration, parse_tag_list


class TestActivity:
    """Tests for Activity state and derived values."""

    def test_new_activity_is_running(self, base_time):
        activity = Activity(name="foo", project="bar", start=base_time)
        assert activity.id == 0
        assert activity.is_running()
        assert activity.status() == "running"

    def test_stopped_activity(self, base_time):
        activity = Activity(name="foo", start=base_time, end=base_time + timedelta(hours=1))
        assert not activity.is_running()
        assert activity.status() == "stopped"
        assert activity.duration() == timedelta(hours=1)

    def test_running_duration_uses_clock(self, clock):
        activity = Activity(name="foo", start=clock.now() - timedelta(minutes=45))
        assert activity.duration(clock) == timedelta(minutes=45)

    def test_running_duration_without_clock(self):
        start = datetime.now(timezone.utc) - timedelta(hours=1)
        activity = Activity(name="foo", start=start)
        assert timedelta(minutes=59) < activity.duration() < timedelta(minutes=61)

    def test_equality_compares_instants(self, base_time):
        utc_start = base_time.astimezone(timezone.utc)
        first = Activity(name="foo", project="bar", tags=["baz"], start=base_time, id=1)
        second = Activity(name="foo", project="bar", tags=["baz"], start=utc_start, id=1)
        assert first == second

    def test_equality_respects_tag_order(self, base_time):
        first = Activity(name="foo", tags=["a", "b"], start=base_time)
        second = Activity(name="foo", tags=["b", "a"], start=base_time)
        assert first != second

    def test_clone_copies_tags(self, base_time):
        original = Activity(name="foo", tags=["baz"], start=base_time, id=3)
        copy = original.clone()
        assert copy == original

        copy.name = "qux"
        copy.tags[0] = "junk"
        assert original.name == "foo"
        assert original.tags == ["baz"]


class TestTagList:
    """Tests for tag serialization."""

    def test_tag_list(self, base_time):
        activity = Activity(name="foo", tags=["foo", "bar", "baz"], start=base_time)
        assert activity.tag_list() == "foo, bar, baz"

    def test_set_tag_list(self, base_time):
        activity = Activity(name="foo", start=base_time)
        activity.set_tag_list("foo, bar, baz")
        assert activity.tags == ["foo", "bar", "baz"]

    def test_empty_string_means_no_tags(self):
        assert parse_tag_list("") == []
        assert parse_tag_list(None) == []

    def test_blank_entries_are_dropped(self):
        assert parse_tag_list(" a , ,b ") == ["a", "b"]


def test_format_duration():
    assert format_duration(timedelta(hours=1)) == "01h00m"
    assert format_duration(timedelta(hours=4, minutes=30, seconds=59)) == "04h30m"
    assert format_duration(timedelta(0)) == "00h00m"
