"""Tests for keyboard-driven grade entry."""

import pytest

from entrysync.services.drafts import (
    GradeEntryController, EntryField, FocusPosition, parse_score
)
from entrysync.services.remote.base import GRADES


@pytest.fixture
async def controller(registry, mock_engine, mock_remote_store, roster):
    controller = GradeEntryController(
        "c1",
        registry=registry,
        engine=mock_engine,
        remote_store=mock_remote_store,
        debounce_seconds=0.05
    )
    controller.set_roster(roster)
    yield controller
    await controller.close()


class TestParseScore:

    @pytest.mark.parametrize("raw,expected", [
        ("87", (True, 87.0)),
        (" 92.5 ", (True, 92.5)),
        (0, (True, 0.0)),
        (100, (True, 100.0)),
        ("", (True, None)),
        ("   ", (True, None)),
        (None, (True, None)),
        ("105", (False, None)),
        (-1, (False, None)),
        ("abc", (False, None)),
        ("nan", (False, None)),
        (True, (False, None)),
    ])
    def test_parse_score(self, raw, expected):
        assert parse_score(raw) == expected


class TestScores:

    async def test_valid_score_marks_dirty(self, controller):
        assert controller.set_score("s1", "87") is True

        draft = controller.draft_for("s1")
        assert draft.score == 87.0
        assert draft.is_dirty is True
        assert controller.graded_count == 1

    async def test_out_of_range_score_is_dropped(self, controller):
        controller.set_score("s1", "87")

        assert controller.set_score("s1", "105") is False
        assert controller.draft_for("s1").score == 87.0

    async def test_empty_input_clears_the_score(self, controller):
        controller.set_score("s1", "87")
        controller.set_score("s1", "")

        draft = controller.draft_for("s1")
        assert draft.score is None
        assert draft.is_dirty is True
        assert controller.graded_count == 0

    async def test_overlong_feedback_is_dropped(self, controller):
        controller.set_score("s1", "87")

        assert controller.set_feedback("s1", "x" * 2001) is None
        assert controller.draft_for("s1").feedback == ""

    async def test_feedback(self, controller):
        controller.set_feedback("s2", "Great work")

        draft = controller.draft_for("s2")
        assert draft.feedback == "Great work"
        assert draft.score is None


class TestKeyboardNavigation:

    async def test_initial_focus(self, controller):
        assert controller.focus_position == FocusPosition(0, EntryField.SCORE)

    async def test_tab_cycles_score_then_feedback_then_next_row(self, controller):
        result = await controller.handle_key("Tab")
        assert result.handled
        assert result.focus == FocusPosition(0, EntryField.FEEDBACK)

        result = await controller.handle_key("Tab")
        assert result.focus == FocusPosition(1, EntryField.SCORE)

    async def test_tab_on_last_feedback_stays(self, controller):
        controller.focus(3, EntryField.FEEDBACK)

        result = await controller.handle_key("Tab")

        assert result.focus == FocusPosition(3, EntryField.FEEDBACK)

    async def test_shift_tab_moves_to_previous_score(self, controller):
        controller.focus(2, EntryField.FEEDBACK)

        result = await controller.handle_key("Tab", shift=True)
        assert result.focus == FocusPosition(1, EntryField.SCORE)

        controller.focus(0, EntryField.FEEDBACK)
        result = await controller.handle_key("Tab", shift=True)
        assert result.focus == FocusPosition(0, EntryField.FEEDBACK)

    async def test_enter_moves_down_from_either_field(self, controller):
        result = await controller.handle_key("Enter")
        assert result.focus == FocusPosition(1, EntryField.SCORE)

        controller.focus(1, EntryField.FEEDBACK)
        result = await controller.handle_key("Enter")
        assert result.focus == FocusPosition(2, EntryField.SCORE)

        controller.focus(3, EntryField.SCORE)
        result = await controller.handle_key("Enter")
        assert result.focus == FocusPosition(3, EntryField.SCORE)

    async def test_other_keys_are_not_handled(self, controller):
        result = await controller.handle_key("ArrowDown")

        assert not result.handled
        assert result.focus == FocusPosition(0, EntryField.SCORE)

    async def test_focus_outside_roster(self, controller):
        with pytest.raises(ValueError):
            controller.focus(4)

    async def test_shrinking_roster_clamps_focus(self, controller, roster):
        controller.focus(3, EntryField.FEEDBACK)

        controller.set_roster(roster[:2])

        assert controller.focus_position == FocusPosition(1, EntryField.FEEDBACK)

    async def test_empty_roster_has_no_focus(self, controller):
        controller.set_roster([])

        result = await controller.handle_key("Tab")

        assert controller.focus_position is None
        assert not result.handled


class TestSaveShortcut:

    async def test_ctrl_s_flushes_below_threshold(self, controller, mock_remote_store):
        controller.set_score("s1", "87")

        result = await controller.handle_key("s", ctrl=True)

        assert result.handled
        assert result.flush_result.saved == 1
        assert controller.unsaved_count == 0
        collection, items, conflict_fields = mock_remote_store.batch_upsert.call_args.args
        assert collection == GRADES
        assert items[0]["student_id"] == "s1"
        assert items[0]["score"] == 87.0

    async def test_cmd_s_flushes(self, controller, mock_remote_store):
        controller.set_score("s2", 70)

        result = await controller.handle_key("S", meta=True)

        assert result.flush_result.saved == 1

    async def test_ungraded_rows_stay_dirty_after_save(self, controller):
        controller.set_score("s1", "87")
        controller.set_feedback("s2", "missing exam")

        result = await controller.handle_key("s", ctrl=True)

        assert result.flush_result.saved == 1
        assert result.flush_result.skipped == 1
        assert controller.store.dirty_keys() == ["s2"]

    async def test_switch_course_resets_focus(self, controller):
        controller.focus(2, EntryField.FEEDBACK)
        controller.set_score("s1", "50")

        controller.switch_course("c2")

        assert controller.scope.course_id == "c2"
        assert controller.unsaved_count == 0
        assert controller.focus_position == FocusPosition(0, EntryField.SCORE)
