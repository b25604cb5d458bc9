"""Tests for ShapeModel: gestures, history, keyboard and serialization."""

import pytest

from proofmark import ShapeModel, Tool


@pytest.fixture
def model(app):
    return ShapeModel()


def draw(model, tool, start, *moves):
    model.setTool(tool)
    model.pointerDown(*start)
    for point in moves:
        model.pointerMove(*point)
    model.pointerUp()


def draw_rect(model, x=10.0, y=10.0, w=40.0, h=40.0):
    draw(model, "rect", (x, y), (x + w, y + h))
    return model.shapes[-1]


class TestDrawing:
    def test_default_state(self, model):
        assert model.count == 0
        assert model.tool == Tool.SELECT.value
        assert not model.canUndo
        assert not model.canRedo

    def test_rect_gesture_commits_shape(self, model):
        shape = draw_rect(model)
        assert model.count == 1
        assert shape.id.startswith("shape_")
        assert (shape.x, shape.y, shape.width, shape.height) == (10.0, 10.0, 40.0, 40.0)
        assert model.canUndo
        index = model.index(0, 0)
        assert model.data(index, model.TypeRole) == "rect"
        assert model.data(index, model.WidthRole) == 40.0

    def test_current_shape_tracks_drag(self, model):
        model.setTool("line")
        model.pointerDown(0.0, 0.0)
        model.pointerMove(30.0, 40.0)
        current = model.currentShape
        assert current["x2"] == 30.0
        assert current["y2"] == 40.0
        model.pointerUp()
        assert model.currentShape is None

    def test_line_below_minimum_is_rejected(self, model):
        draw(model, "line", (0.0, 0.0), (1.0, 1.0))
        assert model.count == 0
        assert not model.canUndo

    def test_extent_of_exactly_three_is_rejected(self, model):
        draw(model, "arrow", (0.0, 0.0), (3.0, 0.0))
        draw(model, "rect", (0.0, 0.0), (2.0, 1.0))
        assert model.count == 0

    def test_pen_needs_three_points(self, model):
        draw(model, "pen", (0.0, 0.0), (5.0, 5.0))
        assert model.count == 0
        draw(model, "pen", (0.0, 0.0), (5.0, 5.0), (10.0, 5.0))
        assert model.count == 1
        assert len(model.shapes[0].points) == 3

    def test_brush_applies_to_new_shapes(self, model):
        model.color = "#22c55e"
        model.lineWidth = 6
        shape = draw_rect(model)
        assert shape.color == "#22c55e"
        assert shape.line_width == 6.0

    def test_brush_values_are_clamped(self, model):
        model.lineWidth = 100
        model.fontSize = 2
        assert model.lineWidth == 50.0
        assert model.fontSize == 8.0

    def test_pointer_leave_commits(self, model):
        model.setTool("circle")
        model.pointerDown(0.0, 0.0)
        model.pointerMove(20.0, 20.0)
        model.pointerLeave()
        assert model.count == 1

    def test_cancel_gesture_discards(self, model):
        model.setTool("rect")
        model.pointerDown(0.0, 0.0)
        model.pointerMove(50.0, 50.0)
        model.cancelGesture()
        model.pointerUp()
        assert model.count == 0
        assert not model.canUndo

    def test_pin_tool_does_not_draw(self, model):
        draw(model, "pin", (0.0, 0.0), (50.0, 50.0))
        assert model.count == 0

    def test_unknown_tool_is_ignored(self, model):
        model.setTool("lasso")
        assert model.tool == "select"


class TestTextEntry:
    def test_submit_commits_text(self, model):
        model.setTool("text")
        model.pointerDown(5.0, 50.0)
        assert model.textEntryActive
        assert model.textEntryX == 5.0
        shape_id = model.submitText("Hello")
        assert shape_id
        assert model.getShape(shape_id).text == "Hello"
        assert not model.textEntryActive

    def test_blank_text_is_discarded(self, model):
        model.setTool("text")
        model.pointerDown(5.0, 50.0)
        assert model.submitText("   ") == ""
        assert model.count == 0
        assert not model.canUndo

    def test_cancel_text(self, model):
        model.setTool("text")
        model.pointerDown(5.0, 50.0)
        model.cancelText()
        assert not model.textEntryActive
        assert model.submitText("late") == ""


class TestSelectAndDrag:
    def test_drag_then_undo_restores_origin(self, model):
        shape = draw_rect(model)
        model.setTool("select")
        model.pointerDown(30.0, 30.0)
        model.pointerMove(32.0, 31.0)
        model.pointerMove(35.0, 35.0)
        model.pointerUp()

        moved = model.getShape(shape.id)
        assert (moved.x, moved.y) == (15.0, 15.0)

        model.undo()
        restored = model.getShape(shape.id)
        assert (restored.x, restored.y) == (10.0, 10.0)
        assert model.count == 1

    def test_click_selects_top_most(self, model):
        draw_rect(model)
        top = draw_rect(model, 20.0, 20.0)
        model.setTool("select")
        model.pointerDown(30.0, 30.0)
        model.pointerUp()
        assert model.selectedId == top.id
        assert model.data(model.index(1, 0), model.SelectedRole)

    def test_click_on_empty_space_clears_selection(self, model):
        draw_rect(model)
        model.setTool("select")
        model.pointerDown(30.0, 30.0)
        model.pointerUp()
        model.pointerDown(300.0, 300.0)
        model.pointerUp()
        assert model.selectedId == ""

    def test_shape_id_at(self, model):
        shape = draw_rect(model)
        assert model.shapeIdAt(10.0, 30.0) == shape.id
        assert model.shapeIdAt(1.0, 30.0) == ""


class TestHistory:
    def test_round_trip(self, model):
        for n in range(3):
            draw_rect(model, 10.0 + n * 60.0)
        before = [s.id for s in model.shapes]

        for _ in range(3):
            model.undo()
        assert model.count == 0
        assert not model.canUndo

        for _ in range(3):
            model.redo()
        assert [s.id for s in model.shapes] == before

    def test_new_gesture_invalidates_redo(self, model):
        first = draw_rect(model)
        draw_rect(model, 100.0)
        model.undo()
        assert model.canRedo
        third = draw_rect(model, 200.0)
        assert not model.canRedo
        model.redo()
        assert [s.id for s in model.shapes] == [first.id, third.id]

    def test_history_is_bounded(self, model):
        for n in range(35):
            draw_rect(model, float(n * 10))
        for _ in range(40):
            model.undo()
        assert model.count == 5

    def test_undo_clears_stale_selection(self, model):
        draw_rect(model)
        model.setTool("select")
        model.pointerDown(30.0, 30.0)
        model.pointerUp()
        assert model.selectedId
        model.undo()  # the click-select checkpoint
        model.undo()  # the draw
        assert model.count == 0
        assert model.selectedId == ""

    def test_update_shape_is_one_step(self, model):
        shape = draw_rect(model)
        assert model.updateShape(shape.id, {"color": "#3b82f6", "lineWidth": 8})
        updated = model.getShape(shape.id)
        assert updated.color == "#3b82f6"
        assert updated.line_width == 8.0
        model.undo()
        assert model.getShape(shape.id).color == "#ef4444"

    def test_update_unknown_shape(self, model):
        assert not model.updateShape("shape_99", {"color": "#000000"})

    def test_clear_all(self, model):
        draw_rect(model)
        draw_rect(model, 100.0)
        model.clearAll()
        assert model.count == 0
        model.undo()
        assert model.count == 2

    def test_clear_all_on_empty_is_noop(self, model):
        model.clearAll()
        assert not model.canUndo


class TestKeyboard:
    def test_undo_redo_shortcuts(self, model):
        draw_rect(model)
        assert model.handleKey("z", True, False, False)
        assert model.count == 0
        assert model.handleKey("z", True, True, False)
        assert model.count == 1
        model.undo()
        assert model.handleKey("y", True, False, True)
        assert model.count == 1

    def test_tool_shortcuts(self, model):
        assert model.handleKey("r", False, False, False)
        assert model.tool == "rect"
        assert model.handleKey("O", False, False, False)
        assert model.tool == "circle"
        assert model.handleKey("a", False, False, False)
        assert model.tool == "arrow"
        assert model.handleKey("p", False, False, False)
        assert model.tool == "pen"

    def test_shortcuts_ignored_while_typing(self, model):
        assert not model.handleKey("r", False, False, True)
        assert model.tool == "select"

    def test_delete_selected(self, model):
        shape = draw_rect(model)
        model.setTool("select")
        model.pointerDown(30.0, 30.0)
        model.pointerUp()
        assert model.handleKey("Delete", False, False, False)
        assert model.getShape(shape.id) is None
        assert model.selectedId == ""
        model.undo()
        assert model.getShape(shape.id) is not None

    def test_delete_needs_select_tool(self, model):
        draw_rect(model)
        model.setTool("rect")
        assert not model.handleKey("Backspace", False, False, False)
        assert model.count == 1

    def test_escape_cancels_drawing(self, model):
        model.setTool("rect")
        model.pointerDown(0.0, 0.0)
        model.pointerMove(40.0, 40.0)
        assert model.handleKey("Escape", False, False, False)
        model.pointerUp()
        assert model.count == 0

    def test_escape_in_text_entry_discards_it(self, model):
        model.setTool("text")
        model.pointerDown(10.0, 10.0)
        assert model.textEntryActive
        assert model.handleKey("Escape", False, False, True)
        assert not model.textEntryActive
        assert model.submitText("late") == ""
        assert model.count == 0
        assert not model.canUndo

    def test_escape_in_unrelated_text_input_is_not_consumed(self, model):
        assert not model.handleKey("Escape", False, False, True)


class TestPlayback:
    def test_shapes_anchor_to_playback_time(self, model):
        model.setPlaybackTime(10.0)
        shape = draw_rect(model)
        assert shape.timestamp == 10.0
        assert shape.duration == 4.0

    def test_visibility_follows_clock(self, model):
        model.setPlaybackTime(10.0)
        draw_rect(model)
        index = model.index(0, 0)

        model.setPlaybackTime(11.99)
        assert model.data(index, model.VisibleRole)
        assert len(model.visibleShapes) == 1

        model.setPlaybackTime(12.0)
        assert not model.data(index, model.VisibleRole)
        assert model.visibleShapes == []

        model.clearPlaybackTime()
        assert model.data(index, model.VisibleRole)

    def test_hidden_shapes_are_not_hit(self, model):
        model.setPlaybackTime(10.0)
        draw_rect(model)
        model.setPlaybackTime(30.0)
        assert model.shapeIdAt(30.0, 30.0) == ""

    def test_select_click_reaches_hidden_shapes(self, model):
        model.setPlaybackTime(10.0)
        shape = draw_rect(model)
        model.setPlaybackTime(30.0)
        model.setTool("select")
        model.pointerDown(30.0, 30.0)
        model.pointerUp()
        assert model.selectedId == shape.id
        assert model.shapeIdAt(30.0, 30.0) == ""

    def test_static_shapes_have_no_timestamp(self, model):
        shape = draw_rect(model)
        assert shape.timestamp is None


class TestTimeline:
    def test_layout(self, model):
        model.setPlaybackTime(10.0)
        shape = draw_rect(model)
        (bar,) = model.timelineLayout(100.0)
        assert bar["id"] == shape.id
        assert bar["row"] == 0
        assert bar["startPct"] == pytest.approx(8.0)
        assert bar["widthPct"] == pytest.approx(4.0)

    def test_retime_is_one_undo_step(self, model):
        model.setPlaybackTime(10.0)
        shape = draw_rect(model)
        assert model.beginRetime(shape.id)
        model.shiftRetime(2.0, 100.0)
        model.shiftRetime(5.0, 100.0)
        model.endRetime()
        assert model.getShape(shape.id).timestamp == 15.0

        model.undo()
        assert model.getShape(shape.id).timestamp == 10.0
        assert model.count == 1

    def test_resize_right_edge(self, model):
        model.setPlaybackTime(10.0)
        shape = draw_rect(model)
        model.beginRetime(shape.id)
        model.resizeRetime("right", 2.0)
        model.resizeRetime("middle", 9.0)
        model.endRetime()
        retimed = model.getShape(shape.id)
        assert retimed.duration == 6.0
        assert retimed.timestamp == 11.0

    def test_static_shape_cannot_be_retimed(self, model):
        shape = draw_rect(model)
        assert not model.beginRetime(shape.id)


class TestSerialization:
    def test_round_trip_resumes_ids(self, app, model):
        for n in range(3):
            draw_rect(model, 10.0 + n * 60.0)
        data = model.to_dict()

        loaded = ShapeModel()
        loaded.from_dict(data)
        assert [s.id for s in loaded.shapes] == [s.id for s in model.shapes]
        assert not loaded.canUndo
        new_shape = draw_rect(loaded, 300.0)
        assert new_shape.id == "shape_3"

    def test_load_rescales_to_surface(self, app, model):
        model.setSurfaceSize(200.0, 100.0)
        draw_rect(model)
        data = model.to_dict()

        loaded = ShapeModel()
        loaded.setSurfaceSize(400.0, 200.0)
        loaded.from_dict(data)
        shape = loaded.shapes[0]
        assert (shape.x, shape.y, shape.width) == (20.0, 20.0, 80.0)

    def test_to_percent(self, model):
        assert model.toPercent(10.0, 10.0) is None
        model.setSurfaceSize(200.0, 100.0)
        assert model.toPercent(50.0, 50.0) == [25.0, 50.0]

    def test_models_are_independent(self, app):
        left = ShapeModel()
        right = ShapeModel()
        draw_rect(left)
        left.setTool("select")
        left.pointerDown(30.0, 30.0)
        assert right.selectedId == ""
        assert right.count == 0


class TestSettings:
    def test_brush_defaults_come_from_settings(self, app, settings):
        settings.color = "#8b5cf6"
        settings.line_width = 5
        model = ShapeModel(settings=settings)
        assert model.color == "#8b5cf6"
        assert model.lineWidth == 5.0

    def test_brush_changes_are_written_back(self, app, settings):
        model = ShapeModel(settings=settings)
        model.fontSize = 24
        model.duration = 8
        assert settings.font_size == 24.0
        assert settings.duration == 8.0
