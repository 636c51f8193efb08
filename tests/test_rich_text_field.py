import pytest

from lessonplanner.services.rich_text_field import FieldState, RichTextField


@pytest.fixture
def changes():
    return []


@pytest.fixture
def field(changes):
    return RichTextField("summary", "Summary", "Wrap up...", on_change=changes.append)


def test_external_update_applies_immediately_when_idle(field, changes):
    field.set_content("<strong>AI</strong> text")
    assert field.content == "<b>AI</b> text"
    assert field.state is FieldState.IDLE
    # external writes are not echoed back as user changes
    assert changes == []


def test_external_update_deferred_while_editing(field, changes):
    field.set_content("old")
    field.focus()
    field.set_content("new")

    assert field.state is FieldState.PENDING_EXTERNAL_UPDATE
    assert field.content == "old"
    assert field.pending_content == "new"

    field.blur()
    assert field.state is FieldState.IDLE
    assert field.content == "new"
    assert field.pending_content is None
    assert changes == ["new"]


def test_same_content_while_editing_is_not_pending(field, changes):
    field.set_content("same")
    field.focus()
    field.set_content("same")
    assert field.state is FieldState.EDITING
    field.blur()
    assert changes == []


def test_pending_update_never_interrupts_typing(field, changes):
    field.focus()
    field.input("my draft")
    field.set_content("generated")
    field.type_text("!")

    assert field.content == "my draft!"
    assert changes == ["my draft", "my draft!"]

    field.blur()
    assert field.content == "generated"
    assert changes[-1] == "generated"


def test_input_reports_every_change(field, changes):
    field.input("a")
    field.input("a")
    field.input("<p>ab</p>")
    assert changes == ["a", "ab"]
    assert field.state is FieldState.EDITING


def test_blur_without_focus_is_noop(field):
    field.blur()
    assert field.state is FieldState.IDLE


def test_bold_selection(field, changes):
    field.set_content("Hello World")
    field.select(0, 5)
    field.toggle_bold()
    assert field.content == "<b>Hello</b> World"
    assert changes == ["<b>Hello</b> World"]


def test_bold_at_caret_applies_to_next_text(field):
    field.set_content("Hi")
    field.select(2)
    field.toggle_bold()
    # nothing to format yet
    assert field.content == "Hi"
    field.type_text(" there")
    assert field.content == "Hi<b> there</b>"


def test_bulleted_list_command(field):
    field.set_content("one<br>two")
    field.select(0, 5)
    field.apply_command("bulleted_list")
    assert field.content == "<ul><li>one</li><li>two</li></ul>"


def test_italic_command(field):
    field.set_content("Hello")
    field.select(0, 5)
    field.apply_command("italic")
    assert field.content == "<i>Hello</i>"


def test_unknown_command(field):
    with pytest.raises(ValueError):
        field.apply_command("underline")


def test_emptiness_ignores_markup(field):
    field.set_content("<ul><li></li></ul>")
    assert field.is_empty()
    field.set_content("<b>x</b>")
    assert not field.is_empty()


def test_selection_is_clamped(field):
    field.set_content("abc")
    field.select(1, 99)
    assert field.selection == (1, 3)


def test_allowed_markup_reads_back_unchanged_when_idle(field, changes):
    html = "<b>Hello</b><ul><li>World</li></ul>"
    field.set_content(html)
    assert field.content == html
    assert field.state is FieldState.IDLE
    assert changes == []
