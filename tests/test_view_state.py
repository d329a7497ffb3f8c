import pytest

from fieldforce.consoles.routing import ConsoleKind, resolve_console
from fieldforce.consoles.state import AdminViewState, CaptureStatus, Dialog, FieldAgentViewState, Section


def test_edit_dialog_requires_selection() -> None:
    with pytest.raises(ValueError):
        AdminViewState(dialog=Dialog.EDIT_SALESPERSON)
    with pytest.raises(ValueError):
        AdminViewState(selected_salesperson_id=3)


def test_only_one_dialog_at_a_time() -> None:
    state = AdminViewState().open_dialog(Dialog.EDIT_LOCATION, 3)
    state = state.open_dialog(Dialog.ADD_VISIT, 3)

    assert state.dialog is Dialog.ADD_VISIT
    assert state.selected_salesperson_id is None
    assert state.close_dialog() == AdminViewState()


def test_sections_and_sidebar() -> None:
    state = AdminViewState().show(Section.ORDERS).toggle_sidebar()

    assert state.section is Section.ORDERS
    assert state.sidebar_open is False


def test_tracking_requires_identity() -> None:
    with pytest.raises(ValueError):
        FieldAgentViewState(tracking=True)

    state = FieldAgentViewState(salesperson_id=1)
    assert state.can_capture
    assert not state.report(CaptureStatus.LOADING, "Obteniendo ubicación...").can_capture


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/mobile", ConsoleKind.FIELD_AGENT),
        ("/mobile/", ConsoleKind.FIELD_AGENT),
        ("/", ConsoleKind.ADMIN),
        ("/mobile/extra", ConsoleKind.ADMIN),
        ("/reports", ConsoleKind.ADMIN),
    ],
)
def test_resolve_console(path, expected) -> None:
    assert resolve_console(path) is expected
