"""Tests for the watch session state machine."""

from __future__ import annotations

from pathlib import Path

from autofm.watch import Notification, NotificationKind, WatchAction, WatchPhase, WatchStateMachine

POST = Path("/blog/tech/post.md")


def _note(kind: NotificationKind, path: Path | None = POST) -> Notification:
    return Notification(kind, path)


def test_scanning_applies_initial_action_and_ignores_changes() -> None:
    machine = WatchStateMachine.for_session(one_shot=False, force=False)

    assert machine.phase is WatchPhase.SCANNING
    assert machine.handle(_note(NotificationKind.ADD)) == (WatchAction.INITIALIZE,)
    assert machine.handle(_note(NotificationKind.CHANGE)) == ()
    assert machine.permits(WatchAction.RESYNC) is False
    assert machine.permits(WatchAction.INITIALIZE) is True


def test_ready_reacts_to_adds_and_changes() -> None:
    machine = WatchStateMachine.for_session(one_shot=False, force=False)

    assert machine.handle(_note(NotificationKind.READY, None)) == ()
    assert machine.phase is WatchPhase.READY
    assert machine.handle(_note(NotificationKind.ADD)) == (WatchAction.INITIALIZE, WatchAction.RESYNC)
    assert machine.handle(_note(NotificationKind.CHANGE)) == (WatchAction.STAMP_UPDATED,)
    assert machine.handle(_note(NotificationKind.READY, None)) == ()
    assert machine.permits(WatchAction.RESYNC) is True


def test_structural_events_only_log() -> None:
    machine = WatchStateMachine.for_session(one_shot=False, force=False)

    for kind in (NotificationKind.UNLINK, NotificationKind.UNLINK_DIR, NotificationKind.ADD_DIR):
        assert machine.handle(_note(kind)) == (WatchAction.LOG,)
    machine.handle(_note(NotificationKind.READY, None))
    for kind in (NotificationKind.UNLINK, NotificationKind.UNLINK_DIR, NotificationKind.ADD_DIR):
        assert machine.handle(_note(kind)) == (WatchAction.LOG,)


def test_errors_never_change_phase() -> None:
    machine = WatchStateMachine.for_session(one_shot=False, force=False)

    assert machine.handle(Notification(NotificationKind.ERROR, POST, "boom")) == (WatchAction.LOG,)
    assert machine.phase is WatchPhase.SCANNING
    machine.handle(_note(NotificationKind.READY, None))
    assert machine.handle(Notification(NotificationKind.ERROR, POST, "boom")) == (WatchAction.LOG,)
    assert machine.phase is WatchPhase.READY


def test_one_shot_closes_after_scan() -> None:
    machine = WatchStateMachine.for_session(one_shot=True, force=False)

    assert machine.initial_action is WatchAction.UPDATE
    assert machine.handle(_note(NotificationKind.ADD)) == (WatchAction.UPDATE,)
    assert machine.handle(_note(NotificationKind.READY, None)) == (WatchAction.CLOSE,)
    assert machine.phase is WatchPhase.CLOSING
    assert machine.handle(_note(NotificationKind.ADD)) == ()
    assert machine.handle(Notification(NotificationKind.ERROR, POST, "late")) == ()
    assert machine.permits(WatchAction.LOG) is False


def test_force_uses_update_during_scan() -> None:
    machine = WatchStateMachine.for_session(one_shot=False, force=True)

    assert machine.handle(_note(NotificationKind.ADD)) == (WatchAction.UPDATE,)
    assert machine.permits(WatchAction.INITIALIZE) is False
