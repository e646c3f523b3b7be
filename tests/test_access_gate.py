import uuid
from types import SimpleNamespace

from learnpath.models import ItemStatus
from learnpath.services.access_gate import ProgressSnapshot, compute_access, module_access


def _module(approval=80):
    return SimpleNamespace(id=uuid.uuid4(), approval_percentage=approval)


def _items(n):
    return [SimpleNamespace(id=uuid.uuid4()) for _ in range(n)]


def _course(*sizes, approval=80):
    modules = [_module(approval) for _ in sizes]
    items = {module.id: _items(size) for module, size in zip(modules, sizes)}
    return modules, items


def test_fresh_learner_only_first_item_open():
    modules, items = _course(3)
    first, second, third = items[modules[0].id]

    access = compute_access(modules, items, ProgressSnapshot())

    assert first.id not in access.locked_item_ids
    assert second.id in access.locked_item_ids
    assert third.id in access.locked_item_ids
    assert access.active_item_id == first.id


def test_item_unlocks_when_previous_completed():
    modules, items = _course(3)
    first, second, third = items[modules[0].id]
    snapshot = ProgressSnapshot(item_statuses={first.id: ItemStatus.COMPLETED})

    access = compute_access(modules, items, snapshot)

    assert second.id not in access.locked_item_ids
    assert third.id in access.locked_item_ids
    assert access.active_item_id == second.id


def test_in_progress_previous_item_still_locks():
    modules, items = _course(2)
    first, second = items[modules[0].id]
    snapshot = ProgressSnapshot(item_statuses={first.id: ItemStatus.IN_PROGRESS})

    access = compute_access(modules, items, snapshot)

    assert second.id in access.locked_item_ids
    assert access.active_item_id == first.id


def test_next_module_locked_below_approval():
    modules, items = _course(2, 2)
    snapshot = ProgressSnapshot(module_percentages={modules[0].id: 50.0})

    access = compute_access(modules, items, snapshot)

    assert modules[1].id in access.locked_module_ids
    assert items[modules[1].id][0].id in access.locked_item_ids


def test_next_module_opens_at_approval():
    modules, items = _course(2, 2)
    snapshot = ProgressSnapshot(module_percentages={modules[0].id: 80.0})

    access = compute_access(modules, items, snapshot)

    assert modules[1].id not in access.locked_module_ids
    assert items[modules[1].id][0].id not in access.locked_item_ids


def test_previous_module_threshold_applies():
    modules, items = _course(2, 1, approval=100)
    snapshot = ProgressSnapshot(module_percentages={modules[0].id: 99.0})

    access = compute_access(modules, items, snapshot)

    assert modules[1].id in access.locked_module_ids


def test_missing_threshold_uses_default():
    modules, items = _course(1, 1, approval=None)
    snapshot = ProgressSnapshot(module_percentages={modules[0].id: 60.0})

    access = compute_access(modules, items, snapshot, default_approval_percentage=50)

    assert modules[1].id not in access.locked_module_ids


def test_empty_module_does_not_gate_next():
    modules, items = _course(0, 2)

    access = compute_access(modules, items, ProgressSnapshot())

    assert modules[1].id not in access.locked_module_ids
    assert items[modules[1].id][0].id not in access.locked_item_ids
    assert access.active_item_id == items[modules[1].id][0].id


def test_empty_module_keeps_earlier_module_gating():
    modules, items = _course(2, 0, 2)
    first = items[modules[2].id][0]

    access = compute_access(modules, items, ProgressSnapshot(module_percentages={modules[0].id: 0.0}))

    assert modules[2].id in access.locked_module_ids
    assert first.id in access.locked_item_ids

    decision = module_access(modules, items, ProgressSnapshot(), modules[2].id)
    assert decision["can_access"] is False
    assert decision["prerequisites"] == [modules[0].id]

    approved = ProgressSnapshot(module_percentages={modules[0].id: 100.0})
    assert first.id not in compute_access(modules, items, approved).locked_item_ids


def test_active_item_crosses_modules_and_clears_when_done():
    modules, items = _course(1, 1)
    a = items[modules[0].id][0]
    b = items[modules[1].id][0]

    partial = ProgressSnapshot(
        item_statuses={a.id: ItemStatus.COMPLETED},
        module_percentages={modules[0].id: 100.0},
    )
    assert compute_access(modules, items, partial).active_item_id == b.id

    done = ProgressSnapshot(
        item_statuses={a.id: ItemStatus.COMPLETED, b.id: ItemStatus.COMPLETED},
        module_percentages={modules[0].id: 100.0, modules[1].id: 100.0},
    )
    access = compute_access(modules, items, done)
    assert access.active_item_id is None
    assert not access.locked_item_ids


def test_module_access_reports_prerequisite():
    modules, items = _course(2, 2)
    snapshot = ProgressSnapshot(module_percentages={modules[0].id: 40.0})

    decision = module_access(modules, items, snapshot, modules[1].id)

    assert decision["can_access"] is False
    assert decision["prerequisites"] == [modules[0].id]
    assert "80%" in decision["reason"]


def test_module_access_first_module_always_open():
    modules, items = _course(2, 2)

    decision = module_access(modules, items, ProgressSnapshot(), modules[0].id)

    assert decision == {"can_access": True, "reason": None, "prerequisites": []}


def test_module_access_unknown_module():
    modules, items = _course(1)

    decision = module_access(modules, items, ProgressSnapshot(), uuid.uuid4())

    assert decision["can_access"] is False
