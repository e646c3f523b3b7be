"""
Access gate - which items a learner may open and where to continue

Pure functions over already-fetched data; no I/O.

Rules:
- item k > 0 of a module is locked until item k-1 is Completed
- the first item of module j > 0 is locked while the nearest earlier module
  with items is below its approval percentage (default 80); such modules
  are reported as locked
- the active item is the first non-Completed item in course order
"""
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Set
from uuid import UUID

from learnpath.models import ItemStatus

DEFAULT_APPROVAL_PERCENTAGE = 80


@dataclass
class ProgressSnapshot:
    """Per-user state the gate needs; absent ids count as NotStarted / 0 %"""
    item_statuses: Mapping[UUID, ItemStatus] = field(default_factory=dict)
    module_percentages: Mapping[UUID, float] = field(default_factory=dict)

    def is_completed(self, item_id: UUID) -> bool:
        return self.item_statuses.get(item_id) == ItemStatus.COMPLETED

    def module_percentage(self, module_id: UUID) -> float:
        return float(self.module_percentages.get(module_id) or 0.0)


@dataclass
class AccessResult:
    locked_item_ids: Set[UUID] = field(default_factory=set)
    locked_module_ids: Set[UUID] = field(default_factory=set)
    active_item_id: Optional[UUID] = None


def _approval_percentage(module, default: int) -> float:
    value = getattr(module, "approval_percentage", None)
    return float(default if value is None else value)


def _prerequisite(sorted_modules: Sequence, sorted_items_by_module: Mapping[UUID, Sequence], position: int):
    """Nearest module before ``position`` that has items, or None"""
    for previous in reversed(sorted_modules[:position]):
        if sorted_items_by_module.get(previous.id):
            return previous
    return None


def compute_access(
    sorted_modules: Sequence,
    sorted_items_by_module: Mapping[UUID, Sequence],
    snapshot: ProgressSnapshot,
    default_approval_percentage: int = DEFAULT_APPROVAL_PERCENTAGE,
) -> AccessResult:
    """
    Compute locks and the active item for one learner

    Args:
        sorted_modules: modules in course order (objects with ``id`` and
            optionally ``approval_percentage``)
        sorted_items_by_module: module id -> items in module order
        snapshot: the learner's item statuses and module percentages

    Returns:
        AccessResult with locked item/module ids and the active item id
    """
    result = AccessResult()

    for j, module in enumerate(sorted_modules):
        items = sorted_items_by_module.get(module.id, [])

        gated = False
        # Empty modules have nothing to approve and are skipped over
        previous = _prerequisite(sorted_modules, sorted_items_by_module, j)
        if previous is not None:
            threshold = _approval_percentage(previous, default_approval_percentage)
            gated = snapshot.module_percentage(previous.id) < threshold
        if gated:
            result.locked_module_ids.add(module.id)

        for k, item in enumerate(items):
            if k == 0:
                locked = gated
            else:
                locked = not snapshot.is_completed(items[k - 1].id)
            if locked:
                result.locked_item_ids.add(item.id)

            if result.active_item_id is None and not snapshot.is_completed(item.id):
                result.active_item_id = item.id

    return result


def module_access(
    sorted_modules: Sequence,
    sorted_items_by_module: Mapping[UUID, Sequence],
    snapshot: ProgressSnapshot,
    module_id: UUID,
    default_approval_percentage: int = DEFAULT_APPROVAL_PERCENTAGE,
) -> Dict:
    """
    Access decision for a single module

    Returns:
        Dict with can_access, reason and the prerequisite module ids
    """
    ids = [module.id for module in sorted_modules]
    if module_id not in ids:
        return {"can_access": False, "reason": "Module is not active in this course", "prerequisites": []}

    access = compute_access(
        sorted_modules, sorted_items_by_module, snapshot, default_approval_percentage
    )
    if module_id not in access.locked_module_ids:
        return {"can_access": True, "reason": None, "prerequisites": []}

    position = ids.index(module_id)
    previous = _prerequisite(sorted_modules, sorted_items_by_module, position)
    threshold = _approval_percentage(previous, default_approval_percentage)
    return {
        "can_access": False,
        "reason": (
            f"Previous module must reach {threshold:.0f}% "
            f"(currently {snapshot.module_percentage(previous.id):.0f}%)"
        ),
        "prerequisites": [previous.id],
    }
