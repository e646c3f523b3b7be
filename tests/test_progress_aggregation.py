from factories import build_course
from learnpath.database import utcnow
from learnpath.models import (
    ActivityType,
    CourseStatus,
    ItemKind,
    ModuleStatus,
    UserActivityLog,
)
from learnpath.schemas.progress import ItemCompletionData
from learnpath.services.course_progress import course_progress_aggregator
from learnpath.services.item_progress import item_progress_store
from learnpath.services.module_progress import module_progress_aggregator


def test_empty_module_is_not_started(db, tenant_id, user_id):
    tree = build_course(db, tenant_id, [[]])

    result = module_progress_aggregator.recompute(db, user_id, tree.modules[0].id)

    assert result.progress.total_items == 0
    assert result.progress.progress_percentage == 0.0
    assert result.progress.status == ModuleStatus.NOT_STARTED
    assert result.completed_now is False


def test_module_completes_only_when_every_item_completed(db, tenant_id, user_id):
    tree = build_course(db, tenant_id, [[ItemKind.CONTENT, ItemKind.QUIZ, ItemKind.TASK]])
    module_id = tree.modules[0].id
    items = tree.items[0]

    item_progress_store.complete(db, user_id, items[0].id)
    item_progress_store.complete(db, user_id, items[1].id)
    partial = module_progress_aggregator.recompute(db, user_id, module_id)

    assert partial.progress.status == ModuleStatus.IN_PROGRESS
    assert partial.progress.items_completed == 2
    assert round(partial.progress.progress_percentage, 2) == 66.67

    item_progress_store.complete(db, user_id, items[2].id)
    done = module_progress_aggregator.recompute(db, user_id, module_id)

    assert done.progress.status == ModuleStatus.COMPLETED
    assert done.progress.progress_percentage == 100.0
    assert done.completed_now is True
    assert done.progress.completed_at is not None

    again = module_progress_aggregator.recompute(db, user_id, module_id)
    assert again.completed_now is False


def test_started_item_marks_module_in_progress(db, tenant_id, user_id):
    tree = build_course(db, tenant_id, [[ItemKind.CONTENT, ItemKind.CONTENT]])

    item_progress_store.start(db, user_id, tree.items[0][0].id)
    result = module_progress_aggregator.recompute(db, user_id, tree.modules[0].id)

    assert result.progress.status == ModuleStatus.IN_PROGRESS
    assert result.progress.items_completed == 0
    assert result.progress.started_at is not None


def test_module_score_ignores_unscored_items(db, tenant_id, user_id):
    tree = build_course(db, tenant_id, [[ItemKind.QUIZ, ItemKind.QUIZ, ItemKind.CONTENT]])
    quiz_a, quiz_b, content = tree.items[0]

    item_progress_store.complete(db, user_id, quiz_a.id, ItemCompletionData(score=80))
    item_progress_store.complete(db, user_id, quiz_b.id, ItemCompletionData(score=60))
    item_progress_store.complete(db, user_id, content.id, ItemCompletionData(time_spent=45))
    result = module_progress_aggregator.recompute(db, user_id, tree.modules[0].id)

    assert result.progress.score_percentage == 70.0
    assert result.progress.time_spent_seconds == 45


def test_course_totals_are_sums_of_modules(db, tenant_id, user_id):
    tree = build_course(db, tenant_id, [
        [ItemKind.CONTENT, ItemKind.CONTENT],
        [ItemKind.QUIZ, ItemKind.FORUM, ItemKind.TASK],
    ])
    for item in tree.items[0] + tree.items[1][:1]:
        item_progress_store.complete(db, user_id, item.id, ItemCompletionData(time_spent=10))
    for module in tree.modules:
        module_progress_aggregator.recompute(db, user_id, module.id)

    result = course_progress_aggregator.recompute(db, user_id, tree.course.id)
    progress = result.progress
    module_rows = module_progress_aggregator.list_for_modules(
        db, user_id, [m.id for m in tree.modules]
    )

    assert progress.total_items_completed == sum(r.items_completed for r in module_rows.values())
    assert progress.total_items_completed == 3
    assert progress.total_items == 5
    assert progress.total_modules == 2
    assert progress.total_modules_completed == 1
    assert progress.progress_percentage == 60.0
    assert progress.total_time_spent == 30
    assert progress.status == CourseStatus.IN_PROGRESS


def test_course_counts_untouched_modules(db, tenant_id, user_id):
    tree = build_course(db, tenant_id, [[ItemKind.CONTENT], [ItemKind.CONTENT, ItemKind.TASK]])
    item_progress_store.complete(db, user_id, tree.items[0][0].id)
    module_progress_aggregator.recompute(db, user_id, tree.modules[0].id)

    progress = course_progress_aggregator.recompute(db, user_id, tree.course.id).progress

    assert progress.total_items == 3
    assert progress.total_items_completed == 1
    assert progress.status == CourseStatus.IN_PROGRESS


def test_inactive_and_deleted_modules_are_excluded(db, tenant_id, user_id):
    tree = build_course(db, tenant_id, [[ItemKind.CONTENT], [ItemKind.CONTENT], [ItemKind.CONTENT]])
    tree.modules[1].configuration.is_active = False
    tree.modules[2].deleted_at = utcnow()
    db.commit()

    item_progress_store.complete(db, user_id, tree.items[0][0].id)
    module_progress_aggregator.recompute(db, user_id, tree.modules[0].id)
    result = course_progress_aggregator.recompute(db, user_id, tree.course.id)

    assert result.progress.total_modules == 1
    assert result.progress.total_items == 1
    assert result.progress.status == CourseStatus.COMPLETED
    assert result.completed_now is True


def test_course_score_is_mean_of_scored_modules(db, tenant_id, user_id):
    tree = build_course(db, tenant_id, [[ItemKind.QUIZ], [ItemKind.QUIZ], [ItemKind.CONTENT]])
    item_progress_store.complete(db, user_id, tree.items[0][0].id, ItemCompletionData(score=90))
    item_progress_store.complete(db, user_id, tree.items[1][0].id, ItemCompletionData(score=70))
    item_progress_store.complete(db, user_id, tree.items[2][0].id)
    for module in tree.modules:
        module_progress_aggregator.recompute(db, user_id, module.id)

    progress = course_progress_aggregator.recompute(db, user_id, tree.course.id).progress

    assert progress.score_percentage == 80.0


def test_completion_facts_are_logged_once(db, tenant_id, user_id):
    tree = build_course(db, tenant_id, [[ItemKind.CONTENT]])
    item_progress_store.complete(db, user_id, tree.items[0][0].id)

    for _ in range(2):
        module_progress_aggregator.recompute(db, user_id, tree.modules[0].id)
        course_progress_aggregator.recompute(db, user_id, tree.course.id)

    types = [entry.activity_type for entry in db.query(UserActivityLog).all()]
    assert types.count(ActivityType.MODULE_COMPLETED) == 1
    assert types.count(ActivityType.COURSE_COMPLETED) == 1


def test_course_without_modules(db, tenant_id, user_id):
    tree = build_course(db, tenant_id, [])

    progress = course_progress_aggregator.recompute(db, user_id, tree.course.id).progress

    assert progress.status == CourseStatus.NOT_STARTED
    assert progress.progress_percentage == 0.0
    assert progress.last_accessed_at is not None
