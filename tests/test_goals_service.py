import asyncio
import uuid

import pytest

from conftest import NOW, days
from fingoals.core.exceptions import CategoryNotFoundError, GoalNotFoundError, GoalValidationError
from fingoals.models.goal import GoalState, GoalType
from fingoals.schemas.goal import GoalCreate, GoalFilters, GoalUpdate
from fingoals.services.progress import GoalStatus


def goal_in(**fields):
    values = {"name": "Vacation", "type": GoalType.SAVINGS, "target_amount": 1000.0}
    values.update(fields)
    return GoalCreate(**values)


# ────────────────────────────────────────────────────────────────────────────────
# CREATE / UPDATE / REMOVE
# ────────────────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_create_persists_awards_and_notifies(goal_service, gamification_store, dispatcher, user_id):
    goal = await goal_service.create(goal_in(target_date=NOW + days(90)), user_id, now=NOW)

    assert goal.current_amount == 0
    assert goal.state == GoalState.ACTIVE.value
    assert [e.action for e in gamification_store.entries] == ["goal_created"]
    assert dispatcher.titles() == ["Badge Earned! 🏆", "Goal Created"]
    assert dispatcher.sent[-1]["action_url"] == f"/goals/{goal.id}"


@pytest.mark.asyncio
async def test_create_rejects_target_date_not_in_future(goal_service, goal_store, user_id):
    with pytest.raises(GoalValidationError, match="future"):
        await goal_service.create(goal_in(target_date=NOW), user_id, now=NOW)

    assert goal_store.goals == {}


@pytest.mark.asyncio
async def test_create_rejects_category_of_another_user(goal_service, categories, user_id):
    someone_elses = categories.add(uuid.uuid4())

    with pytest.raises(CategoryNotFoundError):
        await goal_service.create(goal_in(category_id=someone_elses), user_id, now=NOW)


@pytest.mark.asyncio
async def test_create_accepts_own_category(goal_service, categories, user_id):
    category_id = categories.add(user_id)

    goal = await goal_service.create(goal_in(category_id=category_id), user_id, now=NOW)

    assert goal.category_id == category_id


@pytest.mark.asyncio
async def test_naive_target_date_is_treated_as_utc(goal_service, user_id):
    naive = (NOW + days(10)).replace(tzinfo=None)

    goal = await goal_service.create(goal_in(target_date=naive), user_id, now=NOW)

    assert goal.target_date == NOW + days(10)


@pytest.mark.asyncio
async def test_find_one_hides_other_users_goals(goal_service, goal_store, user_id):
    goal = goal_store.add(uuid.uuid4())

    with pytest.raises(GoalNotFoundError):
        await goal_service.find_one(goal.id, user_id)
    with pytest.raises(GoalNotFoundError):
        await goal_service.update(goal.id, GoalUpdate(name="Mine now"), user_id, now=NOW)
    with pytest.raises(GoalNotFoundError):
        await goal_service.remove(goal.id, user_id)


@pytest.mark.asyncio
async def test_update_applies_only_given_fields(goal_service, goal_store, user_id):
    goal = goal_store.add(user_id, name="Car", description="Used car")

    updated = await goal_service.update(goal.id, GoalUpdate(target_amount=5000.0), user_id, now=NOW)

    assert updated.target_amount == 5000.0
    assert updated.name == "Car"
    assert updated.description == "Used car"


@pytest.mark.asyncio
async def test_update_validates_target_date(goal_service, goal_store, user_id):
    goal = goal_store.add(user_id)

    with pytest.raises(GoalValidationError):
        await goal_service.update(goal.id, GoalUpdate(target_date=NOW - days(1)), user_id, now=NOW)


@pytest.mark.asyncio
async def test_deactivating_marks_goal_abandoned(goal_service, goal_store, user_id):
    goal = goal_store.add(user_id)

    updated = await goal_service.update(goal.id, GoalUpdate(is_active=False), user_id, now=NOW)
    assert updated.state == GoalState.ABANDONED.value

    reactivated = await goal_service.update(goal.id, GoalUpdate(is_active=True), user_id, now=NOW)
    assert reactivated.is_active
    assert reactivated.state == GoalState.ACTIVE.value


@pytest.mark.asyncio
async def test_deactivating_completed_goal_keeps_it_completed(goal_service, goal_store, user_id):
    goal = goal_store.add(user_id, is_active=False, state=GoalState.COMPLETED.value)

    updated = await goal_service.update(goal.id, GoalUpdate(is_active=False), user_id, now=NOW)

    assert updated.state == GoalState.COMPLETED.value


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["name", "type", "target_amount"])
async def test_update_rejects_clearing_required_fields(goal_service, goal_store, user_id, field):
    goal = goal_store.add(user_id, name="Car")

    with pytest.raises(GoalValidationError, match="cannot be null"):
        await goal_service.update(goal.id, GoalUpdate(**{field: None}), user_id, now=NOW)

    assert goal_store.goals[goal.id].name == "Car"
    assert goal_store.goals[goal.id].target_amount == 1000.0
    assert goal_store.goals[goal.id].type == GoalType.SAVINGS.value


@pytest.mark.asyncio
async def test_completed_goal_cannot_be_reactivated(goal_service, goal_store, user_id):
    goal = goal_store.add(user_id, is_active=False, state=GoalState.COMPLETED.value)

    with pytest.raises(GoalValidationError, match="reactivated"):
        await goal_service.update(goal.id, GoalUpdate(is_active=True), user_id, now=NOW)

    assert goal_store.goals[goal.id].is_active is False
    assert goal_store.goals[goal.id].state == GoalState.COMPLETED.value


@pytest.mark.asyncio
async def test_remove_twice_raises_not_found(goal_service, goal_store, user_id):
    goal = goal_store.add(user_id)

    await goal_service.remove(goal.id, user_id)

    assert goal.id not in goal_store.goals
    with pytest.raises(GoalNotFoundError):
        await goal_service.remove(goal.id, user_id)


@pytest.mark.asyncio
async def test_find_all_filters(goal_service, goal_store, user_id):
    goal_store.add(user_id, name="Rainy day", description="Emergency FUND")
    goal_store.add(user_id, name="Stocks", type=GoalType.INVESTMENT.value)
    goal_store.add(user_id, name="Old", is_active=False, state=GoalState.ABANDONED.value)
    goal_store.add(uuid.uuid4(), name="Not mine")

    assert len(await goal_service.find_all(user_id)) == 3
    assert [g.name for g in await goal_service.find_all(user_id, GoalFilters(search="fund"))] == ["Rainy day"]
    assert [g.name for g in await goal_service.get_goals_by_type(user_id, GoalType.INVESTMENT)] == ["Stocks"]
    assert len(await goal_service.get_active_goals(user_id)) == 2


@pytest.mark.asyncio
async def test_completed_goals_exclude_abandoned(goal_service, goal_store, user_id):
    goal_store.add(user_id, name="Done", is_active=False, state=GoalState.COMPLETED.value)
    goal_store.add(user_id, name="Dropped", is_active=False, state=GoalState.ABANDONED.value)

    assert [g.name for g in await goal_service.get_completed_goals(user_id)] == ["Done"]


# ────────────────────────────────────────────────────────────────────────────────
# AMOUNT DERIVATION
# ────────────────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_savings_sums_transactions_since_creation(goal_service, goal_store, aggregation, user_id):
    goal = goal_store.add(user_id, created_at=NOW - days(10))
    aggregation.add_transaction(user_id, 999.0, NOW - days(11))
    aggregation.add_transaction(user_id, 300.0, NOW - days(5))
    aggregation.add_transaction(user_id, 150.0, NOW - days(1))

    assert await goal_service.compute_current_amount(goal, NOW) == 450.0


@pytest.mark.asyncio
async def test_savings_never_negative(goal_service, goal_store, aggregation, user_id):
    goal = goal_store.add(user_id, created_at=NOW - days(10))
    aggregation.add_transaction(user_id, -200.0, NOW - days(1), type="expense")

    assert await goal_service.compute_current_amount(goal, NOW) == 0.0


@pytest.mark.asyncio
async def test_savings_respects_category(goal_service, goal_store, aggregation, categories, user_id):
    category_id = categories.add(user_id)
    goal = goal_store.add(user_id, created_at=NOW - days(10), category_id=category_id)
    aggregation.add_transaction(user_id, 100.0, NOW - days(1), category_id=category_id)
    aggregation.add_transaction(user_id, 500.0, NOW - days(1))

    assert await goal_service.compute_current_amount(goal, NOW) == 100.0


@pytest.mark.asyncio
async def test_spending_limit_sums_expenses_this_month(goal_service, goal_store, aggregation, user_id):
    goal = goal_store.add(user_id, type=GoalType.SPENDING_LIMIT.value, created_at=NOW - days(90))
    aggregation.add_transaction(user_id, -120.0, NOW - days(20), type="expense")  # last month
    aggregation.add_transaction(user_id, -80.0, NOW - days(3), type="expense")
    aggregation.add_transaction(user_id, -45.5, NOW - days(1), type="expense")
    aggregation.add_transaction(user_id, 2000.0, NOW - days(1), type="income")

    assert await goal_service.compute_current_amount(goal, NOW) == 125.5


@pytest.mark.asyncio
async def test_investment_values_holdings(goal_service, goal_store, aggregation, user_id):
    goal = goal_store.add(user_id, type=GoalType.INVESTMENT.value)
    aggregation.add_investment(user_id, quantity=10, average_price=50.0, current_price=70.0)
    aggregation.add_investment(user_id, quantity=4, average_price=25.0)

    assert await goal_service.compute_current_amount(goal, NOW) == 800.0


@pytest.mark.asyncio
async def test_debt_payoff_counts_marked_expenses(goal_service, goal_store, aggregation, user_id):
    goal = goal_store.add(user_id, type=GoalType.DEBT_PAYOFF.value, created_at=NOW - days(30))
    aggregation.add_transaction(user_id, -300.0, NOW - days(10), type="expense", description="Credit card DEBT payment")
    aggregation.add_transaction(user_id, -60.0, NOW - days(5), type="expense", description="Groceries")
    aggregation.add_transaction(user_id, -200.0, NOW - days(40), type="expense", description="debt payment")

    assert await goal_service.compute_current_amount(goal, NOW) == 300.0


# ────────────────────────────────────────────────────────────────────────────────
# UPDATE PROGRESS
# ────────────────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_update_progress_persists_amount_and_crossing(goal_service, goal_store, aggregation, dispatcher, user_id):
    goal = goal_store.add(user_id, created_at=NOW - days(10))
    aggregation.add_transaction(user_id, 550.0, NOW - days(1))

    updated = await goal_service.update_progress(goal.id, user_id, now=NOW)

    assert updated.current_amount == 550.0
    assert updated.is_active
    # Only the highest breakpoint crossed is announced
    assert dispatcher.titles()[-1] == "Halfway Point!"
    assert "Quarter Way There!" not in dispatcher.titles()


@pytest.mark.asyncio
async def test_unchanged_progress_sends_nothing_new(goal_service, goal_store, aggregation, dispatcher, gamification_store, user_id):
    goal = goal_store.add(user_id, created_at=NOW - days(10))
    aggregation.add_transaction(user_id, 300.0, NOW - days(1))

    await goal_service.update_progress(goal.id, user_id, now=NOW)
    sent = len(dispatcher.sent)
    entries = len(gamification_store.entries)
    await goal_service.update_progress(goal.id, user_id, now=NOW)

    assert len(dispatcher.sent) == sent
    assert len(gamification_store.entries) == entries


@pytest.mark.asyncio
async def test_completion_happens_once(goal_service, goal_store, aggregation, dispatcher, gamification_store, user_id):
    goal = goal_store.add(user_id, created_at=NOW - days(10))
    aggregation.add_transaction(user_id, 1000.0, NOW - days(1))

    first = await goal_service.update_progress(goal.id, user_id, now=NOW)
    second = await goal_service.update_progress(goal.id, user_id, now=NOW)

    assert first.is_active is False
    assert first.state == GoalState.COMPLETED.value
    assert second.state == GoalState.COMPLETED.value
    assert dispatcher.titles().count("Goal Completed! 🎉") == 1
    assert "Target Reached!" not in dispatcher.titles()
    assert [e.action for e in gamification_store.entries].count("goal_completed") == 1
    assert sorted(e.milestone for e in gamification_store.entries if e.action == "milestone_reached") == [25, 50, 75, 100]


@pytest.mark.asyncio
async def test_completion_earns_achiever_badge(goal_service, goal_store, aggregation, gamification_store, user_id):
    goal = goal_store.add(user_id, created_at=NOW - days(10))
    aggregation.add_transaction(user_id, 1500.0, NOW - days(1))

    await goal_service.update_progress(goal.id, user_id, now=NOW)

    assert {b.badge_id for b in gamification_store.badges} == {"first_goal", "first_completion", "saver_bronze"}


@pytest.mark.asyncio
async def test_abandoned_goal_does_not_complete(goal_service, goal_store, aggregation, dispatcher, user_id):
    goal = goal_store.add(user_id, is_active=False, state=GoalState.ABANDONED.value, created_at=NOW - days(10))
    aggregation.add_transaction(user_id, 1200.0, NOW - days(1))

    updated = await goal_service.update_progress(goal.id, user_id, now=NOW)

    assert updated.current_amount == 1200.0
    assert updated.state == GoalState.ABANDONED.value
    assert "Goal Completed! 🎉" not in dispatcher.titles()
    assert "Target Reached!" in dispatcher.titles()


@pytest.mark.asyncio
async def test_update_progress_of_missing_goal(goal_service, user_id):
    with pytest.raises(GoalNotFoundError):
        await goal_service.update_progress(uuid.uuid4(), user_id, now=NOW)


@pytest.mark.asyncio
async def test_concurrent_updates_of_one_goal_complete_once(goal_service, goal_store, aggregation, dispatcher, user_id):
    goal = goal_store.add(user_id, created_at=NOW - days(10))
    aggregation.add_transaction(user_id, 1000.0, NOW - days(1))

    await asyncio.gather(*(goal_service.update_progress(goal.id, user_id, now=NOW) for _ in range(5)))

    assert dispatcher.titles().count("Goal Completed! 🎉") == 1


# ────────────────────────────────────────────────────────────────────────────────
# VIEWS
# ────────────────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_goal_progress_includes_badges(goal_service, goal_store, gamification, user_id):
    goal = goal_store.add(user_id, current_amount=500.0)
    await gamification.check_badges(user_id)

    progress = await goal_service.get_goal_progress(goal.id, user_id, now=NOW)

    assert progress.status == GoalStatus.ON_TRACK
    assert progress.badges == ["Goal Setter"]


@pytest.mark.asyncio
async def test_all_goals_progress_and_insights(goal_service, goal_store, user_id):
    goal_store.add(user_id, current_amount=500.0)
    goal_store.add(user_id, current_amount=1000.0, is_active=False, state=GoalState.COMPLETED.value)

    progress = await goal_service.get_all_goals_progress(user_id, now=NOW)
    insights = await goal_service.get_insights(user_id, now=NOW)

    assert len(progress) == 2
    assert insights["completed_goals"] == 1
    assert insights["average_progress"] == 75.0


@pytest.mark.asyncio
async def test_suggestions_for_owned_goal(goal_service, goal_store, user_id):
    goal = goal_store.add(user_id, current_amount=800.0, created_at=NOW - days(15), target_date=NOW + days(15))

    result = await goal_service.get_suggestions(goal.id, user_id, now=NOW)

    assert result["adjusted_target_amount"] == 1200.0


@pytest.mark.asyncio
async def test_completion_is_not_repeated_after_reactivation_attempt(
    goal_service, goal_store, aggregation, dispatcher, gamification_store, user_id
):
    goal = goal_store.add(user_id, created_at=NOW - days(10))
    aggregation.add_transaction(user_id, 1000.0, NOW - days(1))
    await goal_service.update_progress(goal.id, user_id, now=NOW)

    with pytest.raises(GoalValidationError):
        await goal_service.update(goal.id, GoalUpdate(is_active=True), user_id, now=NOW)
    await goal_service.update_progress(goal.id, user_id, now=NOW)

    assert dispatcher.titles().count("Goal Completed! 🎉") == 1
    assert [e.action for e in gamification_store.entries].count("goal_completed") == 1


# ────────────────────────────────────────────────────────────────────────────────
# DELIVERY FAILURES
# ────────────────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_failed_completion_notice_does_not_undo_completion(
    goal_service, goal_store, aggregation, dispatcher, gamification_store, user_id
):
    dispatcher.failing_titles.add("Goal Completed! 🎉")
    goal = goal_store.add(user_id, created_at=NOW - days(10))
    aggregation.add_transaction(user_id, 1000.0, NOW - days(1))

    updated = await goal_service.update_progress(goal.id, user_id, now=NOW)

    assert updated.state == GoalState.COMPLETED.value
    assert "goal_completed" in [e.action for e in gamification_store.entries]
    # Badge checks still run after the lost notice
    assert "first_completion" in {b.badge_id for b in gamification_store.badges}
    assert "Badge Earned! 🏆" in dispatcher.titles()


@pytest.mark.asyncio
async def test_create_succeeds_while_notifications_are_down(goal_service, goal_store, gamification_store, dispatcher, user_id):
    dispatcher.offline = True

    goal = await goal_service.create(goal_in(target_date=NOW + days(90)), user_id, now=NOW)

    assert goal.id in goal_store.goals
    assert [e.action for e in gamification_store.entries] == ["goal_created"]
    assert [b.badge_id for b in gamification_store.badges] == ["first_goal"]
    assert dispatcher.sent == []


# ────────────────────────────────────────────────────────────────────────────────
# EXPERIENCE THROUGH THE SERVICE
# ────────────────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_experience_includes_milestones_on_completion(goal_service, gamification, aggregation, user_id):
    savings = await goal_service.create(goal_in(name="Savings"), user_id, now=NOW)
    await goal_service.create(goal_in(name="Stocks", type=GoalType.INVESTMENT), user_id, now=NOW)
    await goal_service.create(goal_in(name="Bonds", type=GoalType.INVESTMENT), user_id, now=NOW)
    aggregation.add_transaction(user_id, 1000.0, NOW)

    await goal_service.update_progress(savings.id, user_id, now=NOW)
    experience = await gamification.get_user_experience(user_id)

    # 3 created (30) + 4 milestones (100) + 1 completed (50)
    assert experience == 180
    assert (await gamification.get_gamification_data(user_id))["level"] == 2
