import pytest

from app.core.exceptions import InvalidInput, NotFound, Unauthorized
from app.models.goal import GoalState
from app.models.user import UserRole
from app.services.cycles import CycleService
from app.services.reporting import ReportFilters, ReportingProjector, completion_percentage


@pytest.fixture
def projector(db_session):
    return ReportingProjector(db_session)


@pytest.mark.parametrize("completed,total,expected", [
    (0, 0, 0),
    (0, 3, 0),
    (1, 3, 33),
    (2, 3, 67),
    (1, 2, 50),
    (1, 8, 13),
    (3, 3, 100),
])
def test_completion_percentage(completed, total, expected):
    assert completion_percentage(completed, total) == expected


def test_my_assigned_goals_excludes_drafts_and_approved(workflow, actor, projector, manager, employee, cycle):
    workflow.create_draft(actor(manager), cycle.id, employee.id, "Still a draft")
    active = workflow.assign_new(actor(manager), cycle.id, employee.id, "In flight")
    done = workflow.assign_new(actor(manager), cycle.id, employee.id, "Finished")
    workflow.accept(actor(employee), done.id)
    workflow.submit(actor(employee), done.id, progress=100)
    workflow.approve(actor(manager), done.id, rating=4)

    goals = projector.my_assigned_goals(employee.id)
    assert [g.id for g in goals] == [active.id]


def test_my_assigned_goals_filters_by_cycle(workflow, actor, projector, db_session, hr_user, manager, employee, cycle):
    from datetime import date
    other = CycleService(db_session).create(actor(hr_user), "Q4 2026", date(2026, 10, 1), date(2026, 12, 31))
    workflow.assign_new(actor(manager), cycle.id, employee.id, "Q3 goal")
    q4 = workflow.assign_new(actor(manager), other.id, employee.id, "Q4 goal")

    assert [g.id for g in projector.my_assigned_goals(employee.id, cycle_id=other.id)] == [q4.id]
    assert len(projector.my_assigned_goals(employee.id)) == 2


def test_pending_approvals_for_manager_only_show_team(
    workflow, actor, projector, manager, employee, other_manager, other_employee, cycle
):
    mine = workflow.assign_new(actor(manager), cycle.id, employee.id, "Team goal")
    theirs = workflow.assign_new(actor(other_manager), cycle.id, other_employee.id, "Other team")
    for goal, owner in [(mine, employee), (theirs, other_employee)]:
        workflow.accept(actor(owner), goal.id)
        workflow.submit(actor(owner), goal.id, progress=100)

    pending = projector.pending_approvals(UserRole.MANAGER, manager.id)
    assert [g.id for g in pending] == [mine.id]
    assert all(g.state == GoalState.EMPLOYEE_SUBMITTED for g in pending)


def test_pending_approvals_for_hr(workflow, actor, projector, hr_user, manager, employee, cycle):
    goal = workflow.assign_new(actor(hr_user), cycle.id, manager.id, "Department OKR")
    workflow.accept(actor(manager), goal.id)
    workflow.submit(actor(manager), goal.id, progress=100)

    team_goal = workflow.assign_new(actor(manager), cycle.id, employee.id, "Not for HR")
    workflow.accept(actor(employee), team_goal.id)
    workflow.submit(actor(employee), team_goal.id, progress=100)

    pending = projector.pending_approvals(UserRole.HR, hr_user.id)
    assert [g.id for g in pending] == [goal.id]


def test_pending_approvals_disappear_once_approved(workflow, actor, projector, manager, employee, cycle):
    goal = workflow.assign_new(actor(manager), cycle.id, employee.id, "Approve me")
    workflow.accept(actor(employee), goal.id)
    workflow.submit(actor(employee), goal.id, progress=100)
    workflow.approve(actor(manager), goal.id, rating=5)

    assert projector.pending_approvals(UserRole.MANAGER, manager.id) == []


def test_employees_have_no_approvals(projector, employee):
    with pytest.raises(Unauthorized):
        projector.pending_approvals(UserRole.EMPLOYEE, employee.id)


def _approved_goals(workflow, actor, manager, employee, cycle, ratings, open_goals=0):
    for i, rating in enumerate(ratings):
        goal = workflow.assign_new(actor(manager), cycle.id, employee.id, f"Goal {i}")
        workflow.accept(actor(employee), goal.id)
        workflow.submit(actor(employee), goal.id, progress=100)
        workflow.approve(actor(manager), goal.id, rating=rating)
    for i in range(open_goals):
        workflow.assign_new(actor(manager), cycle.id, employee.id, f"Open {i}")


def test_performance_report_rollup(workflow, actor, projector, manager, employee, cycle):
    _approved_goals(workflow, actor, manager, employee, cycle, [5, 3], open_goals=1)

    rows = projector.performance_report(cycle.id)
    assert len(rows) == 1
    row = rows[0]
    assert row.employee_id == employee.id
    assert row.employee_name == "Emery Employee"
    assert row.department_name == "Engineering"
    assert row.average_rating == 4.0
    assert row.goals_completed == 2
    assert row.goals_total == 3
    assert row.completion_percentage == 67
    assert row.status == "pending"


def test_performance_report_scoped_to_viewer(
    workflow, actor, projector, hr_user, manager, employee, other_manager, other_employee, cycle
):
    _approved_goals(workflow, actor, manager, employee, cycle, [4])
    _approved_goals(workflow, actor, other_manager, other_employee, cycle, [2])

    everyone = {r.employee_id for r in projector.performance_report(cycle.id, viewer=actor(hr_user))}
    assert everyone == {employee.id, other_employee.id}

    team = {r.employee_id for r in projector.performance_report(cycle.id, viewer=actor(manager))}
    assert team == {employee.id}

    own = {r.employee_id for r in projector.performance_report(cycle.id, viewer=actor(other_employee))}
    assert own == {other_employee.id}


def test_performance_report_filters(workflow, actor, projector, db_session, hr_user, manager, employee, cycle):
    _approved_goals(workflow, actor, manager, employee, cycle, [3])

    assert projector.performance_report(cycle.id, ReportFilters(employee_id=employee.id))
    assert projector.performance_report(cycle.id, ReportFilters(department_id=999)) == []
    assert projector.performance_report(cycle.id, ReportFilters(status="final")) == []

    CycleService(db_session).close(actor(hr_user), cycle.id)
    rows = projector.performance_report(cycle.id, ReportFilters(status="FINAL"))
    assert [r.status for r in rows] == ["final"]


def test_performance_report_rejects_unknown_status(projector, cycle):
    with pytest.raises(InvalidInput):
        projector.performance_report(cycle.id, ReportFilters(status="archived"))


def test_reviews_given_and_received(workflow, actor, projector, hr_user, manager, employee, cycle):
    _approved_goals(workflow, actor, manager, employee, cycle, [4, 2])

    given = projector.reviews_given(manager.id)
    assert len(given) == 2
    assert {r.employee_id for r in given} == {employee.id}

    assert len(projector.my_reviews(actor(employee))) == 2
    assert len(projector.my_reviews(actor(manager))) == 2
    assert len(projector.my_reviews(actor(hr_user))) == 2
    assert projector.reviews_given(hr_user.id) == []


def test_team_goals_lists_every_state_for_a_direct_report(workflow, actor, projector, manager, employee, cycle):
    draft = workflow.create_draft(actor(manager), cycle.id, employee.id, "Drafted")
    assigned = workflow.assign_new(actor(manager), cycle.id, employee.id, "Assigned")
    _approved_goals(workflow, actor, manager, employee, cycle, [4])

    goals = projector.team_goals(actor(manager), employee.id, cycle.id)
    assert len(goals) == 3
    assert {draft.id, assigned.id} <= {g.id for g in goals}
    assert {g.state for g in goals} == {GoalState.DRAFT, GoalState.MANAGER_ASSIGNED, GoalState.HR_APPROVED}


def test_team_goals_scoping(workflow, actor, projector, hr_user, manager, employee, other_manager, cycle):
    workflow.assign_new(actor(manager), cycle.id, employee.id, "Visible to HR")

    assert len(projector.team_goals(actor(hr_user), employee.id)) == 1
    with pytest.raises(Unauthorized):
        projector.team_goals(actor(other_manager), employee.id)
    with pytest.raises(Unauthorized):
        projector.team_goals(actor(employee), employee.id)
    with pytest.raises(NotFound):
        projector.team_goals(actor(hr_user), 9999)


def test_team_goals_filters_by_cycle(workflow, actor, projector, db_session, hr_user, manager, employee, cycle):
    from datetime import date
    other = CycleService(db_session).create(actor(hr_user), "Q4 2026", date(2026, 10, 1), date(2026, 12, 31))
    workflow.assign_new(actor(manager), cycle.id, employee.id, "Q3")
    q4 = workflow.assign_new(actor(manager), other.id, employee.id, "Q4")

    assert [g.id for g in projector.team_goals(actor(manager), employee.id, other.id)] == [q4.id]


def test_performance_report_lists_goal_titles(workflow, actor, projector, manager, employee, cycle):
    workflow.create_draft(actor(manager), cycle.id, employee.id, "Hidden draft")
    _approved_goals(workflow, actor, manager, employee, cycle, [5, 3], open_goals=1)

    row = projector.performance_report(cycle.id)[0]
    assert row.goal_titles == "Goal 0, Goal 1, Open 0"
