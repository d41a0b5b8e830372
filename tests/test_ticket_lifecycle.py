from datetime import timedelta
from uuid import uuid4

import pytest

from helpdesk.core.cache import RedisCache, _InMemoryCache
from helpdesk.core.exceptions import (
    ForbiddenError,
    InvalidOperationError,
    InvalidTransitionError,
    NotFoundError,
)
from helpdesk.models import TicketHistoryAction, TicketPriority, TicketStatus, UserRole
from helpdesk.services.ticket_lifecycle import TicketLifecycleService
from helpdesk.services.transitions import ALLOWED_TRANSITIONS
from helpdesk.services.user_directory import UserDirectory

from conftest import T0, make_user

S = TicketStatus


def _snapshot(store, ticket_id):
    ticket = store.get(ticket_id)
    return ticket.model_dump()


def _ticket_in(status, service, customer, agent):
    """Walk a fresh ticket through legal transitions until it reaches ``status``."""
    ticket = service.create_ticket("VPN down", "Cannot connect", TicketPriority.MEDIUM, customer.id)
    if status == S.OPEN:
        return ticket
    if status == S.CLOSED:
        return service.update_status(ticket.id, S.CLOSED, customer.id)
    ticket = service.assign_ticket(ticket.id, agent.id, agent.id)
    if status == S.IN_PROGRESS:
        return ticket
    return service.update_status(ticket.id, S.RESOLVED, agent.id)


# === create ===

def test_create_ticket_starts_open_unassigned(service, customer):
    ticket = service.create_ticket("Login broken", "500 on /login", TicketPriority.CRITICAL, customer.id)

    assert ticket.status == S.OPEN
    assert ticket.assigned_to is None
    assert ticket.created_by == customer.id
    assert ticket.sla_deadline == T0 + timedelta(hours=4)
    assert ticket.created_at == T0
    assert ticket.resolved_at is None
    assert ticket.version == 1


def test_create_ticket_with_unknown_creator_fails(service):
    with pytest.raises(NotFoundError):
        service.create_ticket("x", "y", TicketPriority.LOW, uuid4())


def test_create_ticket_records_history(service, store, open_ticket):
    history = store.history(open_ticket.id)
    assert [entry.action for entry in history] == [TicketHistoryAction.CREATED]


# === SLA recalculation ===

def test_priority_change_restarts_sla_window_from_now(service, customer, clock):
    ticket = service.create_ticket("Outage", "All down", TicketPriority.CRITICAL, customer.id)
    assert ticket.sla_deadline == T0 + timedelta(hours=4)

    t1 = clock.advance(hours=2)
    ticket = service.update_priority(ticket.id, TicketPriority.LOW, customer.id)

    assert ticket.priority == TicketPriority.LOW
    assert ticket.sla_deadline == t1 + timedelta(days=7)
    assert ticket.sla_deadline != T0 + timedelta(days=7)


def test_status_changes_do_not_touch_sla_deadline(service, open_ticket, agent, clock):
    clock.advance(hours=1)
    ticket = service.assign_ticket(open_ticket.id, agent.id, agent.id)
    ticket = service.update_status(ticket.id, S.RESOLVED, agent.id)
    assert ticket.sla_deadline == open_ticket.sla_deadline


# === status workflow ===

@pytest.mark.parametrize("role", [UserRole.AGENT, UserRole.ADMIN])
def test_staff_resolves_ticket_and_stamps_resolved_at(service, session, open_ticket, agent, clock, role):
    actor = make_user(session, role)
    service.assign_ticket(open_ticket.id, agent.id, agent.id)
    clock.advance(hours=3)

    ticket = service.update_status(open_ticket.id, S.RESOLVED, actor.id)

    assert ticket.status == S.RESOLVED
    assert ticket.resolved_at == clock.now
    assert ticket.resolved_at >= ticket.created_at


def test_customer_cannot_resolve_own_ticket(service, store, open_ticket, customer, agent):
    service.assign_ticket(open_ticket.id, agent.id, agent.id)
    before = _snapshot(store, open_ticket.id)

    with pytest.raises(ForbiddenError, match="Only agents can resolve"):
        service.update_status(open_ticket.id, S.RESOLVED, customer.id)

    assert _snapshot(store, open_ticket.id) == before


@pytest.mark.parametrize("role", list(UserRole))
def test_in_progress_requires_assignee_for_every_role(service, session, store, open_ticket, role):
    actor = make_user(session, role)
    before = _snapshot(store, open_ticket.id)

    with pytest.raises(InvalidOperationError):
        service.update_status(open_ticket.id, S.IN_PROGRESS, actor.id)

    assert _snapshot(store, open_ticket.id) == before


def test_reopened_resolved_ticket_without_assignee_cannot_restart(service, customer, agent):
    ticket = _ticket_in(S.RESOLVED, service, customer, agent)
    service.unassign_ticket(ticket.id, agent.id)

    with pytest.raises(InvalidOperationError):
        service.update_status(ticket.id, S.IN_PROGRESS, agent.id)


def test_closed_ticket_cannot_be_reopened(service, store, customer, agent):
    ticket = _ticket_in(S.CLOSED, service, customer, agent)

    with pytest.raises(InvalidTransitionError) as excinfo:
        service.update_status(ticket.id, S.OPEN, agent.id)

    assert excinfo.value.current == S.CLOSED
    assert excinfo.value.requested == S.OPEN
    assert store.get(ticket.id).status == S.CLOSED


@pytest.mark.parametrize(
    "current, requested",
    [
        (current, requested)
        for current in TicketStatus
        for requested in TicketStatus
        if requested not in ALLOWED_TRANSITIONS[current]
    ],
)
def test_illegal_transitions_are_rejected_and_leave_ticket_unchanged(
    service, store, customer, agent, admin, current, requested
):
    ticket = _ticket_in(current, service, customer, agent)
    before = _snapshot(store, ticket.id)

    with pytest.raises(InvalidTransitionError):
        service.update_status(ticket.id, requested, admin.id)

    assert _snapshot(store, ticket.id) == before


def test_full_workflow_round_trip(service, customer, agent):
    ticket = _ticket_in(S.IN_PROGRESS, service, customer, agent)
    ticket = service.update_status(ticket.id, S.OPEN, agent.id)
    assert ticket.assigned_to == agent.id

    ticket = service.update_status(ticket.id, S.IN_PROGRESS, agent.id)
    ticket = service.update_status(ticket.id, S.RESOLVED, agent.id)
    ticket = service.update_status(ticket.id, S.IN_PROGRESS, agent.id)
    ticket = service.update_status(ticket.id, S.RESOLVED, agent.id)
    ticket = service.update_status(ticket.id, S.CLOSED, customer.id)

    assert ticket.status == S.CLOSED
    assert ticket.closed_at is not None
    assert ticket.resolved_at is not None


def test_update_status_unknown_actor(service, open_ticket):
    with pytest.raises(NotFoundError):
        service.update_status(open_ticket.id, S.CLOSED, uuid4())


def test_update_status_unknown_ticket(service, agent):
    with pytest.raises(NotFoundError):
        service.update_status(uuid4(), S.CLOSED, agent.id)


# === assignment ===

def test_assigning_open_ticket_moves_it_to_in_progress(service, store, open_ticket, agent):
    ticket = service.assign_ticket(open_ticket.id, agent.id, agent.id)

    assert ticket.status == S.IN_PROGRESS
    assert ticket.assigned_to == agent.id
    actions = [entry.action for entry in store.history(ticket.id)]
    assert TicketHistoryAction.ASSIGNED in actions
    assert TicketHistoryAction.STATUS_CHANGED in actions


def test_admin_can_be_assignee(service, open_ticket, admin, agent):
    ticket = service.assign_ticket(open_ticket.id, admin.id, agent.id)
    assert ticket.assigned_to == admin.id


def test_assigning_a_customer_is_invalid(service, store, open_ticket, other_customer, admin):
    before = _snapshot(store, open_ticket.id)

    with pytest.raises(InvalidOperationError, match="not an agent"):
        service.assign_ticket(open_ticket.id, other_customer.id, admin.id)

    assert _snapshot(store, open_ticket.id) == before


def test_customer_cannot_assign(service, store, open_ticket, customer, agent):
    before = _snapshot(store, open_ticket.id)

    with pytest.raises(ForbiddenError):
        service.assign_ticket(open_ticket.id, agent.id, customer.id)

    assert _snapshot(store, open_ticket.id) == before


def test_assign_to_unknown_user(service, open_ticket, agent):
    with pytest.raises(NotFoundError):
        service.assign_ticket(open_ticket.id, uuid4(), agent.id)


@pytest.fixture
def cached_service(session, store, clock):
    directory = UserDirectory(session, cache=RedisCache(default_ttl=60, client=_InMemoryCache()))
    return TicketLifecycleService(store, directory, clock=clock)


def test_demoted_agent_cannot_be_assigned_while_identity_is_cached(
    session, cached_service, store, open_ticket, agent, admin
):
    cached_service.directory.authenticate(agent.id)
    agent.role = UserRole.CUSTOMER
    session.add(agent)
    session.commit()
    before = _snapshot(store, open_ticket.id)

    with pytest.raises(InvalidOperationError, match="not an agent"):
        cached_service.assign_ticket(open_ticket.id, agent.id, admin.id)

    assert _snapshot(store, open_ticket.id) == before


def test_deleted_user_cannot_act_while_identity_is_cached(
    session, cached_service, open_ticket, customer, clock
):
    cached_service.directory.authenticate(customer.id)
    customer.deleted_at = clock()
    session.add(customer)
    session.commit()

    with pytest.raises(NotFoundError):
        cached_service.create_ticket("again", "x", TicketPriority.LOW, customer.id)
    with pytest.raises(NotFoundError):
        cached_service.update_priority(open_ticket.id, TicketPriority.LOW, customer.id)



def test_reassigning_in_progress_ticket_keeps_status(service, store, open_ticket, agent, other_agent, clock):
    service.assign_ticket(open_ticket.id, agent.id, agent.id)
    clock.advance(minutes=5)
    ticket = service.assign_ticket(open_ticket.id, other_agent.id, agent.id)

    assert ticket.status == S.IN_PROGRESS
    assert ticket.assigned_to == other_agent.id
    assert store.history(ticket.id)[-1].action == TicketHistoryAction.REASSIGNED


def test_unassigning_in_progress_ticket_reverts_to_open(service, open_ticket, agent):
    service.assign_ticket(open_ticket.id, agent.id, agent.id)

    ticket = service.unassign_ticket(open_ticket.id, agent.id)

    assert ticket.status == S.OPEN
    assert ticket.assigned_to is None


def test_unassigning_resolved_ticket_keeps_status(service, customer, agent):
    ticket = _ticket_in(S.RESOLVED, service, customer, agent)
    ticket = service.unassign_ticket(ticket.id, agent.id)
    assert ticket.status == S.RESOLVED
    assert ticket.assigned_to is None


def test_unassigning_unassigned_ticket_is_invalid(service, open_ticket, agent):
    with pytest.raises(InvalidOperationError, match="not assigned to anyone"):
        service.unassign_ticket(open_ticket.id, agent.id)


def test_customer_cannot_unassign(service, store, open_ticket, customer, agent):
    service.assign_ticket(open_ticket.id, agent.id, agent.id)
    before = _snapshot(store, open_ticket.id)

    with pytest.raises(ForbiddenError):
        service.unassign_ticket(open_ticket.id, customer.id)

    assert _snapshot(store, open_ticket.id) == before


# === priority and details ===

def test_customer_changes_priority_of_own_ticket(service, open_ticket, customer):
    ticket = service.update_priority(open_ticket.id, TicketPriority.CRITICAL, customer.id)
    assert ticket.priority == TicketPriority.CRITICAL


def test_customer_cannot_change_priority_of_others_ticket(service, store, open_ticket, other_customer):
    before = _snapshot(store, open_ticket.id)

    with pytest.raises(ForbiddenError):
        service.update_priority(open_ticket.id, TicketPriority.LOW, other_customer.id)

    assert _snapshot(store, open_ticket.id) == before


def test_agent_cannot_change_priority_of_ticket_assigned_elsewhere(service, open_ticket, agent, other_agent):
    service.assign_ticket(open_ticket.id, other_agent.id, other_agent.id)

    with pytest.raises(ForbiddenError):
        service.update_priority(open_ticket.id, TicketPriority.LOW, agent.id)


def test_agent_changes_priority_of_unassigned_ticket(service, open_ticket, agent):
    ticket = service.update_priority(open_ticket.id, TicketPriority.LOW, agent.id)
    assert ticket.priority == TicketPriority.LOW


def test_update_details(service, store, open_ticket, customer, clock):
    clock.advance(minutes=5)
    ticket = service.update_ticket_details(open_ticket.id, customer.id, title="Printer still on fire")

    assert ticket.title == "Printer still on fire"
    assert ticket.description == open_ticket.description
    assert store.history(ticket.id)[-1].action == TicketHistoryAction.TITLE_CHANGED


def test_update_details_without_changes_does_not_write(service, open_ticket, customer):
    ticket = service.update_ticket_details(open_ticket.id, customer.id, title=open_ticket.title)
    assert ticket.version == open_ticket.version


def test_update_details_forbidden_for_other_customer(service, open_ticket, other_customer):
    with pytest.raises(ForbiddenError):
        service.update_ticket_details(open_ticket.id, other_customer.id, description="mine now")


# === soft delete ===

def test_admin_soft_deletes_ticket(service, store, open_ticket, admin, agent):
    service.delete_ticket(open_ticket.id, admin.id)

    with pytest.raises(NotFoundError):
        store.get(open_ticket.id)
    with pytest.raises(NotFoundError):
        service.update_status(open_ticket.id, S.CLOSED, admin.id)
    with pytest.raises(NotFoundError):
        service.assign_ticket(open_ticket.id, agent.id, admin.id)
    with pytest.raises(NotFoundError):
        service.delete_ticket(open_ticket.id, admin.id)


@pytest.mark.parametrize("role", [UserRole.CUSTOMER, UserRole.AGENT])
def test_only_admin_deletes(service, session, open_ticket, role):
    actor = make_user(session, role)
    with pytest.raises(ForbiddenError):
        service.delete_ticket(open_ticket.id, actor.id)


# === reads ===

def test_customer_sees_only_own_tickets(service, customer, other_customer, agent):
    mine = service.create_ticket("a", "a", TicketPriority.LOW, customer.id)
    theirs = service.create_ticket("b", "b", TicketPriority.LOW, other_customer.id)

    assert [t.id for t in service.list_tickets(customer.id)] == [mine.id]
    assert {t.id for t in service.list_tickets(agent.id)} == {mine.id, theirs.id}
    with pytest.raises(ForbiddenError):
        service.get_ticket(theirs.id, customer.id)
    assert service.get_ticket(theirs.id, agent.id).id == theirs.id


def test_list_tickets_by_status(service, customer, agent):
    open_one = service.create_ticket("a", "a", TicketPriority.LOW, customer.id)
    working = service.create_ticket("b", "b", TicketPriority.LOW, customer.id)
    service.assign_ticket(working.id, agent.id, agent.id)

    assert [t.id for t in service.list_tickets(agent.id, status=S.OPEN)] == [open_one.id]
    assert [t.id for t in service.list_tickets(agent.id, status=S.IN_PROGRESS)] == [working.id]


def test_assigned_and_my_tickets(service, open_ticket, customer, agent):
    service.assign_ticket(open_ticket.id, agent.id, agent.id)

    assert [t.id for t in service.list_assigned_tickets(agent.id)] == [open_ticket.id]
    assert [t.id for t in service.list_my_tickets(customer.id)] == [open_ticket.id]
    with pytest.raises(ForbiddenError):
        service.list_assigned_tickets(customer.id)


def test_history_is_staff_only(service, open_ticket, customer, agent):
    assert service.ticket_history(open_ticket.id, agent.id)
    with pytest.raises(ForbiddenError):
        service.ticket_history(open_ticket.id, customer.id)


# === SLA breach listing ===

def test_list_sla_breached_orders_by_urgency_then_deadline(service, customer, agent, admin, clock):
    low = service.create_ticket("low", "x", TicketPriority.LOW, customer.id)
    clock.advance(minutes=10)
    critical_older = service.create_ticket("crit1", "x", TicketPriority.CRITICAL, customer.id)
    clock.advance(minutes=10)
    medium = service.create_ticket("med", "x", TicketPriority.MEDIUM, customer.id)
    critical_newer = service.create_ticket("crit2", "x", TicketPriority.CRITICAL, customer.id)

    resolved = _ticket_in(S.RESOLVED, service, customer, agent)
    closed = _ticket_in(S.CLOSED, service, customer, agent)
    deleted = service.create_ticket("gone", "x", TicketPriority.HIGH, customer.id)
    service.delete_ticket(deleted.id, admin.id)

    clock.advance(days=8)
    breached = service.list_sla_breached()

    assert [t.id for t in breached] == [critical_older.id, critical_newer.id, medium.id, low.id]
    assert resolved.id not in {t.id for t in breached}
    assert closed.id not in {t.id for t in breached}
    assert all(service.is_sla_breached(t) for t in breached)


def test_nothing_breached_before_deadline(service, open_ticket, clock):
    clock.advance(hours=23)
    assert service.list_sla_breached() == []
    assert not service.is_sla_breached(open_ticket)
    clock.advance(hours=2)
    assert [t.id for t in service.list_sla_breached()] == [open_ticket.id]
