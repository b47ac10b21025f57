"""Resource ownership resolver.

Walks Task -> Project -> Workspace -> owning client and turns what it finds into an
AccessContext for the policy engine. Read-only: nothing here mutates state or
decides allow/deny. A missing link resolves to ``MISSING`` so the engine fails closed.
"""
from __future__ import annotations
from typing import Any, Iterable, NamedTuple, Set
from sqlalchemy import select

from agency import get_db
from agency.errors import ResourceNotFound
from agency.models.finance import Payment, Revenue
from agency.models.identity import User
from agency.models.task import Task
from agency.models.workspace import Project, ProjectEmployee, Workspace
from agency.services.policy import AccessContext, MISSING


class ProjectContext(NamedTuple):
    project: Project
    workspace: Workspace


class TaskContext(NamedTuple):
    task: Task
    project: Project
    workspace: Workspace


class Resolved(NamedTuple):
    record: Any
    context: AccessContext


class OwnershipResolver:
    def __init__(self, session=None):
        self.session = session if session is not None else get_db()

    # --- ancestry ---

    def resolve_workspace(self, workspace_id: str) -> Workspace:
        workspace = self.session.get(Workspace, workspace_id) if workspace_id else None
        if workspace is None:
            raise ResourceNotFound('Workspace', workspace_id)
        return workspace

    def resolve_project_context(self, project_id: str) -> ProjectContext:
        project = self.session.get(Project, project_id) if project_id else None
        if project is None:
            raise ResourceNotFound('Project', project_id)
        workspace = self.session.get(Workspace, project.workspace_id)
        if workspace is None:
            raise ResourceNotFound('Workspace', project.workspace_id)
        return ProjectContext(project, workspace)

    def resolve_task_context(self, task_id: str) -> TaskContext:
        task = self.session.get(Task, task_id) if task_id else None
        if task is None:
            raise ResourceNotFound('Task', task_id)
        project, workspace = self.resolve_project_context(task.project_id)
        return TaskContext(task, project, workspace)

    # --- ownership facts ---

    @staticmethod
    def is_employee_assigned(project: Project, employee_id: str) -> bool:
        return employee_id in project.assigned_employee_ids

    @staticmethod
    def is_client_owner(workspace: Workspace, client_id: str) -> bool:
        return workspace.client_id == client_id

    def workspace_employee_ids(self, workspace: Workspace) -> Set[str]:
        """Employees assigned to at least one project of ``workspace``."""
        rows = self.session.execute(
            select(ProjectEmployee.employee_id)
            .join(Project, Project.id == ProjectEmployee.project_id)
            .where(Project.workspace_id == workspace.id)
        ).scalars()
        return set(rows)

    def is_project_employee_of_workspace(self, workspace: Workspace, employee_id: str) -> bool:
        return employee_id in self.workspace_employee_ids(workspace)

    # --- access contexts ---

    def workspace_facts(self, workspace: Workspace) -> AccessContext:
        return AccessContext(
            owner_client_id=workspace.client_id,
            workspace_employee_ids=frozenset(self.workspace_employee_ids(workspace)),
        )

    @staticmethod
    def project_facts(project: Project, workspace: Workspace) -> AccessContext:
        return AccessContext(
            owner_client_id=workspace.client_id,
            assigned_employee_ids=frozenset(project.assigned_employee_ids),
        )

    def workspace_access(self, workspace_id: str) -> Resolved:
        try:
            workspace = self.resolve_workspace(workspace_id)
        except ResourceNotFound:
            return Resolved(None, MISSING)
        return Resolved(workspace, self.workspace_facts(workspace))

    def project_access(self, project_id: str) -> Resolved:
        try:
            ctx = self.resolve_project_context(project_id)
        except ResourceNotFound:
            return Resolved(None, MISSING)
        return Resolved(ctx, self.project_facts(ctx.project, ctx.workspace))

    def task_access(self, task_id: str) -> Resolved:
        try:
            ctx = self.resolve_task_context(task_id)
        except ResourceNotFound:
            return Resolved(None, MISSING)
        return Resolved(ctx, self.project_facts(ctx.project, ctx.workspace))

    def payment_access(self, payment_id: str) -> Resolved:
        payment = self.session.get(Payment, payment_id) if payment_id else None
        if payment is None:
            return Resolved(None, MISSING)
        return Resolved(payment, AccessContext(payment_employee_id=payment.employee_id))

    def revenue_access(self, revenue_id: str) -> Resolved:
        revenue = self.session.get(Revenue, revenue_id) if revenue_id else None
        if revenue is None:
            return Resolved(None, MISSING)
        return Resolved(revenue, AccessContext())

    def identity_access(self, user_id: str) -> Resolved:
        user = self.session.get(User, user_id) if user_id else None
        if user is None:
            return Resolved(None, MISSING)
        return Resolved(user, AccessContext(target_identity_id=user.id))

    # --- validation lookups used by write endpoints ---

    def users_with_role(self, user_ids: Iterable[str], role: str) -> Set[str]:
        ids = {str(u) for u in user_ids if u}
        if not ids:
            return set()
        rows = self.session.execute(select(User.id).where(User.id.in_(ids), User.role == role)).scalars()
        return set(rows)


__all__ = ['OwnershipResolver', 'ProjectContext', 'TaskContext', 'Resolved']
