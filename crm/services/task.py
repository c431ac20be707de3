"""
Task service.
Project work items with priorities, dependencies and optional milestones.
"""

import logging
from datetime import date
from sqlalchemy import select

from crm.core.exceptions import NotFoundError, ValidationError
from crm.models.base import utcnow
from crm.models.milestone import Milestone, MilestoneStatus
from crm.models.project import Project
from crm.models.task import Task, TaskPriority, TaskStatus
from crm.models.user import User
from crm.schemas.task import TaskBase, TaskCompletion, TaskCreate, TaskResponse, TaskUpdate
from crm.services.base import BaseService
from crm.services.derived import task_view
from crm.services.project import ProjectService


logger = logging.getLogger(__name__)

STATUS_RANK = {status: rank for rank, status in enumerate(TaskStatus)}
PRIORITY_RANK = {priority: rank for rank, priority in enumerate(TaskPriority)}


def board_order(task: Task) -> tuple:
    """Workflow status first, then most urgent, then earliest due (undated last)."""
    return (
        STATUS_RANK[task.status],
        -PRIORITY_RANK[task.priority],
        task.due_date or date.max,
        task.created_at,
    )


class TaskService(BaseService):
    """Service for task operations."""
    
    async def _owned_project(self, owner: User, project_id: str) -> Project:
        return await ProjectService(self.db).get_or_404(project_id, owner.id)
    
    async def _project_tasks(self, project_id: str) -> list[Task]:
        result = await self.db.execute(
            select(Task)
            .where(Task.project_id == project_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
    
    async def _view(self, task: Task) -> TaskResponse:
        tasks = await self._project_tasks(task.project_id)
        return task_view(task, {t.id: t.status for t in tasks})
    
    async def get_or_404(self, project_id: str, task_id: str) -> Task:
        """
        Get a task of the given project or raise NotFoundError.
        The caller is responsible for checking the project's ownership first.
        """
        result = await self.db.execute(
            select(Task).where(
                Task.id == task_id,
                Task.project_id == project_id,
            )
        )
        task = result.scalar_one_or_none()
        if not task:
            raise NotFoundError("Task not found")
        return task
    
    async def list_for_project(
        self,
        owner: User,
        project_id: str,
        milestone_id: str | None = None,
    ) -> list[TaskResponse]:
        """
        List a project's tasks in board order, optionally for one milestone.
        
        Raises:
            NotFoundError: If the project is absent or not owned
        """
        project = await self._owned_project(owner, project_id)
        tasks = await self._project_tasks(project.id)
        statuses = {t.id: t.status for t in tasks}
        
        if milestone_id is not None:
            tasks = [t for t in tasks if t.milestone_id == milestone_id]
        return [task_view(t, statuses) for t in sorted(tasks, key=board_order)]
    
    async def _check_links(
        self,
        project_id: str,
        data: TaskBase,
        task_id: str | None = None,
    ) -> None:
        """The milestone and every dependency must belong to the same project."""
        if data.milestone_id is not None:
            milestone = await self.db.scalar(
                select(Milestone.id).where(
                    Milestone.id == data.milestone_id,
                    Milestone.project_id == project_id,
                )
            )
            if milestone is None:
                raise ValidationError.for_field(
                    "milestone_id", "Milestone not found for this project"
                )
        
        if not data.dependencies:
            return
        if task_id is not None and task_id in data.dependencies:
            raise ValidationError.for_field("dependencies", "A task cannot depend on itself")
        result = await self.db.execute(
            select(Task.id).where(
                Task.id.in_(data.dependencies),
                Task.project_id == project_id,
            )
        )
        if len(set(result.scalars().all())) != len(data.dependencies):
            raise ValidationError.for_field(
                "dependencies", "Dependencies must be tasks of this project"
            )
    
    async def create(
        self,
        owner: User,
        project_id: str,
        data: TaskCreate,
    ) -> TaskResponse:
        """
        Create a TODO task on one of the owner's projects.
        
        Raises:
            NotFoundError: If the project is absent or not owned
            ValidationError: If the milestone or a dependency is not the project's
        """
        project = await self._owned_project(owner, project_id)
        await self._check_links(project.id, data)
        
        task = Task(
            user_id=owner.id,
            project_id=project.id,
            milestone_id=data.milestone_id,
            title=data.title,
            description=data.description,
            priority=data.priority,
            estimated_hours=data.estimated_hours,
            due_date=data.due_date,
            dependencies=data.dependencies,
        )
        
        self.db.add(task)
        await self._flush("create task")
        
        logger.info(f"Task {task.id} created on project {project.id}")
        return await self._view(task)
    
    def _set_status(self, task: Task, status: TaskStatus) -> bool:
        """
        Apply a status and stamp completed_at.
        Returns True when the task has just become COMPLETED.
        """
        completing = status is TaskStatus.COMPLETED and task.status is not TaskStatus.COMPLETED
        if status is TaskStatus.COMPLETED:
            task.completed_at = task.completed_at or utcnow()
        else:
            task.completed_at = None
        task.status = status
        return completing
    
    async def _review_milestone(self, milestone_id: str | None) -> bool:
        """
        Send a milestone to REVIEW once every task under it is COMPLETED.
        Only PENDING and IN_PROGRESS milestones move. Pending task changes
        are flushed first so the count sees them.
        """
        if milestone_id is None:
            return False
        await self._flush("update task status")
        milestone = await self.db.get(Milestone, milestone_id)
        if milestone is None or milestone.status not in (MilestoneStatus.PENDING, MilestoneStatus.IN_PROGRESS):
            return False
        
        result = await self.db.execute(select(Task.status).where(Task.milestone_id == milestone_id))
        statuses = result.scalars().all()
        if not statuses or any(s is not TaskStatus.COMPLETED for s in statuses):
            return False
        
        milestone.status = MilestoneStatus.REVIEW
        logger.info(f"Milestone {milestone_id} ready for review")
        return True
    
    async def _unlocked_by(self, task: Task) -> list[TaskResponse]:
        """TODO tasks depending on ``task`` whose dependencies are now all COMPLETED."""
        tasks = await self._project_tasks(task.project_id)
        statuses = {t.id: t.status for t in tasks}
        unlocked = [
            t for t in tasks
            if t.status is TaskStatus.TODO
            and task.id in (t.dependencies or [])
            and all(statuses.get(d, TaskStatus.COMPLETED) is TaskStatus.COMPLETED for d in t.dependencies)
        ]
        return [task_view(t, statuses) for t in sorted(unlocked, key=board_order)]
    
    async def update(
        self,
        owner: User,
        project_id: str,
        task_id: str,
        data: TaskUpdate,
    ) -> TaskResponse:
        """
        Replace the mutable fields of a task.
        A missing status keeps the current one.
        """
        project = await self._owned_project(owner, project_id)
        task = await self.get_or_404(project.id, task_id)
        await self._check_links(project.id, data, task_id=task.id)
        
        task.title = data.title
        task.description = data.description
        task.priority = data.priority
        task.estimated_hours = data.estimated_hours
        task.due_date = data.due_date
        task.milestone_id = data.milestone_id
        task.dependencies = data.dependencies
        if data.status is not None and self._set_status(task, data.status):
            await self._review_milestone(task.milestone_id)
        
        await self._flush("update task")
        return await self._view(task)
    
    async def update_status(
        self,
        owner: User,
        project_id: str,
        task_id: str,
        status: TaskStatus,
    ) -> TaskResponse:
        """Move a task to another column of the board."""
        project = await self._owned_project(owner, project_id)
        task = await self.get_or_404(project.id, task_id)
        
        if self._set_status(task, status):
            await self._review_milestone(task.milestone_id)
        
        await self._flush("update task status")
        return await self._view(task)
    
    async def complete(
        self,
        owner: User,
        project_id: str,
        task_id: str,
    ) -> TaskCompletion:
        """
        Complete a task.
        
        Returns:
            The task, the tasks it unblocked and whether its milestone
            went to REVIEW as a result
        """
        project = await self._owned_project(owner, project_id)
        task = await self.get_or_404(project.id, task_id)
        
        self._set_status(task, TaskStatus.COMPLETED)
        in_review = await self._review_milestone(task.milestone_id)
        await self._flush("complete task")
        
        logger.info(f"Task {task_id} completed")
        return TaskCompletion(
            task=await self._view(task),
            unlocked=await self._unlocked_by(task),
            milestone_in_review=in_review,
        )
    
    async def delete(self, owner: User, project_id: str, task_id: str) -> None:
        """Delete a task and drop it from the dependencies of the others."""
        project = await self._owned_project(owner, project_id)
        task = await self.get_or_404(project.id, task_id)
        
        for other in await self._project_tasks(project.id):
            if task.id in (other.dependencies or []):
                other.dependencies = [d for d in other.dependencies if d != task.id]
        
        await self.db.delete(task)
        await self._flush("delete task")
        
        logger.info(f"Task {task_id} deleted")
