"""
Permission Service - Centralized Authorization Logic

Decides whether an actor may perform an action on a project resource and,
when the answer is no, says why. ``check_permission`` is pure and total:
every combination of actor, resource and action yields a
``PermissionResult`` and nothing in this module raises.

Decision order:
1. Global administrators are always allowed.
2. Project creators get elevated rights on the project, its members,
   document approval and document access.
3. Anyone else must hold a project role.
4. Resource owners may update or delete what they own.
5. Documents add status-based visibility and per-step approver rules.
6. Everything else falls through to the role matrix.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from app.models.document import DocumentStatus
from app.models.project import ProjectRole
from app.models.user import GlobalRole


class ResourceType(str, Enum):
    project = "project"
    document = "document"
    member = "member"
    conversation = "conversation"


class Action(str, Enum):
    create = "create"
    read = "read"
    update = "update"
    delete = "delete"
    approve = "approve"
    manage = "manage"


@dataclass(frozen=True)
class ActorContext:
    """Identity of the caller as seen from inside one project."""

    user_id: int
    global_role: GlobalRole = GlobalRole.user
    project_role: Optional[ProjectRole] = None
    is_project_creator: bool = False

    @property
    def is_admin(self) -> bool:
        return self.global_role == GlobalRole.admin


@dataclass(frozen=True)
class PermissionResult:
    allowed: bool
    reason: Optional[str] = None
    required_roles: Tuple[str, ...] = ()
    required_permission: Optional[str] = None


ALLOWED = PermissionResult(allowed=True)

# Which project roles may approve documents at each workflow step.
WORKFLOW_STEP_APPROVERS: Mapping[int, Tuple[ProjectRole, ...]] = MappingProxyType({
    1: (ProjectRole.service_planning,),
    2: (ProjectRole.service_planning,),
    3: (ProjectRole.service_planning,),
    4: (ProjectRole.ux_planning,),
    5: (ProjectRole.developer,),
    6: (ProjectRole.service_planning,),
    7: (ProjectRole.service_planning,),
    8: (ProjectRole.service_planning,),
    9: (ProjectRole.content_planning, ProjectRole.service_planning),
})


class PermissionMessages:
    NOT_PROJECT_MEMBER = "You are not a member of this project"
    DOCUMENT_PRIVATE = "Private documents can only be accessed by their author"
    DOCUMENT_OFFICIAL = "Official documents can only be edited by their author or an administrator"
    ALREADY_OFFICIAL = "This document has already been approved"
    NOT_SUBMITTED = "Private documents cannot be approved; request approval first"
    UNKNOWN_STEP = "Unknown workflow step"
    UNDEFINED = "No permission is defined for this resource"


def approvers_for_step(workflow_step: int) -> Tuple[ProjectRole, ...]:
    """Roles allowed to approve documents at ``workflow_step`` (empty if the step is unknown)."""
    return WORKFLOW_STEP_APPROVERS.get(workflow_step, ())


def role_matrix_allows(role: ProjectRole, resource: ResourceType, action: Action) -> Optional[bool]:
    """
    Static role x resource x action matrix.

    Returns None when the combination is not defined, which callers treat
    as a denial. Adding a role, resource or action means adding a case
    here; ``tests/test_permission_service.py`` walks every combination and
    fails on any that falls through.
    """
    match role:
        case ProjectRole.content_planning | ProjectRole.service_planning | ProjectRole.ux_planning | ProjectRole.developer:
            match resource:
                case ResourceType.project | ResourceType.member:
                    match action:
                        case Action.read:
                            return True
                        case Action.create | Action.update | Action.delete | Action.approve | Action.manage:
                            return False
                case ResourceType.document | ResourceType.conversation:
                    match action:
                        case Action.create | Action.read:
                            return True
                        # own resources only, granted by the ownership rule
                        case Action.update | Action.delete:
                            return False
                        # narrowed by WORKFLOW_STEP_APPROVERS
                        case Action.approve:
                            return resource == ResourceType.document
                        case Action.manage:
                            return False
    return None


def _creator_allows(
    resource: ResourceType,
    action: Action,
    document_status: Optional[DocumentStatus],
) -> bool:
    if resource == ResourceType.project:
        return action != Action.delete
    if resource == ResourceType.member:
        return True
    if resource == ResourceType.document:
        if action in (Action.approve, Action.read):
            return True
        if action == Action.update:
            return document_status != DocumentStatus.official
    return False


def check_permission(
    actor: ActorContext,
    resource: ResourceType,
    action: Action,
    *,
    workflow_step: Optional[int] = None,
    is_owner: bool = False,
    resource_owner_id: Optional[int] = None,
    document_status: Optional[DocumentStatus] = None,
) -> PermissionResult:
    """
    Decide whether ``actor`` may perform ``action`` on ``resource``.

    Args:
        actor: Caller identity and project role
        resource: Resource type being accessed
        action: Requested action
        workflow_step: Workflow step of the document (approval checks)
        is_owner: Whether the caller owns the resource
        resource_owner_id: Owner id, compared with the caller when given
        document_status: Current status of the document, if any

    Returns:
        PermissionResult; ``reason`` is always set on denials
    """
    if actor.is_admin:
        return ALLOWED

    if actor.is_project_creator and _creator_allows(resource, action, document_status):
        return ALLOWED

    if actor.project_role is None:
        return PermissionResult(
            allowed=False,
            reason=PermissionMessages.NOT_PROJECT_MEMBER,
            required_permission="project_member",
        )

    owner = is_owner or (resource_owner_id is not None and resource_owner_id == actor.user_id)

    if resource == ResourceType.document:
        if (
            document_status == DocumentStatus.private
            and not owner
            and action in (Action.read, Action.update, Action.delete)
        ):
            return PermissionResult(allowed=False, reason=PermissionMessages.DOCUMENT_PRIVATE)

        if document_status == DocumentStatus.official and action == Action.update and not owner:
            return PermissionResult(allowed=False, reason=PermissionMessages.DOCUMENT_OFFICIAL)

    if owner and action in (Action.update, Action.delete):
        return ALLOWED

    if resource == ResourceType.document and action == Action.approve and workflow_step is not None:
        allowed_roles = approvers_for_step(workflow_step)
        if not allowed_roles:
            return PermissionResult(allowed=False, reason=f"{PermissionMessages.UNKNOWN_STEP}: {workflow_step}")
        if actor.project_role not in allowed_roles:
            role_names = tuple(role.value for role in allowed_roles)
            return PermissionResult(
                allowed=False,
                reason=f"Step {workflow_step} documents can only be approved by: {', '.join(role_names)}",
                required_roles=role_names,
            )

    granted = role_matrix_allows(actor.project_role, resource, action)
    if granted is None:
        return PermissionResult(allowed=False, reason=PermissionMessages.UNDEFINED)
    if not granted:
        return PermissionResult(
            allowed=False,
            reason=f"Role {actor.project_role.value} cannot {action.value} {resource.value} resources",
            required_permission=f"{resource.value}:{action.value}",
        )
    return ALLOWED


def can_approve_document(
    actor: ActorContext,
    workflow_step: int,
    document_status: DocumentStatus,
) -> PermissionResult:
    """Approval check that also accounts for the document status."""
    if document_status == DocumentStatus.official:
        return PermissionResult(allowed=False, reason=PermissionMessages.ALREADY_OFFICIAL)
    if document_status == DocumentStatus.private:
        return PermissionResult(allowed=False, reason=PermissionMessages.NOT_SUBMITTED)
    return check_permission(
        actor,
        ResourceType.document,
        Action.approve,
        workflow_step=workflow_step,
        document_status=document_status,
    )


def can_edit_document(
    actor: ActorContext,
    is_owner: bool,
    document_status: DocumentStatus,
) -> PermissionResult:
    return check_permission(
        actor,
        ResourceType.document,
        Action.update,
        is_owner=is_owner,
        document_status=document_status,
    )


def get_user_project_permissions(
    global_role: GlobalRole,
    project_role: Optional[ProjectRole] = None,
    is_project_creator: bool = False,
) -> Dict[str, bool]:
    """Effective capabilities of a user inside one project."""
    actor = ActorContext(
        user_id=0,
        global_role=global_role,
        project_role=project_role,
        is_project_creator=is_project_creator,
    )
    is_admin = global_role == GlobalRole.admin

    def allowed(resource: ResourceType, action: Action) -> bool:
        return check_permission(actor, resource, action).allowed

    return {
        "can_create_project": is_admin,
        "can_read_project": is_admin or project_role is not None or is_project_creator,
        "can_update_project": allowed(ResourceType.project, Action.update),
        "can_delete_project": allowed(ResourceType.project, Action.delete),
        "can_manage_members": is_admin or is_project_creator,
        "can_view_members": allowed(ResourceType.member, Action.read),
        "can_create_document": allowed(ResourceType.document, Action.create),
        "can_read_documents": allowed(ResourceType.document, Action.read),
        "can_approve_documents": allowed(ResourceType.document, Action.approve),
        "can_create_conversation": allowed(ResourceType.conversation, Action.create),
        "can_read_conversations": allowed(ResourceType.conversation, Action.read),
    }
