"""
Permission catalog - every recognized permission id with its metadata.

Ids follow a dotted convention (``users.edit.role``) for readability only.
Sub-permissions are registered as catalog entries of their own; holding a
parent never implies holding a child, nor the reverse.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict


class PermissionCategory(str, Enum):
    """Business domains a permission belongs to (informational only)."""
    USER_MANAGEMENT = "user_management"
    ASSESSMENT_MANAGEMENT = "assessment_management"
    ANALYTICS = "analytics"
    ORGANIZATION = "organization"
    SYSTEM = "system"
    COLLABORATION = "collaboration"
    DEVELOPMENT = "development"
    REPORTING = "reporting"


class ConditionType(str, Enum):
    """Families of runtime conditions."""
    TIME = "time"
    LOCATION = "location"
    RESOURCE = "resource"
    CONTEXT = "context"


class PermissionCondition(BaseModel):
    """A predicate attached to a permission or a grant."""

    model_config = ConfigDict(frozen=True)

    type: ConditionType
    rule: str
    value: Any = None


class SubPermission(BaseModel):
    """Child descriptor shown under a parent permission."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    parent: str


class Permission(BaseModel):
    """A named capability."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    category: PermissionCategory
    parent: Optional[str] = None
    sub_permissions: Tuple[SubPermission, ...] = ()
    conditions: Tuple[PermissionCondition, ...] = ()


def _sub(parent: str, id: str, name: str, description: str) -> SubPermission:
    return SubPermission(id=id, name=name, description=description, parent=parent)


DEFAULT_PERMISSIONS: Tuple[Permission, ...] = (
    # User management
    Permission(
        id="users.view",
        name="View Users",
        description="View user profiles and basic information",
        category=PermissionCategory.USER_MANAGEMENT,
    ),
    Permission(
        id="users.create",
        name="Create Users",
        description="Create new user accounts",
        category=PermissionCategory.USER_MANAGEMENT,
        sub_permissions=[
            _sub("users.create", "users.create.bulk", "Bulk Create", "Create multiple users at once"),
            _sub("users.create", "users.create.admin", "Create Admins", "Create admin users"),
        ],
    ),
    Permission(
        id="users.edit",
        name="Edit Users",
        description="Modify user profiles and settings",
        category=PermissionCategory.USER_MANAGEMENT,
        sub_permissions=[
            _sub("users.edit", "users.edit.role", "Change Roles", "Modify user roles"),
            _sub("users.edit", "users.edit.sensitive", "Edit Sensitive Data", "Modify sensitive user information"),
        ],
    ),
    Permission(
        id="users.delete",
        name="Delete Users",
        description="Delete user accounts",
        category=PermissionCategory.USER_MANAGEMENT,
        conditions=[
            PermissionCondition(type=ConditionType.CONTEXT, rule="require_approval", value=True),
        ],
    ),
    # Teams
    Permission(
        id="teams.manage",
        name="Manage Teams",
        description="Create and manage teams",
        category=PermissionCategory.USER_MANAGEMENT,
        sub_permissions=[
            _sub("teams.manage", "teams.create", "Create Teams", "Create new teams"),
            _sub("teams.manage", "teams.assign", "Assign Members", "Add/remove team members"),
            _sub("teams.manage", "teams.goals", "Manage Team Goals", "Set and track team objectives"),
        ],
    ),
    # Assessment management
    Permission(
        id="assessments.create",
        name="Create Assessments",
        description="Create new assessments",
        category=PermissionCategory.ASSESSMENT_MANAGEMENT,
        sub_permissions=[
            _sub("assessments.create", "assessments.create.template", "Create Templates", "Create assessment templates"),
            _sub("assessments.create", "assessments.create.custom", "Custom Assessments", "Create custom assessments"),
        ],
    ),
    Permission(
        id="assessments.assign",
        name="Assign Assessments",
        description="Assign assessments to users",
        category=PermissionCategory.ASSESSMENT_MANAGEMENT,
        sub_permissions=[
            _sub("assessments.assign", "assessments.assign.bulk", "Bulk Assignment", "Assign to multiple users"),
            _sub("assessments.assign", "assessments.assign.automated", "Automated Assignment", "Set up automatic assignment rules"),
        ],
    ),
    # Analytics & reporting
    Permission(
        id="analytics.view",
        name="View Analytics",
        description="Access analytics and insights",
        category=PermissionCategory.ANALYTICS,
        sub_permissions=[
            _sub("analytics.view", "analytics.personal", "Personal Analytics", "View own analytics"),
            _sub("analytics.view", "analytics.team", "Team Analytics", "View team analytics"),
            _sub("analytics.view", "analytics.org", "Organization Analytics", "View organization-wide analytics"),
        ],
    ),
    Permission(
        id="reports.custom",
        name="Custom Reports",
        description="Create and manage custom reports",
        category=PermissionCategory.REPORTING,
        sub_permissions=[
            _sub("reports.custom", "reports.build", "Build Reports", "Use report builder"),
            _sub("reports.custom", "reports.schedule", "Schedule Reports", "Set up automated reports"),
            _sub("reports.custom", "reports.share", "Share Reports", "Share reports with others"),
        ],
    ),
    # Collaboration
    Permission(
        id="collaboration.peer_feedback",
        name="Peer Feedback",
        description="Give and receive peer feedback",
        category=PermissionCategory.COLLABORATION,
    ),
    Permission(
        id="collaboration.mentorship",
        name="Mentorship",
        description="Participate in mentorship programs",
        category=PermissionCategory.COLLABORATION,
        sub_permissions=[
            _sub("collaboration.mentorship", "collaboration.mentor", "Be a Mentor", "Serve as a mentor"),
            _sub("collaboration.mentorship", "collaboration.mentee", "Have a Mentor", "Be assigned a mentor"),
        ],
    ),
    # Development
    Permission(
        id="development.goals",
        name="Development Goals",
        description="Set and track development goals",
        category=PermissionCategory.DEVELOPMENT,
        sub_permissions=[
            _sub("development.goals", "development.personal", "Personal Goals", "Manage personal development goals"),
            _sub("development.goals", "development.team_goals", "Team Goals", "Set goals for team members"),
        ],
    ),
    Permission(
        id="development.skills",
        name="Skill Management",
        description="Manage skills and competencies",
        category=PermissionCategory.DEVELOPMENT,
        sub_permissions=[
            _sub("development.skills", "development.skill_gap", "Skill Gap Analysis", "Analyze skill gaps"),
            _sub("development.skills", "development.career_path", "Career Paths", "View and plan career paths"),
        ],
    ),
)


class PermissionCatalog:
    """
    Read-only registry of permission definitions, keyed by id.

    Lookups never raise: unknown ids give ``None``, unknown categories ``[]``.
    """

    def __init__(self, permissions: Optional[Iterable[Permission]] = None):
        self._permissions: Dict[str, Permission] = {}
        for permission in DEFAULT_PERMISSIONS if permissions is None else permissions:
            self._register(permission)

    def _register(self, permission: Permission) -> None:
        self._permissions[permission.id] = permission
        for sub in permission.sub_permissions:
            # An explicit definition of the child wins over the generated one
            self._permissions.setdefault(
                sub.id,
                Permission(
                    id=sub.id,
                    name=sub.name,
                    description=sub.description,
                    category=permission.category,
                    parent=sub.parent,
                ),
            )

    def __contains__(self, permission_id: object) -> bool:
        return permission_id in self._permissions

    def __len__(self) -> int:
        return len(self._permissions)

    def get_permission(self, permission_id: str) -> Optional[Permission]:
        return self._permissions.get(permission_id)

    def get_permissions_by_category(
        self,
        category: Union[PermissionCategory, str],
    ) -> List[Permission]:
        """All permissions in a category, in registration order."""
        try:
            wanted = PermissionCategory(category)
        except ValueError:
            return []
        return [p for p in self._permissions.values() if p.category == wanted]

    def get_sub_permissions(self, parent_id: str) -> List[Permission]:
        return [p for p in self._permissions.values() if p.parent == parent_id]

    def list_permissions(self) -> List[Permission]:
        return list(self._permissions.values())
