"""
Role-permission matrix - baseline permission ids each role holds.

The table is fixed at deploy time; per-user exceptions go through grants.
"""

from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from src.kernel.identity.principal import UserRole, role_key


ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[str]] = {
    UserRole.SUPER_ADMIN: frozenset({
        "users.view", "users.create", "users.create.bulk", "users.create.admin",
        "users.edit", "users.edit.role", "users.edit.sensitive", "users.delete",
        "teams.manage", "teams.create", "teams.assign", "teams.goals",
        "assessments.create", "assessments.create.template", "assessments.create.custom",
        "assessments.assign", "assessments.assign.bulk", "assessments.assign.automated",
        "analytics.view", "analytics.personal", "analytics.team", "analytics.org",
        "reports.custom", "reports.build", "reports.schedule", "reports.share",
        "collaboration.peer_feedback", "collaboration.mentorship",
        "collaboration.mentor", "collaboration.mentee",
        "development.goals", "development.personal", "development.team_goals",
        "development.skills", "development.skill_gap", "development.career_path",
    }),

    UserRole.ORG_ADMIN: frozenset({
        "users.view", "users.create", "users.create.bulk",
        "users.edit", "users.edit.role", "users.delete",
        "teams.manage", "teams.create", "teams.assign", "teams.goals",
        "assessments.create", "assessments.create.template",
        "assessments.assign", "assessments.assign.bulk", "assessments.assign.automated",
        "analytics.view", "analytics.team", "analytics.org",
        "reports.custom", "reports.build", "reports.schedule", "reports.share",
        "collaboration.mentorship", "collaboration.mentor",
        "development.goals", "development.team_goals",
        "development.skills", "development.skill_gap", "development.career_path",
    }),

    UserRole.TEAM_LEAD: frozenset({
        "users.view", "users.edit",
        "teams.assign", "teams.goals",
        "assessments.assign",
        "analytics.view", "analytics.team",
        "reports.custom", "reports.build",
        "collaboration.peer_feedback", "collaboration.mentorship", "collaboration.mentor",
        "development.goals", "development.team_goals", "development.skills",
    }),

    UserRole.REVIEWER: frozenset({
        "users.view",
        "assessments.assign",
        "analytics.view", "analytics.personal",
        "collaboration.peer_feedback",
        "development.goals", "development.personal", "development.skills",
    }),

    UserRole.EMPLOYEE: frozenset({
        "analytics.view", "analytics.personal",
        "collaboration.peer_feedback", "collaboration.mentorship", "collaboration.mentee",
        "development.goals", "development.personal",
        "development.skills", "development.skill_gap", "development.career_path",
    }),

    UserRole.SUBSCRIBER: frozenset({
        "analytics.view", "analytics.personal",
        "development.goals", "development.personal", "development.skills",
    }),
}


class RoleMatrix:
    """Lookup of role -> permission ids. Unknown roles hold nothing."""

    def __init__(self, table: Optional[Mapping[Union[UserRole, str], Iterable[str]]] = None):
        source = ROLE_PERMISSIONS if table is None else table
        self._table: Dict[str, FrozenSet[str]] = {
            role_key(role): frozenset(permissions) for role, permissions in source.items()
        }

    def get_permissions(self, role: Union[UserRole, str, None]) -> FrozenSet[str]:
        return self._table.get(role_key(role), frozenset())

    def has_permission(self, role: Union[UserRole, str, None], permission_id: str) -> bool:
        return permission_id in self.get_permissions(role)

    def roles(self) -> List[str]:
        return list(self._table)
