"""Back-office roles and their permissions."""
import logging

from paytik.config import DEFAULT_ROLES
from paytik.data_structures import Role
from paytik.result import ErrorType, Result

logger = logging.getLogger(__name__)


class RoleService:
    """Handles roles; the default roles are seeded on first read."""

    def __init__(self, db_manager):
        self.db = db_manager

    def get_roles(self):
        rows = self.db.get_roles()
        if not rows and self.db.get_setting("roles_seeded") is None:
            with self.db.transaction():
                for role in DEFAULT_ROLES:
                    self.db.save_role(role['id'], role['name'], role['description'],
                                      role['permissions'], role['is_deletable'])
                self.db.set_setting("roles_seeded", "1")
            rows = self.db.get_roles()
        return [Role(**r) for r in rows]

    def get_role(self, role_id):
        for role in self.get_roles():
            if role.id == role_id:
                return role
        return None

    def save_role(self, role_id, name, description="", permissions=None):
        """Add a role or update an existing one.

        A role keeps its deletable flag on update; new roles are deletable.
        """
        if not (role_id or "").strip() or not (name or "").strip():
            return Result.fail("Role id and name are required", ErrorType.VALIDATION)
        existing = self.get_role(role_id)
        is_deletable = existing.is_deletable if existing else True
        self.db.save_role(role_id, name.strip(), description, list(permissions or []), is_deletable)
        logger.info("Role %s %s", role_id, "updated" if existing else "added")
        return Result.ok(self.get_role(role_id))

    def remove_role(self, role_id):
        role = self.get_role(role_id)
        if role is None:
            return Result.fail(f"Role '{role_id}' not found", ErrorType.NOT_FOUND)
        if not role.is_deletable:
            return Result.fail(f"Role '{role.name}' cannot be deleted", ErrorType.PERMISSION)
        self.db.delete_role(role_id)
        logger.info("Role %s removed", role_id)
        return Result.ok(role_id)
