import logging
from typing import List, Optional
import asyncpg

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import (
    NewProctor, NewStudent, NewUser, Proctor, Role, Student, StudentWithUser, User, UserProfile,
)
from ..models.redis_models import SessionUser
from ..tools.password_hasher import hash_password, verify_password
from .access_policy import require_reviewer, require_role
from .errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class AccountService:
    """
    Login checks, profile lookups and the admin-only account management.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """Returns the user for valid credentials of an active account, else None."""
        user = await self.db_client.get_user_by_username(username)
        if not user or not verify_password(password, user.password):
            logger.warning(f"Failed login for username '{username}'.")
            return None
        if not user.is_active:
            logger.warning(f"Login attempt for deactivated user {user.id}.")
            return None
        return user

    async def get_profile(self, user_id: int) -> UserProfile:
        user = await self.db_client.get_user(user_id)
        if not user:
            raise NotFoundError("User not found.")

        profile = UserProfile(user=user)
        if user.role == Role.STUDENT:
            profile.student = await self.db_client.get_student_by_user_id(user.id)
        elif user.role == Role.PROCTOR:
            profile.proctor = await self.db_client.get_proctor_by_user_id(user.id)
        return profile

    async def list_students(self, actor: SessionUser, assigned_only: bool = False) -> List[StudentWithUser]:
        """
        All students for reviewers. With assigned_only a proctor gets just the
        students assigned to them (nothing if they have no proctor profile).
        """
        require_reviewer(actor, action="list students")
        if assigned_only and actor.role == Role.PROCTOR:
            proctor = await self.db_client.get_proctor_by_user_id(actor.id)
            if not proctor:
                return []
            return await self.db_client.get_students(proctor_id=proctor.id)
        return await self.db_client.get_students()

    # ===== Admin operations =====

    async def list_users(self, actor: SessionUser) -> List[User]:
        require_role(actor, Role.ADMIN, action="list users")
        return await self.db_client.get_all_users()

    async def create_user(
        self,
        actor: SessionUser,
        username: str,
        password: str,
        role: Role,
        first_name: str,
        last_name: str,
        email: str,
        phone: Optional[str] = None,
    ) -> User:
        require_role(actor, Role.ADMIN, action="create users")
        try:
            user = await self.db_client.create_user(NewUser(
                username=username,
                password=hash_password(password),
                role=role,
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone=phone,
            ))
        except asyncpg.UniqueViolationError as e:
            raise ConflictError("Username or email is already in use.") from e
        logger.info(f"User {user.id} ('{user.username}', {user.role.value}) created by admin {actor.id}.")
        return user

    async def _require_user_with_role(self, user_id: int, role: Role) -> User:
        user = await self.db_client.get_user(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found.")
        if user.role != role:
            raise ValidationError(f"User {user_id} is not a {role.value} account.")
        return user

    async def create_student_profile(self, actor: SessionUser, new_student: NewStudent) -> Student:
        require_role(actor, Role.ADMIN, action="create student profiles")
        await self._require_user_with_role(new_student.user_id, Role.STUDENT)
        if new_student.proctor_id is not None and not await self.db_client.get_proctor_by_id(new_student.proctor_id):
            raise NotFoundError(f"Proctor {new_student.proctor_id} not found.")

        try:
            student = await self.db_client.create_student(new_student)
        except asyncpg.UniqueViolationError as e:
            raise ConflictError("This user already has a student profile or the USN is taken.") from e
        logger.info(f"Student profile {student.id} ({student.usn}) created for user {student.user_id}.")
        return student

    async def create_proctor_profile(self, actor: SessionUser, new_proctor: NewProctor) -> Proctor:
        require_role(actor, Role.ADMIN, action="create proctor profiles")
        await self._require_user_with_role(new_proctor.user_id, Role.PROCTOR)

        try:
            proctor = await self.db_client.create_proctor(new_proctor)
        except asyncpg.UniqueViolationError as e:
            raise ConflictError("This user already has a proctor profile or the employee id is taken.") from e
        logger.info(f"Proctor profile {proctor.id} ({proctor.employee_id}) created for user {proctor.user_id}.")
        return proctor

    async def set_user_active(self, actor: SessionUser, user_id: int, is_active: bool) -> User:
        require_role(actor, Role.ADMIN, action="change account status")
        if user_id == actor.id and not is_active:
            raise ValidationError("You cannot deactivate your own account.")
        user = await self.db_client.set_user_active(user_id, is_active)
        if not user:
            raise NotFoundError(f"User {user_id} not found.")
        logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'} by admin {actor.id}.")
        return user
