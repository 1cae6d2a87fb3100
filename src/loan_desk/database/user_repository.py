"""
User repository for the Loan Desk MCP Server.

Members are read and have their profile edited; nothing else about them is
stored. ``current_loans``, ``loan_history`` and ``fines_owed`` are computed
from the loans table each time a user is loaded.
"""

import logging
from datetime import date

from pydantic import BaseModel, EmailStr
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ..models.user import User as UserModel
from ..models.user import UserProfileUpdate
from .repository import BaseRepository, DuplicateError, NotFoundError, RepositoryException
from .schema import Loan as LoanDB
from .schema import LoanStatusEnum
from .schema import User as UserDB
from .session import mcp_safe_commit, mcp_safe_query

logger = logging.getLogger(__name__)


class UserCreateSchema(BaseModel):
    """Schema for registering a member."""

    name: str
    email: EmailStr
    phone: str | None = None
    address: str | None = None
    member_since: date | None = None


class UserRepository(BaseRepository[UserDB, UserCreateSchema, UserModel]):
    """
    Repository for member profiles.

    Backs the ``library://users/...`` resources and the ``update_profile`` tool.
    """

    @property
    def model_class(self):
        return UserDB

    @property
    def response_schema(self):
        return UserModel

    def _to_response_model(self, db_obj: UserDB) -> UserModel:
        """Build the user model, deriving loan lists and fines from the user's loans."""
        loans = self._loans_for(db_obj.id)
        return UserModel(
            id=db_obj.id,
            name=db_obj.name,
            email=db_obj.email,
            phone=db_obj.phone,
            address=db_obj.address,
            member_since=db_obj.member_since,
            current_loans=[loan.id for loan in loans if loan.status == LoanStatusEnum.ACTIVE],
            loan_history=[loan.id for loan in loans],
            fines_owed=round(sum(loan.late_fee or 0.0 for loan in loans), 2),
        )

    def create(self, data: UserCreateSchema) -> UserModel:
        """
        Register a member with a generated ID.

        Raises:
            DuplicateError: If the email is already registered
        """
        existing = mcp_safe_query(
            self.session,
            lambda s: s.execute(
                select(UserDB).where(UserDB.email == data.email)
            ).scalar_one_or_none(),
            "Failed to check for duplicate email",
        )
        if existing:
            raise DuplicateError(f"User with email {data.email} already exists")

        try:
            db_user = UserDB(
                id=self._generate_user_id(data.name),
                name=data.name,
                email=data.email,
                phone=data.phone,
                address=data.address,
                member_since=data.member_since or date.today(),
            )
            self.session.add(db_user)
            mcp_safe_commit(self.session, "create user")
            self.session.refresh(db_user)
            return self._to_response_model(db_user)
        except Exception as e:
            self.session.rollback()
            raise RepositoryException(f"Failed to create user: {e!s}") from e

    def get_current_user(self, preferred_id: str | None = None) -> UserModel:
        """
        The member the session acts as.

        Uses ``preferred_id`` when given, otherwise the earliest registered
        member.

        Raises:
            NotFoundError: If the preferred user is missing or no users exist
        """
        if preferred_id:
            user = self.get_by_id(preferred_id)
            if user is None:
                raise NotFoundError(f"User {preferred_id} not found")
            return user

        query = select(UserDB).order_by(UserDB.member_since, UserDB.id).limit(1)
        db_user = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get current user",
        )
        if db_user is None:
            raise NotFoundError("No users are registered")
        return self._to_response_model(db_user)

    def update_profile(self, user_id: str, data: UserProfileUpdate) -> UserModel:
        """
        Change a member's profile fields. Unset fields are left alone.

        Raises:
            NotFoundError: If the user does not exist
            DuplicateError: If the new email belongs to another member
        """
        db_user = self._require_row(user_id)

        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(db_user, field, value)

        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            logger.info("Profile update for %s refused: email already in use", user_id)
            raise DuplicateError(f"Email {data.email} is already registered") from e

        mcp_safe_commit(self.session, "update profile")
        self.session.refresh(db_user)
        logger.info("Profile of %s updated: %s", user_id, sorted(changes))
        return self._to_response_model(db_user)

    def _generate_user_id(self, name: str) -> str:
        """Generate a unique user ID from the name."""
        slug = "".join(c.lower() if c.isascii() and c.isalnum() else "_" for c in name)
        base_id = "user_" + slug.strip("_")

        if len(base_id) < 9:  # user_ + at least 4 chars
            base_id = base_id.ljust(9, "0")

        suffix = 1
        user_id = base_id
        while self.exists(user_id):
            user_id = f"{base_id}{suffix:03d}"
            suffix += 1

        return user_id

    def count(self) -> int:
        return (
            mcp_safe_query(
                self.session,
                lambda s: s.execute(select(func.count()).select_from(UserDB)).scalar(),
                "Failed to count users",
            )
            or 0
        )

    def _loans_for(self, user_id: str) -> list[LoanDB]:
        query = select(LoanDB).where(LoanDB.user_id == user_id).order_by(LoanDB.borrow_date.desc())
        return list(
            mcp_safe_query(
                self.session,
                lambda s: s.execute(query).scalars().all(),
                "Failed to get loans for user",
            )
        )
