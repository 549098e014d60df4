from __future__ import annotations

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from common.mongo.client import USERS_COLLECTION
from common.types.datetime import utcnow

from ..exceptions import ConflictError, NotFoundError
from ..models.user import Role, User
from .documents.user_document import UserDocument
from .interfaces import UserRepositoryInterface


class UserRepository(UserRepositoryInterface):
    """users 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[USERS_COLLECTION]

    @staticmethod
    def _from_document(doc: dict) -> User:
        document = UserDocument.model_validate(doc)
        return document.to_domain()

    def find_by_email(self, email: str) -> User | None:
        doc = self._col.find_one({"email": email})
        if not doc:
            return None
        return self._from_document(doc)

    def find_by_user_code(self, user_code: str) -> User | None:
        doc = self._col.find_one({"user_code": user_code})
        if not doc:
            return None
        return self._from_document(doc)

    def insert(self, user: User) -> User:
        now = utcnow()
        user.created_at = now
        user.updated_at = now

        document = UserDocument.from_domain(user)
        payload = document.to_mongo_record()
        try:
            self._col.insert_one(payload)
        except DuplicateKeyError as exc:
            # find_by_email 확인과 insert 사이에 같은 이메일 가입이 끼어든 경우
            raise ConflictError("User with this email already exists") from exc
        return self._from_document(payload)

    def update_role(self, user_code: str, role: Role) -> User:
        now = utcnow()
        result = self._col.find_one_and_update(
            {"user_code": user_code},
            {"$set": {"role": role.value, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if not result:
            raise NotFoundError(f"user not found for update (user_code={user_code})")
        return self._from_document(result)

    def list_by_role(self, role: Role) -> list[User]:
        cursor = self._col.find(
            {"role": role.value},
            sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
        )
        return [self._from_document(raw) for raw in cursor]
