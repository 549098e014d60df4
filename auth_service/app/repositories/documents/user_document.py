from __future__ import annotations

from common.mongo.types import BaseDocument

from ...models.user import Role, User


class UserDocument(BaseDocument):
    """MongoDB users 컬렉션 도큐먼트 모델."""

    user_code: str
    email: str
    password_hash: str
    first_name: str = ""
    last_name: str = ""
    role: Role = Role.USER
    is_active: bool = True

    @classmethod
    def from_domain(cls, user: User) -> "UserDocument":
        return cls.model_validate(user.model_dump())

    def to_mongo_record(self) -> dict:
        record = super().to_mongo_record()
        # Enum 은 문자열 값으로 저장해야 role 기준 조회가 가능하다.
        record["role"] = self.role.value
        return record

    def to_domain(self) -> User:
        return User(
            user_code=self.user_code,
            email=self.email,
            password_hash=self.password_hash,
            first_name=self.first_name,
            last_name=self.last_name,
            role=self.role,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
