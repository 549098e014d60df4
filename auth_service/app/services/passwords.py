from __future__ import annotations

import bcrypt


# bcrypt 는 72바이트를 넘는 입력을 처리하지 못한다.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """bcrypt 기반 단방향 credential 해시."""

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash(self, password: str) -> str:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES or not password_hash:
            return False
        try:
            return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except ValueError:
            # 저장된 해시 형식이 잘못된 경우
            return False
