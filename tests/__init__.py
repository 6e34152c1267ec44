import uuid
from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session


def random_suffix() -> str:
    """랜덤 ID뒤에 붙일 UUID 기반의 6자리 임의의 ID를 생성합니다."""
    return uuid.uuid4().hex[:6]


def random_email(name: str = "") -> str:
    """임의의 이메일 주소를 생성합니다."""
    return f"{name}-{random_suffix()}@example.com"


def insert_customer(session: Session, name: str, email: Optional[str] = None) -> int:
    session.execute(
        text(
            "INSERT INTO customer (name, email, is_deleted)"
            " VALUES (:name, :email, 0)"
        ),
        dict(name=name, email=email),
    )
    [[customer_id]] = session.execute(
        text("SELECT id FROM customer WHERE name=:name ORDER BY id DESC LIMIT 1"),
        dict(name=name),
    )
    session.commit()
    return customer_id


def count_rows(session: Session, table: str) -> int:
    [[count]] = session.execute(text(f"SELECT COUNT(*) FROM {table}"))
    return count
