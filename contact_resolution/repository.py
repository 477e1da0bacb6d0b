from __future__ import annotations

import contextlib
from typing import Any, ContextManager, Dict, Iterator, List, Mapping, Optional, Protocol, Sequence

import psycopg
from psycopg import Connection
from psycopg import errors as pg_errors
from psycopg.rows import dict_row

from .errors import ContactStoreError, DuplicateEmailError
from .logging import get_logger
from .models import DEPENDENT_TABLES, Contact
from .similarity import name_search_tokens, tokenize_name

logger = get_logger("contacts.repository")

CONTACT_COLUMNS: tuple[str, ...] = (
    "id",
    "email",
    "name",
    "phone",
    "company",
    "title",
    "linkedin_url",
    "status",
    "preferred_contact_method",
    "timezone",
    "lead_source",
    "sources_count",
    "notes",
    "created_at",
    "last_update_date",
    "first_touch_date",
    "last_activity_date",
)

_SELECT_CONTACT = f"SELECT {', '.join(CONTACT_COLUMNS)} FROM contacts"


class ContactStore(Protocol):
    """Storage primitives the matcher, merger and consolidator rely on.

    Emails and phones passed to lookups are already normalized.
    """

    def get_contact(self, contact_id: int) -> Optional[Contact]: ...

    def get_contact_by_email(self, email: str) -> Optional[Contact]: ...

    def find_contacts_by_phone(self, phone: str) -> List[Contact]: ...

    def find_contacts_by_email_domain(
        self, domain: str, min_local_length: int = 0, max_local_length: Optional[int] = None
    ) -> List[Contact]: ...

    def search_contacts_by_name(self, name: str, limit: int = 50) -> List[Contact]: ...

    def search_contacts_by_company(self, company: str, limit: int = 50) -> List[Contact]: ...

    def iter_contacts(self) -> Iterator[Contact]: ...

    def insert_contact(self, contact: Contact) -> Contact: ...

    def update_contact(self, contact_id: int, changes: Mapping[str, Any]) -> Contact: ...

    def delete_contact(self, contact_id: int) -> None: ...

    def reassign_dependents(self, from_contact_id: int, to_contact_id: int) -> Dict[str, int]: ...

    def count_dependents(self, contact_id: int) -> Dict[str, int]: ...

    def transaction(self) -> ContextManager[None]: ...


def _contact_from_row(row: Mapping[str, Any]) -> Contact:
    data = {column: row.get(column) for column in CONTACT_COLUMNS}
    data["email"] = data["email"] or ""
    data["lead_source"] = data["lead_source"] or ""
    data["sources_count"] = data["sources_count"] or 0
    return Contact(**data)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _like_patterns(tokens: Sequence[str]) -> list[str]:
    return [f"%{_escape_like(token)}%" for token in tokens]


class PostgresContactStore:
    """ContactStore over the dashboard's Postgres schema.

    Expects ``contacts`` with a unique ``email`` column and the dependent
    tables ``activities``, ``deals``, ``meetings`` and ``forms`` each carrying
    ``contact_id``. Run the connection in autocommit mode; multi-statement
    work goes through :meth:`transaction`.
    """

    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @contextlib.contextmanager
    def _cursor(self) -> Iterator[psycopg.Cursor]:
        try:
            with self.conn.cursor(row_factory=dict_row) as cur:
                yield cur
        except psycopg.OperationalError as exc:
            logger.error("contact_store_unavailable", error=str(exc))
            raise ContactStoreError(str(exc)) from exc

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        with self.conn.transaction():
            yield

    def _fetch_one(self, query: str, params: Any) -> Optional[Contact]:
        with self._cursor() as cur:
            cur.execute(query, params)
            row = cur.fetchone()
        return _contact_from_row(row) if row else None

    def _fetch_all(self, query: str, params: Any) -> List[Contact]:
        with self._cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        return [_contact_from_row(row) for row in rows]

    def get_contact(self, contact_id: int) -> Optional[Contact]:
        return self._fetch_one(f"{_SELECT_CONTACT} WHERE id = %s", (contact_id,))

    def get_contact_by_email(self, email: str) -> Optional[Contact]:
        if not email:
            return None
        return self._fetch_one(f"{_SELECT_CONTACT} WHERE email = %s", (email,))

    def find_contacts_by_phone(self, phone: str) -> List[Contact]:
        if not phone:
            return []
        return self._fetch_all(f"{_SELECT_CONTACT} WHERE phone = %s ORDER BY id", (phone,))

    def find_contacts_by_email_domain(
        self, domain: str, min_local_length: int = 0, max_local_length: Optional[int] = None
    ) -> List[Contact]:
        """Every contact on ``domain`` whose local part length is within bounds."""
        if not domain:
            return []
        params: Dict[str, Any] = {"pattern": f"%@{_escape_like(domain)}", "min_length": min_local_length}
        conditions = [
            "email LIKE %(pattern)s ESCAPE '\\'",
            "length(split_part(email, '@', 1)) >= %(min_length)s",
        ]
        if max_local_length is not None:
            conditions.append("length(split_part(email, '@', 1)) <= %(max_length)s")
            params["max_length"] = max_local_length
        return self._fetch_all(
            f"{_SELECT_CONTACT} WHERE {' AND '.join(conditions)} ORDER BY id",
            params,
        )

    def _ranked_search(self, column: str, tokens: Sequence[str], limit: int) -> List[Contact]:
        # Most whole-token overlap with the query first, then oldest.
        if not tokens:
            return []
        query = f"""
            {_SELECT_CONTACT}
            WHERE EXISTS (
                SELECT 1 FROM unnest(%(patterns)s::text[]) AS pattern
                WHERE {column} ILIKE pattern ESCAPE '\\'
            )
            ORDER BY cardinality(ARRAY(
                SELECT unnest(regexp_split_to_array(lower({column}), '\\s+'))
                INTERSECT
                SELECT unnest(%(tokens)s::text[])
            )) DESC, id
            LIMIT %(limit)s
        """
        return self._fetch_all(
            query,
            {"patterns": _like_patterns(tokens), "tokens": list(tokens), "limit": limit},
        )

    def search_contacts_by_name(self, name: str, limit: int = 50) -> List[Contact]:
        return self._ranked_search("name", name_search_tokens(name), limit)

    def search_contacts_by_company(self, company: str, limit: int = 50) -> List[Contact]:
        return self._ranked_search("company", tokenize_name(company), limit)

    def iter_contacts(self) -> Iterator[Contact]:
        yield from self._fetch_all(f"{_SELECT_CONTACT} ORDER BY id", ())

    def insert_contact(self, contact: Contact) -> Contact:
        columns = [column for column in CONTACT_COLUMNS if column != "id"]
        values = contact.as_dict()
        # NULL rather than "" so contacts without an email never collide on the unique index
        values["email"] = contact.email or None
        placeholders = ", ".join(f"%({column})s" for column in columns)
        query = f"""
            INSERT INTO contacts ({', '.join(columns)})
            VALUES ({placeholders})
            RETURNING {', '.join(CONTACT_COLUMNS)}
        """
        try:
            with self._cursor() as cur:
                cur.execute(query, {column: values[column] for column in columns})
                row = cur.fetchone()
        except pg_errors.UniqueViolation as exc:
            raise DuplicateEmailError(contact.email) from exc
        return _contact_from_row(row)

    def update_contact(self, contact_id: int, changes: Mapping[str, Any]) -> Contact:
        unknown = set(changes) - set(CONTACT_COLUMNS[1:])
        if unknown:
            raise ValueError(f"Unknown contact fields: {sorted(unknown)}")
        if not changes:
            current = self.get_contact(contact_id)
            if current is None:
                raise ValueError(f"Contact {contact_id} not found")
            return current

        assignments = ", ".join(f"{column} = %({column})s" for column in changes)
        params = dict(changes)
        params["contact_id"] = contact_id
        try:
            with self._cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE contacts SET {assignments}
                    WHERE id = %(contact_id)s
                    RETURNING {', '.join(CONTACT_COLUMNS)}
                    """,
                    params,
                )
                row = cur.fetchone()
        except pg_errors.UniqueViolation as exc:
            raise DuplicateEmailError(str(changes.get("email", ""))) from exc
        if not row:
            raise ValueError(f"Contact {contact_id} not found")
        return _contact_from_row(row)

    def delete_contact(self, contact_id: int) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM contacts WHERE id = %s", (contact_id,))

    def reassign_dependents(self, from_contact_id: int, to_contact_id: int) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._cursor() as cur:
            for table in DEPENDENT_TABLES:
                cur.execute(
                    f"UPDATE {table} SET contact_id = %s WHERE contact_id = %s",
                    (to_contact_id, from_contact_id),
                )
                counts[table] = cur.rowcount
        return counts

    def count_dependents(self, contact_id: int) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._cursor() as cur:
            for table in DEPENDENT_TABLES:
                cur.execute(
                    f"SELECT COUNT(*) AS count FROM {table} WHERE contact_id = %s",
                    (contact_id,),
                )
                row = cur.fetchone()
                counts[table] = row["count"] if row else 0
        return counts


__all__ = ["CONTACT_COLUMNS", "ContactStore", "PostgresContactStore"]
