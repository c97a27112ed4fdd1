"""
In-memory stand-in for the Supabase client.

Implements just the slice of supabase-py the auth package touches:
`client.auth` (password/refresh grants, get_user, recovery OTP),
`client.auth.admin` (create/delete/sign_out/update users) and
`client.table(...)` query chains with select/insert/update, eq, order,
range and limit. Failures can be queued per operation with `fail()`.
"""

import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from postgrest.exceptions import APIError
from supabase import AuthApiError


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def invalid_credentials_error():
    return AuthApiError("Invalid login credentials", 400, "invalid_credentials")


class FakeQuery:
    def __init__(self, fake, table):
        self.fake = fake
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.orders = []
        self.window = None
        self.max_rows = None

    def select(self, columns="*"):
        self.op = "select"
        return self

    def insert(self, row):
        self.op = "insert"
        self.payload = dict(row)
        return self

    def update(self, row):
        self.op = "update"
        self.payload = dict(row)
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def range(self, start, end):
        self.window = (start, end)
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def _matches(self, row):
        return all(row.get(column) == value for column, value in self.filters)

    def execute(self):
        self.fake.calls.append((self.table, self.op))
        self.fake.raise_queued(f"{self.table}.{self.op}")
        rows = self.fake.tables[self.table]

        if self.op == "insert":
            return SimpleNamespace(data=[self.fake.insert_row(self.table, self.payload)])

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return SimpleNamespace(data=updated)

        selected = [dict(row) for row in rows if self._matches(row)]
        for column, desc in reversed(self.orders):
            selected.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self.window is not None:
            start, end = self.window
            selected = selected[start:end + 1]
        if self.max_rows is not None:
            selected = selected[:self.max_rows]
        return SimpleNamespace(data=selected)


class FakeAdmin:
    def __init__(self, auth):
        self.auth = auth

    def create_user(self, attributes):
        self.auth.fake.raise_queued("admin.create_user")
        email = attributes["email"].lower()
        if email in self.auth.users:
            raise AuthApiError(
                "A user with this email address has already been registered",
                422,
                "email_exists",
            )
        user = self.auth.add_user(email, attributes["password"], attributes.get("user_metadata"))
        return SimpleNamespace(user=user)

    def delete_user(self, user_id):
        self.auth.fake.raise_queued("admin.delete_user")
        self.auth.deleted.append(user_id)
        for email, user in list(self.auth.users.items()):
            if user.id == user_id:
                del self.auth.users[email]

    def sign_out(self, jwt, scope="global"):
        self.auth.fake.raise_queued("admin.sign_out")
        user_id = self.auth.access_tokens.get(jwt)
        if user_id is None:
            raise AuthApiError("invalid JWT: unable to parse or verify signature", 401, "bad_jwt")
        self.auth.revoke(user_id)

    def update_user_by_id(self, user_id, attributes):
        self.auth.fake.raise_queued("admin.update_user_by_id")
        user = self.auth.user_by_id(user_id)
        if "password" in attributes:
            self.auth.passwords[user.email] = attributes["password"]
        return SimpleNamespace(user=user)


class FakeAuth:
    def __init__(self, fake):
        self.fake = fake
        self.users = {}
        self.passwords = {}
        self.access_tokens = {}
        self.refresh_tokens = {}
        self.recovery_tokens = {}
        self.reset_requests = []
        self.deleted = []
        self.admin = FakeAdmin(self)

    def add_user(self, email, password, metadata=None):
        email = email.lower()
        user = SimpleNamespace(
            id=str(uuid.uuid4()),
            email=email,
            created_at=self.fake.next_timestamp(),
            user_metadata=metadata or {},
        )
        self.users[email] = user
        self.passwords[email] = password
        return user

    def user_by_id(self, user_id):
        for user in self.users.values():
            if user.id == user_id:
                return user
        raise AuthApiError("User not found", 404, "user_not_found")

    def revoke(self, user_id):
        for table in (self.access_tokens, self.refresh_tokens):
            for token, owner in list(table.items()):
                if owner == user_id:
                    del table[token]

    def _new_session(self, user):
        access_token = f"sb-access-{uuid.uuid4().hex}"
        refresh_token = f"sb-refresh-{uuid.uuid4().hex}"
        self.access_tokens[access_token] = user.id
        self.refresh_tokens[refresh_token] = user.id
        session = SimpleNamespace(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp()),
            user=user,
        )
        return SimpleNamespace(user=user, session=session)

    def sign_in_with_password(self, credentials):
        self.fake.raise_queued("auth.sign_in_with_password")
        email = credentials["email"].lower()
        if email not in self.users or self.passwords.get(email) != credentials["password"]:
            raise invalid_credentials_error()
        return self._new_session(self.users[email])

    def refresh_session(self, refresh_token):
        self.fake.raise_queued("auth.refresh_session")
        user_id = self.refresh_tokens.pop(refresh_token, None)
        if user_id is None:
            raise AuthApiError(
                "Invalid Refresh Token: Refresh Token Not Found",
                400,
                "refresh_token_not_found",
            )
        return self._new_session(self.user_by_id(user_id))

    def get_user(self, jwt=None):
        self.fake.raise_queued("auth.get_user")
        user_id = self.access_tokens.get(jwt)
        if user_id is None:
            raise AuthApiError("invalid JWT: unable to parse or verify signature", 403, "bad_jwt")
        return SimpleNamespace(user=self.user_by_id(user_id))

    def reset_password_for_email(self, email, options=None):
        self.fake.raise_queued("auth.reset_password_for_email")
        self.reset_requests.append((email, (options or {}).get("redirect_to")))

    def issue_recovery_token(self, email):
        token = f"recovery-{uuid.uuid4().hex}"
        self.recovery_tokens[token] = self.users[email.lower()].id
        return token

    def verify_otp(self, params):
        self.fake.raise_queued("auth.verify_otp")
        user_id = self.recovery_tokens.pop(params.get("token_hash"), None)
        if user_id is None:
            raise AuthApiError("Email link is invalid or has expired", 403, "otp_expired")
        return self._new_session(self.user_by_id(user_id))


class FakeSupabase:
    def __init__(self):
        self.tables = defaultdict(list)
        self.calls = []
        self.queued_failures = defaultdict(list)
        self._clock = 0
        self.auth = FakeAuth(self)

    def table(self, name):
        return FakeQuery(self, name)

    def fail(self, operation, exc, times=1):
        """Raise `exc` on the next `times` calls of `operation` (e.g. "tenants.insert")."""
        self.queued_failures[operation].extend([exc] * times)

    def raise_queued(self, operation):
        queued = self.queued_failures.get(operation)
        if queued:
            raise queued.pop(0)

    def next_timestamp(self):
        self._clock += 1
        return (BASE_TIME + timedelta(seconds=self._clock)).isoformat()

    def insert_row(self, table, row):
        row = dict(row)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self.next_timestamp())
        if table == "users":
            for existing in self.tables["users"]:
                if existing["email"] == row["email"] and existing["tenant_id"] == row["tenant_id"]:
                    raise APIError({
                        "code": "23505",
                        "message": "duplicate key value violates unique constraint \"users_email_tenant_id_key\"",
                        "details": "",
                        "hint": "",
                    })
        self.tables[table].append(row)
        return dict(row)

    def writes(self):
        return [call for call in self.calls if call[1] in ("insert", "update")]

    # -- seeding helpers ----------------------------------------------------

    def add_tenant(self, name="Seed Tenant", **fields):
        return self.insert_row("tenants", {"name": name, "status": "active", "plan": "free", **fields})

    def add_profile(self, user, tenant, role="user", status="active", **fields):
        return self.insert_row("users", {
            "auth_user_id": user.id,
            "tenant_id": tenant["id"],
            "email": user.email,
            "name": fields.pop("name", "Seed User"),
            "role": role,
            "status": status,
            **fields,
        })
