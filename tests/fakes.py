"""Shared test constants, token helper and hand-written auth and store doubles."""
from fastapi import HTTPException

from scheme_migration.core.auth import create_access_token
from scheme_migration.core.types import RequestContext

CRED_ID = "id"
PSTR = "pstr"
PSA_ID = "A2222222"


def bearer(cred_id: str | None = CRED_ID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token('user-1', cred_id=cred_id)}"}


class StubAuth:
    def __init__(self, cred_id: str | None = "id", *, authorised: bool = True) -> None:
        self.cred_id = cred_id
        self.authorised = authorised
        self.calls: list[str] = []

    def authorise(self, context: RequestContext) -> None:
        self.calls.append("authorise")
        if not self.authorised:
            raise HTTPException(status_code=401, detail="Could not validate credentials")

    def retrieve_cred_id(self, context: RequestContext) -> str | None:
        self.calls.append("retrieve_cred_id")
        self.authorise(context)
        return self.cred_id


class RecordingStore:
    """Returns canned results and records every store call."""

    def __init__(self, result=None, *, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, object]] = []

    def _call(self, name: str, arg: object):
        self.calls.append((name, arg))
        if self.error is not None:
            raise self.error
        return self.result

    def get_lock_by_pstr(self, pstr):
        return self._call("get_lock_by_pstr", pstr)

    def get_lock_by_cred_id(self, cred_id):
        return self._call("get_lock_by_cred_id", cred_id)

    def get_lock(self, lock):
        return self._call("get_lock", lock)

    def set_lock(self, lock, *, before_commit=None):
        self._call("set_lock", lock)
        if before_commit is not None:
            before_commit()
        return True

    def release_lock_by_pstr(self, pstr):
        self._call("release_lock_by_pstr", pstr)
        return True

    def release_lock_by_cred_id(self, cred_id):
        self._call("release_lock_by_cred_id", cred_id)
        return True

    def release_lock(self, lock):
        self._call("release_lock", lock)
        return True
