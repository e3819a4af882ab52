from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from stitcher.common.env import Env


REALM = "stitcher"

_basic = HTTPBasic(realm=REALM)


def _same(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def require_basic_auth(env: Env):
    """Dependency guarding the editor API with EDITOR_BASIC_AUTH_USER/PASS.

    A missing or undecodable header is rejected by HTTPBasic itself; this
    checks the pair and yields the user name.
    """

    def _dep(creds: HTTPBasicCredentials = Depends(_basic)) -> str:
        # both halves are always compared
        user_ok = _same(creds.username, env.basic_user)
        pass_ok = _same(creds.password, env.basic_pass)
        if not (user_ok and pass_ok):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="invalid credentials",
                headers={"WWW-Authenticate": f'Basic realm="{REALM}"'},
            )
        return creds.username

    return _dep
