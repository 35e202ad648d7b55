"""
Operator identity for console requests.

Authentication itself happens upstream; the console only needs to know who
is submitting readings, which arrives in request headers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from fastapi import Header


ADMIN_ROLES = {"ADMIN"}


@dataclass
class OperatorContext:
    operator_id: str
    operator_name: str
    role: str = "OPERATOR"

    @property
    def is_admin(self) -> bool:
        return (self.role or "").upper() in ADMIN_ROLES


def _default_operator() -> OperatorContext:
    return OperatorContext(
        operator_id=os.getenv("ROLETA_DEFAULT_OPERATOR_ID", "local-operator"),
        operator_name=os.getenv("ROLETA_DEFAULT_OPERATOR_NAME", "Local operator"),
    )


def get_operator(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> OperatorContext:
    fallback = _default_operator()
    operator_id = (x_user_id or "").strip() or fallback.operator_id
    # Display name falls back to the e-mail, then to the configured default.
    operator_name = (x_user_name or "").strip() or (x_user_email or "").strip() or fallback.operator_name
    role = (x_user_role or "").strip().upper() or fallback.role
    return OperatorContext(operator_id=operator_id, operator_name=operator_name, role=role)
