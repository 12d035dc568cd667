"""Usage metering emitted as structured log records.

Billing pipelines filter the JSON log stream on ``metering == true``; nothing
else is written, so a metering record never fails a request.
"""

from __future__ import annotations

import logging
import uuid

log = logging.getLogger("gatekeeper.metering")


def record_login(login_method: str, user_id: uuid.UUID, instance_id: uuid.UUID) -> None:
    """Emit one ``Login`` metering record.

    :param login_method: ``"password"`` for the password grant (cache hits
        included), ``"token"`` for a refresh-token grant.
    """
    log.info(
        "Login",
        extra={
            "metering": True,
            "action": "login",
            "login_method": login_method,
            "instance_id": str(instance_id),
            "user_id": str(user_id),
        },
    )
