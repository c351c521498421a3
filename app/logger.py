import json
import logging
import uuid
from datetime import datetime, timezone

from .db import get_conn

logger = logging.getLogger(__name__)


def log_payload(direction: str, payload: dict):
    # direction in {'in','out'}
    rec = {
        "log_id": str(uuid.uuid4()),
        "direction": direction,
        "payload_json": json.dumps(payload, ensure_ascii=False, default=str),
        "created_at": datetime.now(timezone.utc).isoformat()
    }
    with get_conn() as conn:
        conn.execute(
            "INSERT INTO logs(log_id, direction, payload_json, created_at) VALUES(?,?,?,?)",
            (rec["log_id"], rec["direction"], rec["payload_json"], rec["created_at"])
        )
    logger.debug("Logged %s payload %s", direction, rec["log_id"])
