ACTIVE = "ACTIVE"
EXPIRED = "EXPIRED"
DELETED = "DELETED"

MATCH_STATUSES = {ACTIVE, EXPIRED, DELETED}


def transition_match_status(current: str, action: str) -> str:
    if current not in MATCH_STATUSES:
        raise ValueError(f"unknown match status: {current!r}")

    if current in {EXPIRED, DELETED}:
        return current

    if action == "expire":
        return EXPIRED

    if action == "reverse":
        return DELETED

    return current
