from fastapi import Header

DEFAULT_ACTOR = "system"


# ─── Acting Operator ──────────────────────────────────────────────────────────
def get_actor(x_actor: str | None = Header(None, alias="X-Actor")) -> str:
    """
    Name of the operator making the request, taken from the X-Actor header.
    Identity is issued upstream; this service only records it in the audit
    log and the ledger journal.

    Usage:
        @router.post("/borrowings")
        def create(body: ..., actor: str = Depends(get_actor)):
            ...
    """
    if x_actor is None or not x_actor.strip():
        return DEFAULT_ACTOR
    return x_actor.strip()[:200]
