"""
Trust gate: only authorization endpoints on the administrator's allow-list may vouch for a code.
"""
from sqlalchemy.orm import Session

from token_server.config import TRUSTED_ENDPOINT_SETTING
from token_server.models import Setting


def is_trusted_endpoint(db: Session, endpoint: str) -> bool:
    """Exact, case-sensitive match against settings rows named 'endpoint'. No normalization."""
    count = (
        db.query(Setting)
        .filter(Setting.name == TRUSTED_ENDPOINT_SETTING, Setting.value == endpoint)
        .count()
    )
    return count > 0
