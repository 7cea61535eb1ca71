"""
Seed the trusted authorization endpoint allow-list from environment.
Optional: set TOKEN_TRUSTED_ENDPOINTS to a comma-separated list of URLs.
"""
import logging

from sqlalchemy.orm import Session

from token_server.config import TRUSTED_ENDPOINT_SETTING, TRUSTED_ENDPOINTS
from token_server.models import Setting

logger = logging.getLogger(__name__)


def seed_from_env(db: Session, endpoints: str | None = None) -> None:
    """Add each configured endpoint as a settings row unless it already exists."""
    raw = TRUSTED_ENDPOINTS if endpoints is None else endpoints
    for endpoint in (e.strip() for e in raw.split(",")):
        if not endpoint:
            continue
        exists = (
            db.query(Setting)
            .filter(Setting.name == TRUSTED_ENDPOINT_SETTING, Setting.value == endpoint)
            .first()
        )
        if exists is None:
            db.add(Setting(name=TRUSTED_ENDPOINT_SETTING, value=endpoint))
            db.commit()
            logger.info("Seeded trusted endpoint: %s", endpoint)
        else:
            logger.debug("Trusted endpoint already present: %s", endpoint)
