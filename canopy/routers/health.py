"""Readiness check: can this instance serve ledger and pipeline reads?"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from alembic.config import Config
from alembic.script import ScriptDirectory
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter()

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


@lru_cache(maxsize=1)
def expected_revision() -> Optional[str]:
    """Head revision of the migrations shipped with this build."""
    ini_path = _PROJECT_ROOT / "alembic.ini"
    if not ini_path.exists():
        return None
    config = Config(str(ini_path))
    config.set_main_option("script_location", str(_PROJECT_ROOT / "alembic"))
    return ScriptDirectory.from_config(config).get_current_head()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    200 when the database answers and its schema matches this build.

    A lagging schema reports "degraded" but still 200, since reads keep
    working; an unreachable database returns 503 so the balancer drains us.
    """
    expected = expected_revision()
    try:
        result = await db.execute(text("SELECT version_num FROM alembic_version"))
        applied = result.scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.warning("Readiness check failed, database unavailable: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "database": False, "schema": {"applied": None, "expected": expected}},
        )

    return {
        "status": "ok" if applied == expected else "degraded",
        "database": True,
        "schema": {"applied": applied, "expected": expected},
    }
