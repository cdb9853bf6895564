from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_session
from services.scheduler import run_cycle

router = APIRouter(prefix="/api", tags=["scheduler"])


@router.post("/scheduler/run")
def run_scheduler_cycle(db: Session = Depends(get_session)):
    """Run one expiration sweep + reminder tick now"""
    return run_cycle(lambda: db)
