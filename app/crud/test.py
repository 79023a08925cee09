from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.constants import TestStatusEnum
from app.crud.base import CRUDBase
from app.models.test import Test
from app.schemas.test import TestCreate, TestUpdate

class CRUDTest(CRUDBase[Test, TestCreate, TestUpdate]):

    def get_multi_by_status(self, db: Session, *, status: Optional[TestStatusEnum] = None,
                            skip: int = 0, limit: int = 100) -> List[Test]:
        query = db.query(Test)
        if status is not None:
            query = query.filter(Test.status == status)
        return query.order_by(Test.created_at.desc()).offset(skip).limit(limit).all()

    def count_all(self, db: Session) -> int:
        return db.query(func.count(Test.id)).scalar() or 0

    def get_locked(self, db: Session, id: int, *, shared: bool = False) -> Optional[Test]:
        """Reloads the test under a row lock held until commit (no-op on SQLite).

        Scoring takes the shared lock and releasing results the exclusive one, so a release
        can never commit between a scorer reading `results_released` and writing its status.
        """
        return (
            db.query(Test)
            .filter(Test.id == id)
            .with_for_update(read=shared)
            .populate_existing()
            .first()
        )


test = CRUDTest(Test)
