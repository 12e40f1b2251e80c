# backend/sagadb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- String relationship targets ("User", "SubGoal", ...) resolve.

The actual model classes are kept in sagadb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models          # clinics / users
from .apps.trainees import models as trainees_models          # trainee profiles
from .apps.subgoals import models as subgoals_models          # goal specs + progress
from .apps.rotations import models as rotations_models
from .apps.feedback import models as feedback_models          # rotation feedback
from .apps.courses import models as courses_models
from .apps.assessments import models as assessments_models
from .apps.supervision import models as supervision_models
from .apps.certificates import models as certificates_models
from .apps.notifications import models as notifications_models
from .apps.audit import models as audit_models

__all__ = [
    "accounts_models",
    "trainees_models",
    "subgoals_models",
    "rotations_models",
    "feedback_models",
    "courses_models",
    "assessments_models",
    "supervision_models",
    "certificates_models",
    "notifications_models",
    "audit_models",
]
