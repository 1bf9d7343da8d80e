"""API routes package: import all routers here for inclusion in the app."""

from caseportal.api.routes.case_reviews import router as case_reviews_router  # noqa: F401
from caseportal.api.routes.notes import router as notes_router  # noqa: F401
from caseportal.api.routes.evidence import router as evidence_router  # noqa: F401
from caseportal.api.routes.auth import router as auth_router  # noqa: F401
from caseportal.api.routes.admin import router as admin_router  # noqa: F401
