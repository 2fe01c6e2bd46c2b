# sophub/models/__init__.py
from sophub.db.base import Base  # noqa: F401

from . import company         # noqa: F401
from . import user            # noqa: F401
from . import sop             # noqa: F401
from . import sop_assignment  # noqa: F401
from . import acknowledgment  # noqa: F401
from . import notification    # noqa: F401
from . import audit_log       # noqa: F401
from . import sop_review      # noqa: F401
