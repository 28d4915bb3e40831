from .news import (  # noqa: F401
    Article,
    SECTIONS,
    SECTION_LABELS,
    DEFAULT_SECTIONS,
    section_label,
)
from .state import (  # noqa: F401
    ArticlesView,
    ErrorInfo,
    Filters,
    LoadStatus,
    Preferences,
    ServedArticle,
)
