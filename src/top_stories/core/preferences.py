import threading

from pydantic import ValidationError

from ..errors import UnknownSectionError
from ..logging_config import get_logger
from ..models.news import SECTIONS
from ..models.state import Filters, Preferences
from ..tools.storage import KeyValueStorage, MemoryStorage, load_slice, save_slice


logger = get_logger("core.preferences")

PREFERENCES_SLICE = "preferences"


class PreferencesStore:
    """The user's selected section and active filters, persisted."""

    def __init__(self, storage: KeyValueStorage | None = None, default_section: str = "home") -> None:
        self._storage = storage if storage is not None else MemoryStorage()
        self._default_section = default_section
        self._lock = threading.Lock()
        self._preferences = self._restore()

    def _restore(self) -> Preferences:
        state = load_slice(self._storage, PREFERENCES_SLICE)
        if state:
            try:
                return Preferences.model_validate(state)
            except ValidationError as exc:
                logger.warning("preferences_restore_failed", error=str(exc))
        return Preferences(selected_section=self._default_section)

    def _update(self, preferences: Preferences) -> Preferences:
        with self._lock:
            self._preferences = preferences
            save_slice(self._storage, PREFERENCES_SLICE, preferences.model_dump(mode="json"))
        return preferences

    @property
    def preferences(self) -> Preferences:
        return self._preferences

    @property
    def selected_section(self) -> str:
        return self._preferences.selected_section

    @property
    def filters(self) -> Filters:
        return self._preferences.filters

    def set_selected_section(self, section: str) -> Preferences:
        if section not in SECTIONS:
            raise UnknownSectionError(section)
        logger.info("preferences_section_selected", section=section)
        return self._update(self._preferences.model_copy(update={"selected_section": section}))

    def set_location_filter(self, location: str) -> Preferences:
        filters = self.filters.model_copy(update={"location": location})
        return self._update(self._preferences.model_copy(update={"filters": filters}))

    def set_keywords_filter(self, keywords: str) -> Preferences:
        filters = self.filters.model_copy(update={"keywords": keywords})
        return self._update(self._preferences.model_copy(update={"filters": filters}))

    def clear_filters(self) -> Preferences:
        return self._update(self._preferences.model_copy(update={"filters": Filters()}))

    def reset_preferences(self) -> Preferences:
        logger.info("preferences_reset")
        return self._update(Preferences(selected_section=self._default_section))
