"""Key layout shared by every component that touches the store."""


class StoreKeys:
    """Key names and prefixes."""

    GLOBAL_PAUSE = "PAUSE:ALL"
    CONTACT_PAUSE_PREFIX = "PAUSE:contact:"
    SLEEP_HOURS = "CONFIG:sleep_hours"
    DEFERRED_COUNT = "METRICS:deferred_count"
    DEFERRED_WINDOW = "METRICS:deferred_window"
    CONTACT_PREFIX = "CONTACTS:"
    HISTORY_PREFIX = "HISTORY:"
    SKILLS_ENABLED = "SKILLS:enabled"
    SKILL_CONFIG_PREFIX = "SKILLS:config:"
    STYLE_CACHE_PREFIX = "CACHE:style:"
    PERSONA_CACHE_PREFIX = "CACHE:persona:"

    @classmethod
    def contact_pause(cls, contact_id: str) -> str:
        return f"{cls.CONTACT_PAUSE_PREFIX}{contact_id}"

    @classmethod
    def contact(cls, contact_id: str) -> str:
        return f"{cls.CONTACT_PREFIX}{contact_id}"

    @classmethod
    def history(cls, contact_id: str) -> str:
        return f"{cls.HISTORY_PREFIX}{contact_id}"

    @classmethod
    def skill_config(cls, skill_id: str) -> str:
        return f"{cls.SKILL_CONFIG_PREFIX}{skill_id}"
