"""
Portal settings resolution and partial-update merging.

Each scope ("global" or a project key) owns one JSON record in the settings
store under portal.settings.<scope>. Reads degrade to defaults on any store
or decoding problem; writes validate the whole update first and then replace
the record with a single store write, so a rejected update persists nothing.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..auth.authenticator import ActingUser
from ..logging_utils import format_error_log, get_log_extra
from ..models.error_models import (
    InvalidButtonEntry,
    InvalidInput,
    InvalidQuery,
    StoreWriteFailure,
)
from ..models.portal import (
    BUTTON_SLOTS,
    GLOBAL_SCOPE,
    ButtonConfig,
    ButtonSlotUpdate,
    PortalConfig,
    PortalConfigUpdate,
    normalize_scope,
)
from ..storage.kv_store import KVStore
from .query_validator import EMPTY_QUERY_MESSAGE, QueryValidator

logger = logging.getLogger(__name__)

SETTINGS_KEY_PREFIX = "portal.settings."
DEFAULT_FALLBACK_PROJECT_KEY = "DEMO"
DEFAULT_QUERY_TEMPLATE = "project = {project} ORDER BY created DESC"


class PortalSettingsService:
    """
    Resolves and stores portal configuration per scope.

    Stored queries are only used when useCustomQuery is set; otherwise the
    generated default for the scope applies. Turning useCustomQuery off keeps
    the stored query so it can be reactivated later.
    """

    def __init__(
        self,
        kv_store: KVStore,
        validator: QueryValidator,
        fallback_project_key: str = DEFAULT_FALLBACK_PROJECT_KEY,
        default_query_template: str = DEFAULT_QUERY_TEMPLATE,
    ) -> None:
        """
        Initialize the service.

        Args:
            kv_store: Settings store.
            validator: Validator consulted before a query is persisted.
            fallback_project_key: Project used by the global scope's default query.
            default_query_template: Default query with a {project} placeholder.
        """
        self._kv_store = kv_store
        self._validator = validator
        self._fallback_project_key = fallback_project_key
        self._default_query_template = default_query_template

    @staticmethod
    def settings_key(scope: Optional[str]) -> str:
        return SETTINGS_KEY_PREFIX + normalize_scope(scope)

    def default_query(self, scope: Optional[str]) -> str:
        """Generated query for scope: its own project, or the fallback for global."""
        scope = normalize_scope(scope)
        project = self._fallback_project_key if scope == GLOBAL_SCOPE else scope
        return self._default_query_template.replace("{project}", project)

    def resolve(self, scope: Optional[str]) -> PortalConfig:
        """
        Load the stored configuration for scope.

        Never raises: missing, unreadable or undecodable records resolve to
        an empty PortalConfig.
        """
        key = self.settings_key(scope)
        try:
            raw = self._kv_store.get(key)
        except Exception as e:
            logger.warning(
                format_error_log("PORTAL-STORE-003", "Settings read failed, using defaults", key=key, error=e),
                extra=get_log_extra("PORTAL-STORE-003"),
            )
            return PortalConfig()

        if raw is None:
            return PortalConfig()

        try:
            return PortalConfig.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                format_error_log(
                    "PORTAL-STORE-004",
                    "Stored settings are not a valid portal configuration, using defaults",
                    key=key,
                    errors=e.error_count(),
                ),
                extra=get_log_extra("PORTAL-STORE-004"),
            )
            return PortalConfig()

    def effective_query(self, scope: Optional[str]) -> str:
        """Query to run for scope. Always non-empty."""
        return self._effective_query(self.resolve(scope), scope)

    def _effective_query(self, config: PortalConfig, scope: Optional[str]) -> str:
        if config.use_custom_query and config.query and config.query.strip():
            return config.query.strip()
        return self.default_query(scope)

    def describe(self, scope: Optional[str]) -> Dict[str, Any]:
        """Settings view returned by GET /settings."""
        scope = normalize_scope(scope)
        config = self.resolve(scope)
        default_query = self.default_query(scope)

        body: Dict[str, Any] = {
            "projectKey": scope,
            "jql": config.query or default_query,
            "useCustomJql": config.use_custom_query,
            "defaultJql": default_query,
            "effectiveJql": self._effective_query(config, scope),
            "buttons": config.configured_buttons(),
            "linkedSpaces": sorted(config.linked_spaces),
        }
        for slot, button in enumerate(config.buttons, start=1):
            body[f"button{slot}Label"] = button.label if button else ""
            body[f"button{slot}Url"] = button.url if button else ""
        return body

    def save(self, user: ActingUser, scope: Optional[str], update: PortalConfigUpdate) -> str:
        """
        Merge update into the stored configuration for scope.

        Only fields present in update change. The whole update is validated
        before the single store write.

        Returns:
            The normalized scope the update was stored under.

        Raises:
            InvalidQuery: If the resulting custom query is empty or rejected by the parser.
            InvalidButtonEntry: If a button slot has only one of label/url.
            InvalidInput: If linked spaces contain blank entries.
            StoreWriteFailure: If the current record cannot be read or the write fails.
        """
        scope = normalize_scope(scope)
        current = self._load_for_update(scope)

        buttons = current.buttons
        if update.is_set("buttons"):
            buttons = self._apply_button_updates(current.buttons, update.buttons)

        linked_spaces = current.linked_spaces
        if update.is_set("linked_spaces"):
            linked_spaces = self._validate_linked_spaces(update.linked_spaces)

        query = current.query
        if update.is_set("query"):
            query = update.query.strip() or None

        use_custom_query = current.use_custom_query
        if update.is_set("use_custom_query"):
            use_custom_query = update.use_custom_query

        if update.is_set("query") or update.is_set("use_custom_query"):
            self._check_query(user, query, use_custom_query, query_supplied=update.is_set("query"))

        merged = PortalConfig(
            query=query,
            use_custom_query=use_custom_query,
            buttons=buttons,
            linked_spaces=linked_spaces,
        )
        self._write(scope, merged)

        changed = sorted(
            name
            for name in ("query", "use_custom_query", "buttons", "linked_spaces")
            if update.is_set(name)
        )
        logger.info(f"Saved portal settings for scope {scope} by {user.name} (fields: {changed})")
        return scope

    def save_buttons(
        self, user: ActingUser, scope: Optional[str], buttons: List[ButtonSlotUpdate]
    ) -> str:
        """Update button slots only. Same validation and atomicity as save."""
        return self.save(user, scope, PortalConfigUpdate(buttons=buttons))

    def list_scopes(self) -> List[str]:
        """Scopes that have a stored record."""
        return [
            key[len(SETTINGS_KEY_PREFIX):]
            for key in self._kv_store.keys(SETTINGS_KEY_PREFIX)
        ]

    def _load_for_update(self, scope: str) -> PortalConfig:
        key = self.settings_key(scope)
        try:
            raw = self._kv_store.get(key)
        except Exception as e:
            raise StoreWriteFailure(
                f"Failed to load current settings for {scope}: {e}"
            ) from e

        if raw is None:
            return PortalConfig()

        try:
            return PortalConfig.model_validate_json(raw)
        except ValidationError:
            logger.warning(
                format_error_log("PORTAL-STORE-004", "Replacing undecodable settings record", key=key),
                extra=get_log_extra("PORTAL-STORE-004"),
            )
            return PortalConfig()

    def _check_query(
        self,
        user: ActingUser,
        query: Optional[str],
        use_custom_query: bool,
        query_supplied: bool,
    ) -> None:
        if use_custom_query and not query:
            raise InvalidQuery("Invalid JQL query", details=[EMPTY_QUERY_MESSAGE])

        if query and (use_custom_query or query_supplied):
            validation = self._validator.validate(user, query)
            if not validation.valid:
                logger.warning(f"Rejected settings update with invalid query: {validation.messages()}")
                raise InvalidQuery("Invalid JQL query", details=validation.messages())

    @staticmethod
    def _apply_button_updates(
        slots: List[Optional[ButtonConfig]], updates: List[ButtonSlotUpdate]
    ) -> List[Optional[ButtonConfig]]:
        if len(updates) > BUTTON_SLOTS:
            raise InvalidButtonEntry(
                f"At most {BUTTON_SLOTS} buttons can be configured, got {len(updates)}"
            )

        new_slots = list(slots)
        seen = set()
        for position, entry in enumerate(updates, start=1):
            slot = entry.slot if entry.slot is not None else position
            if not 1 <= slot <= BUTTON_SLOTS:
                raise InvalidButtonEntry(
                    f"Button slot must be between 1 and {BUTTON_SLOTS}, got {slot}"
                )
            if slot in seen:
                raise InvalidButtonEntry(f"Button slot {slot} was given more than once")
            seen.add(slot)

            label = (entry.label or "").strip()
            url = (entry.url or "").strip()
            if label and url:
                new_slots[slot - 1] = ButtonConfig(label=label, url=url)
            elif not label and not url:
                new_slots[slot - 1] = None
            else:
                raise InvalidButtonEntry(
                    f"Invalid button configuration in slot {slot}. "
                    "Each button must have 'label' and 'url'"
                )
        return new_slots

    @staticmethod
    def _validate_linked_spaces(spaces: List[str]) -> set:
        cleaned = {space.strip() for space in spaces}
        if "" in cleaned:
            raise InvalidInput("Linked space keys cannot be blank")
        return cleaned

    def _write(self, scope: str, config: PortalConfig) -> None:
        try:
            self._kv_store.put(
                self.settings_key(scope), config.model_dump_json(by_alias=True)
            )
        except StoreWriteFailure:
            raise
        except Exception as e:
            logger.error(
                format_error_log("PORTAL-STORE-002", "Settings write failed", scope=scope, error=e),
                extra=get_log_extra("PORTAL-STORE-002"),
            )
            raise StoreWriteFailure(f"Failed to save settings: {e}") from e
