"""
Decoding of the per-task configuration bindings.

Bindings are a loosely typed mapping supplied by the task runner: each key
holds either a string, a nested map or something else entirely. Every
accessor here decodes one key into the shape the caller expects and falls
back to "absent" on a mismatch, logging it instead of failing.
"""
import logging
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

GENERIC_INFORMATION_KEY = "genericInformation"
VARIABLES_KEY = "variables"
SCRATCH_DIR_KEY = "localspace"

JOB_ID_VARIABLE = "PA_JOB_ID"
TASK_ID_VARIABLE = "PA_TASK_ID"


class ConfigurationBindings:
    """
    Read-only view over the bindings of one task.
    """

    def __init__(self, raw: Optional[Mapping[str, Any]] = None):
        self._raw: Dict[str, Any] = dict(raw) if raw else {}

    def __contains__(self, key: str) -> bool:
        return key in self._raw

    def raw(self, key: str) -> Any:
        return self._raw.get(key)

    def string(self, key: str) -> Optional[str]:
        """
        Returns the value of ``key`` if it is a string, None otherwise.
        """
        value = self._raw.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            logger.warning("Binding '%s' is not a string (%s), ignoring it.", key, type(value).__name__)
            return None
        return value

    def mapping(self, key: str) -> Dict[str, Any]:
        """
        Returns the value of ``key`` if it is a map, an empty dict otherwise.
        """
        value = self._raw.get(key)
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            logger.warning("Binding '%s' is not a map (%s), ignoring it.", key, type(value).__name__)
            return {}
        return dict(value)

    @property
    def generic_information(self) -> Dict[str, Any]:
        return self.mapping(GENERIC_INFORMATION_KEY)

    @property
    def variables(self) -> Dict[str, Any]:
        return self.mapping(VARIABLES_KEY)

    @property
    def scratch_dir(self) -> Optional[str]:
        return self.string(SCRATCH_DIR_KEY)

    def generic_value(self, key: str) -> Optional[str]:
        """
        Looks up ``key`` inside the generic information map.

        Non-string values are stringified, missing ones give None.
        """
        value = self.generic_information.get(key)
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)

    def job_and_task_ids(self) -> Optional[tuple]:
        variables = self.variables
        if JOB_ID_VARIABLE in variables and TASK_ID_VARIABLE in variables:
            return str(variables[JOB_ID_VARIABLE]), str(variables[TASK_ID_VARIABLE])
        return None

    def string_entries(self) -> Dict[str, str]:
        """
        Collects every string-valued binding as an environment variable.

        Top-level strings are taken as-is; string entries of nested maps
        (``variables``, ``genericInformation``...) are added as well, without
        overriding a top-level value of the same name. None keys and values
        are skipped.
        """
        entries: Dict[str, str] = {}
        nested: Dict[str, str] = {}
        for key, value in self._raw.items():
            if not isinstance(key, str):
                continue
            if isinstance(value, str):
                entries[key] = value
            elif isinstance(value, Mapping):
                for inner_key, inner_value in value.items():
                    if isinstance(inner_key, str) and isinstance(inner_value, str):
                        nested.setdefault(inner_key, inner_value)
        for key, value in nested.items():
            entries.setdefault(key, value)
        return entries
