"""
Parser for the engine properties files (``key=value`` lines, ``#`` comments).
"""
import logging
import os
from typing import Dict, Optional

from dotenv import dotenv_values

logger = logging.getLogger(__name__)


class PropertiesParser:
    """
    Loads a properties file into a flat dictionary.
    """
    @staticmethod
    def parse(properties_path: Optional[str]) -> Dict[str, str]:
        """
        Parses a properties file from a path.

        A missing file is not an error: the caller falls back to process-wide
        properties and built-in defaults.

        Args:
            properties_path (Optional[str]): Path to the properties file.

        Returns:
            Dict[str, str]: Properties with a value; keys without one are dropped.
        """
        if not properties_path or not os.path.isfile(properties_path):
            logger.info("Configuration file %s not found. Using system properties or standard values.",
                        properties_path)
            return {}
        logger.debug("Load properties from configuration file: %s", properties_path)
        values = dotenv_values(properties_path, interpolate=False, encoding="utf-8")
        return {key: value for key, value in values.items() if value is not None}
