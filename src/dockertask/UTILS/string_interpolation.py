"""
Utilities for string interpolation using environment variables.
"""
import re
from typing import Dict, Mapping

# Group 1: braced name, group 2: '-' or '+' modifier, group 3: alternative
# value, group 4: bare $NAME
_TOKEN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_.\-]*)(?::(-|\+)([^}]*))?\}|\$([A-Za-z_][A-Za-z0-9_]*)')


class EnvironmentInterpolator:
    """
    Utility for interpolating environment variables in strings.
    Supports $VAR, ${VAR}, ${VAR:-default} and ${VAR:+value}.

    Tokens naming a variable absent from the context are left untouched, so
    that the container tooling can still resolve them itself (ARG, ENV...).
    """
    @staticmethod
    def interpolate(template: str, context: Mapping[str, str]) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        :param template: The string containing $VAR / ${VAR} placeholders.
        :param context: The environment variables context.
        :return: The interpolated string.
        """
        def replace(match):
            var_name = match.group(1) or match.group(4)
            modifier = match.group(2)
            alt_value = match.group(3)

            if var_name not in context:
                return match.group(0)
            value = context[var_name]

            if modifier == '-':
                return value if value else alt_value
            elif modifier == '+':
                return alt_value if value else ''
            return value

        return _TOKEN.sub(replace, template)

    @staticmethod
    def unresolved(template: str, context: Mapping[str, str]) -> Dict[str, int]:
        """
        Counts the tokens of ``template`` that ``context`` cannot resolve.
        """
        missing: Dict[str, int] = {}
        for match in _TOKEN.finditer(template):
            name = match.group(1) or match.group(4)
            if name not in context:
                missing[name] = missing.get(name, 0) + 1
        return missing
