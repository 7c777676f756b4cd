"""
Template rendering against a flat APMessage.

Supports:
- {ACARSProcessor.TailCode} for simple substitution
- {key|default} for default values
- {key:format} for formatting (e.g., {ACARSProcessor.AircraftDistanceNm:.1f})
- {key|default:format} for both
"""
import json
import logging
import re
from typing import Any, Callable, Mapping, Optional

logger = logging.getLogger(__name__)


class TemplateEngine:
    """Renders receiver templates with values from the message."""

    # Matches: {name}, {name|default}, {name:format}, {name|default:format}
    # Names may contain dots and list indexes: {VDLM2Message.vdl2.avlc.src.addr}
    VARIABLE_PATTERN = re.compile(
        r'\{([a-zA-Z_][a-zA-Z0-9_.\[\]]*)'  # Variable name
        r'(?:\|([^}:]*?))?'                  # Optional default value
        r'(?::([^}]*?))?'                    # Optional format spec
        r'\}'
    )

    def render(
        self,
        template: str,
        context: Mapping[str, Any],
        default_value: str = '',
        escape: Optional[Callable[[str], str]] = None,
    ) -> str:
        """
        Render a template string with the given message.

        Args:
            template: Template string with {key} placeholders
            context: Flat message
            default_value: Default for missing keys
            escape: Applied to every substituted value

        Returns:
            Rendered string
        """
        if not template:
            return ''

        def replace_var(match):
            var_name = match.group(1)
            var_default = match.group(2)
            format_spec = match.group(3)

            value = context.get(var_name)
            if value is None:
                value = var_default if var_default is not None else default_value

            if format_spec:
                value = self._apply_format(value, format_spec)
            else:
                value = self._to_string(value)

            return escape(value) if escape else value

        return self.VARIABLE_PATTERN.sub(replace_var, template)

    def _to_string(self, value: Any) -> str:
        if isinstance(value, bool):
            return 'true' if value else 'false'
        return str(value)

    def _apply_format(self, value: Any, format_spec: str) -> str:
        """
        Apply a format specification to a value.

        Supported formats:
        - ',' : Thousands separator (e.g., 35000 -> 35,000)
        - '.Nf': N decimal places
        - 'upper': Uppercase
        - 'lower': Lowercase
        - 'title': Title case
        """
        try:
            if format_spec == ',':
                return f"{int(value):,}"
            elif format_spec == 'upper':
                return str(value).upper()
            elif format_spec == 'lower':
                return str(value).lower()
            elif format_spec == 'title':
                return str(value).title()
            elif format_spec.endswith('f'):
                return f"{float(value):{format_spec}}"
            else:
                return f"{value:{format_spec}}"
        except (ValueError, TypeError):
            return self._to_string(value)


def json_escape(value: str) -> str:
    """Escape a value for use inside a JSON string literal."""
    return json.dumps(value)[1:-1]


_engine = TemplateEngine()


def render_template(template: str, message: Mapping[str, Any], escape: Optional[Callable[[str], str]] = None) -> str:
    return _engine.render(template, message, escape=escape)
