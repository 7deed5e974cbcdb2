"""
Mustache template rendering for forwarded SMS emails.

Templates use {{placeholder}} syntax with the keys of
InboundSms.template_context(): index, status, from_number,
received_time, body.
"""

import logging
from typing import Any, Mapping

import pystache
from pystache.parser import ParsingError

from ..exceptions import TemplateError

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """
    Renders plain-text mustache templates.

    Output is never HTML-escaped, since it goes into a text/plain email.
    Unknown placeholders render as empty strings.
    """

    def __init__(self) -> None:
        self._renderer = pystache.Renderer(
            escape=lambda text: text,
            missing_tags="ignore",
        )

    @staticmethod
    def validate(template: str) -> None:
        """
        Check that a template parses.

        Raises:
            TemplateError: If the template is malformed
        """
        try:
            pystache.parse(template)
        except ParsingError as e:
            raise TemplateError(f"Invalid template {template!r}: {e}") from e

    def render(self, template: str, context: Mapping[str, Any]) -> str:
        """
        Render a template against a context.

        Raises:
            TemplateError: If the template is malformed
        """
        try:
            return self._renderer.render(template, dict(context))
        except ParsingError as e:
            logger.error(f"Failed to render template {template!r}: {e}")
            raise TemplateError(f"Failed to render template: {e}") from e
