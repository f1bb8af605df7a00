"""
Field extraction, one extractor per item template.

Item documents differ by template:

- Login (``001``): ``details.fields[]`` entries carry a ``designation``
  (``username``/``password``) and a ``value``.
- Password (``005``): the secret lives at ``details.password``.

Any other field name is looked up by label in ``details.sections[].fields[]``
(``t`` is the label, ``v`` the value) for every template.
"""
from abc import ABC, abstractmethod
from collections.abc import Iterator
from enum import Enum
from typing import Any, Optional

from .exceptions import ExtractionError, UnsupportedTemplateError


class Template(str, Enum):
    LOGIN = "001"
    PASSWORD = "005"


def _details(payload: dict[str, Any]) -> dict[str, Any]:
    details = payload.get("details")
    return details if isinstance(details, dict) else {}


def _dicts(value: Any) -> Iterator[dict[str, Any]]:
    if isinstance(value, list):
        for element in value:
            if isinstance(element, dict):
                yield element


def _scalar(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def section_values(payload: dict[str, Any], label: str) -> list[str]:
    """All values of section fields whose label is ``label``."""
    values = []
    for section in _dicts(_details(payload).get("sections")):
        for field in _dicts(section.get("fields")):
            if field.get("t") == label:
                value = _scalar(field.get("v"))
                if value is not None:
                    values.append(value)
    return values


class FieldExtractor(ABC):
    """Resolves a field name against one template's document shape."""

    template: Template

    def extract(self, payload: dict[str, Any], field: str) -> str:
        """Return the first value of ``field``.

        Raises:
            ExtractionError: If the item has no such field.
        """
        values = self.lookup(payload, field)
        if not values:
            raise ExtractionError(f"no field {field!r} on this {self.template.name.lower()} item")
        return values[0]

    @abstractmethod
    def lookup(self, payload: dict[str, Any], field: str) -> list[str]:
        """All values matching ``field``, possibly none."""


class LoginExtractor(FieldExtractor):
    template = Template.LOGIN
    designations = ("username", "password")

    def lookup(self, payload: dict[str, Any], field: str) -> list[str]:
        if field not in self.designations:
            return section_values(payload, field)
        values = []
        for entry in _dicts(_details(payload).get("fields")):
            if entry.get("designation") == field:
                value = _scalar(entry.get("value"))
                if value is not None:
                    values.append(value)
        return values


class PasswordExtractor(FieldExtractor):
    template = Template.PASSWORD

    def lookup(self, payload: dict[str, Any], field: str) -> list[str]:
        if field != "password":
            return section_values(payload, field)
        value = _scalar(_details(payload).get("password"))
        return [value] if value is not None else []


EXTRACTORS: dict[str, FieldExtractor] = {
    Template.LOGIN.value: LoginExtractor(),
    Template.PASSWORD.value: PasswordExtractor(),
}


def get_extractor(template_id: str) -> FieldExtractor:
    """Look up the extractor for ``template_id``.

    Raises:
        UnsupportedTemplateError: If no extractor handles the template.
    """
    try:
        return EXTRACTORS[template_id]
    except KeyError:
        raise UnsupportedTemplateError(
            f"no matching item: template {template_id!r} is not supported"
        ) from None
