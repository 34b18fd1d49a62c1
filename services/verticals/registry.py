"""Lookup table of the verticals offered in the picker."""

from typing import Dict, List

from services.verticals.base import VerticalConfiguration
from services.verticals.construction import ConstructionVertical
from services.verticals.general import GeneralVertical

DEFAULT_VERTICAL_ID = GeneralVertical.id

VERTICALS: Dict[str, VerticalConfiguration] = {
    vertical.id: vertical for vertical in (ConstructionVertical(), GeneralVertical())
}


def get_vertical(vertical_id: str | None = None) -> VerticalConfiguration:
    """Return the vertical for `vertical_id`, or the general one when omitted.

    Raises:
        KeyError: If the id is not registered.
    """
    key = vertical_id or DEFAULT_VERTICAL_ID
    vertical = VERTICALS.get(key)
    if vertical is None:
        raise KeyError(f"Unknown vertical '{key}'")
    return vertical


def list_verticals() -> List[Dict[str, str]]:
    return [vertical.describe() for vertical in VERTICALS.values()]
