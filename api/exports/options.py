"""Export options value objects and their validating builder.

Pure module: no Django, no network. Shared by the export views and the
Python client so malformed options are rejected before a job exists.

Wire form (JSON) uses camelCase keys::

    {"method": "auto", "quality": "standard", "includeTOC": true,
     "includePageNumbers": true, "headerFooter": true, "landscape": false,
     "margins": {"top": 20, "right": 25, "bottom": 20, "left": 25}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

MARGIN_MIN_MM = 0
MARGIN_MAX_MM = 50
MARGIN_SIDES = ('top', 'right', 'bottom', 'left')


class ExportMethod(str, Enum):
    AUTO = 'auto'
    BROWSER = 'browser'  # headless Chrome print
    OFFICE = 'office'  # LibreOffice DOCX -> PDF conversion


class ExportQuality(str, Enum):
    DRAFT = 'draft'
    STANDARD = 'standard'
    HIGH = 'high'


class ValidationError(ValueError):
    """Export options rejected before submission.

    ``field`` names the offending option (``margins.top`` for nested values).
    """

    def __init__(self, field: str, message: str):
        super().__init__(f'{field}: {message}')
        self.field = field
        self.message = message


@dataclass(frozen=True, slots=True)
class Margins:
    top: float = 20
    right: float = 25
    bottom: float = 20
    left: float = 25

    def to_payload(self) -> dict[str, float]:
        return {'top': self.top, 'right': self.right, 'bottom': self.bottom, 'left': self.left}


@dataclass(frozen=True, slots=True)
class ExportOptions:
    method: ExportMethod = ExportMethod.AUTO
    quality: ExportQuality = ExportQuality.STANDARD
    include_toc: bool = True
    include_page_numbers: bool = True
    header_footer: bool = True
    landscape: bool = False
    margins: Margins = field(default_factory=Margins)

    def to_payload(self) -> dict[str, Any]:
        return {
            'method': self.method.value,
            'quality': self.quality.value,
            'includeTOC': self.include_toc,
            'includePageNumbers': self.include_page_numbers,
            'headerFooter': self.header_footer,
            'landscape': self.landscape,
            'margins': self.margins.to_payload(),
        }


# wire key -> attribute name
_FLAGS = {
    'includeTOC': 'include_toc',
    'includePageNumbers': 'include_page_numbers',
    'headerFooter': 'header_footer',
    'landscape': 'landscape',
}
_SNAKE_TO_WIRE = {v: k for k, v in _FLAGS.items()}
_KNOWN_KEYS = {'method', 'quality', 'margins', *_FLAGS}


def _parse_enum(enum_cls, field_name: str, raw: Any):
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ', '.join(m.value for m in enum_cls)
        raise ValidationError(field_name, f'must be one of {allowed}') from None


def _parse_margin(side: str, raw: Any) -> float:
    name = f'margins.{side}'
    # bool is an int subclass; reject it explicitly
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValidationError(name, 'must be a number of millimetres')
    if raw != raw:  # NaN
        raise ValidationError(name, 'must be a number of millimetres')
    if raw < MARGIN_MIN_MM or raw > MARGIN_MAX_MM:
        raise ValidationError(name, f'must be between {MARGIN_MIN_MM} and {MARGIN_MAX_MM} mm')
    return raw


def _parse_margins(raw: Any) -> Margins:
    if raw is None:
        return Margins()
    if isinstance(raw, Margins):
        raw = raw.to_payload()
    if not isinstance(raw, Mapping):
        raise ValidationError('margins', 'must be an object with top/right/bottom/left')
    for key in raw:
        if key not in MARGIN_SIDES:
            raise ValidationError(f'margins.{key}', 'unknown margin')
    defaults = Margins()
    values = {}
    for side in MARGIN_SIDES:
        values[side] = _parse_margin(side, raw[side]) if side in raw else getattr(defaults, side)
    return Margins(**values)


def build_export_options(data: Mapping[str, Any] | None = None, **overrides: Any) -> ExportOptions:
    """Validate user input into ``ExportOptions``.

    Accepts wire keys (``includeTOC``) or attribute names (``include_toc``).
    Raises ``ValidationError`` naming the first offending field; values are
    never clamped.
    """
    if data is not None and not isinstance(data, Mapping):
        raise ValidationError('options', 'must be an object')
    merged: dict[str, Any] = {}
    for key, value in {**(data or {}), **overrides}.items():
        merged[_SNAKE_TO_WIRE.get(key, key)] = value
    for key in merged:
        if key not in _KNOWN_KEYS:
            raise ValidationError(key, 'unknown option')

    kwargs: dict[str, Any] = {}
    if merged.get('method') is not None:
        kwargs['method'] = _parse_enum(ExportMethod, 'method', merged['method'])
    if merged.get('quality') is not None:
        kwargs['quality'] = _parse_enum(ExportQuality, 'quality', merged['quality'])
    for wire, attr in _FLAGS.items():
        if merged.get(wire) is None:
            continue
        if not isinstance(merged[wire], bool):
            raise ValidationError(wire, 'must be true or false')
        kwargs[attr] = merged[wire]
    kwargs['margins'] = _parse_margins(merged.get('margins'))
    return ExportOptions(**kwargs)
