"""Page size and orientation handling for rendered documents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, get_args

from .errors import ValidationError

__all__ = [
    "DEFAULT_PAGE_CONFIG",
    "ORIENTATIONS",
    "STANDARD_SIZES",
    "CustomSize",
    "Orientation",
    "PageConfig",
    "is_standard_size",
    "parse_custom_size",
    "resolve_page_config",
    "validate_orientation",
    "validate_size",
]

Orientation = Literal["portrait", "landscape"]

ORIENTATIONS: tuple[str, ...] = get_args(Orientation)

STANDARD_SIZES: tuple[str, ...] = (
    "Letter",
    "Legal",
    "Tabloid",
    "Ledger",
    "A0",
    "A1",
    "A2",
    "A3",
    "A4",
    "A5",
    "A6",
)

_CUSTOM_SIZE = re.compile(
    r"^(?P<width>\d+(?:\.\d+)?(?:in|cm|mm|px))\s+(?P<height>\d+(?:\.\d+)?(?:in|cm|mm|px))$"
)


@dataclass(frozen=True)
class CustomSize:
    """Width and height of a custom page, each carrying its unit."""

    width: str
    height: str


@dataclass(frozen=True)
class PageConfig:
    size: str
    orientation: Orientation

    def __post_init__(self) -> None:
        validate_size(self.size)
        validate_orientation(self.orientation)

    @property
    def is_landscape(self) -> bool:
        return self.orientation == "landscape"


def is_standard_size(size: str) -> bool:
    return size in STANDARD_SIZES


def parse_custom_size(size: str) -> CustomSize:
    """Split ``"<number><unit> <number><unit>"`` into width and height.

    Standard size names are rejected; callers should check
    :func:`is_standard_size` first.
    """

    match = _CUSTOM_SIZE.fullmatch(size.strip())
    if match is None:
        raise ValidationError(
            f"Invalid page size '{size}'. Expected one of {', '.join(STANDARD_SIZES)} "
            "or '<number><unit> <number><unit>' with units in, cm, mm or px"
        )
    return CustomSize(width=match.group("width"), height=match.group("height"))


def validate_size(size: str) -> str:
    if not isinstance(size, str):
        raise ValidationError("Page size must be a string")
    if is_standard_size(size):
        return size
    parse_custom_size(size)
    return size


def validate_orientation(orientation: str) -> Orientation:
    if orientation not in ORIENTATIONS:
        raise ValidationError(
            f"Invalid orientation '{orientation}'. Expected one of {', '.join(ORIENTATIONS)}"
        )
    return orientation  # type: ignore[return-value]


DEFAULT_PAGE_CONFIG = PageConfig(size="A4", orientation="portrait")


def resolve_page_config(
    size: str | None = None,
    orientation: Orientation | None = None,
    *,
    defaults: PageConfig = DEFAULT_PAGE_CONFIG,
) -> PageConfig:
    """Return the requested overrides, falling back to ``defaults``."""

    return PageConfig(
        size=size if size is not None else defaults.size,
        orientation=orientation if orientation is not None else defaults.orientation,
    )
