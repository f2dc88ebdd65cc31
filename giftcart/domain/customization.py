# giftcart/domain/customization.py
import math
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CustomizationArea(BaseModel):
    """Parametry jednego obszaru nadruku, wyliczone przez pipeline obrazow."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    upload_id: Optional[int] = None
    area_id: Optional[int] = None
    area_name: Optional[str] = None
    image_url: Optional[str] = None
    shape: Optional[str] = None
    scale: float = 1.0
    rotation: float = 0.0
    position_x: float = 0.0
    position_y: float = 0.0


class TemplateCustomization(BaseModel):
    """
    Personalizacja produktu na podstawie szablonu.
    Przenoszona bez zmian z CartItem do OrderItem.
    """

    model_config = ConfigDict(extra="ignore")

    kind: Literal["template"] = "template"
    template_id: Optional[int] = None
    image_urls: List[str] = Field(default_factory=list)
    areas: List[CustomizationArea] = Field(default_factory=list)


def _number(value, default: float) -> float | None:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # NaN / inf nie przejda przez kolumne JSON
    return number if math.isfinite(number) else None


def _walk_areas(raw):
    # stare rekordy trzymaly obszary jako liste albo zagniezdzone dicty
    if isinstance(raw, dict):
        if "areas" in raw:
            yield from _walk_areas(raw["areas"])
        elif any(k in raw for k in ("area_id", "areaId", "image_url", "imageUrl")):
            yield raw
        else:
            for value in raw.values():
                yield from _walk_areas(value)
    elif isinstance(raw, (list, tuple)):
        for value in raw:
            yield from _walk_areas(value)


def summarize_customization(raw) -> dict:
    """
    Buduje plaski opis personalizacji pozycji do snapshotu zamowienia.

    Wadliwe lub brakujace pola sa pomijane, nigdy nie przerywaja tworzenia
    zamowienia. Adresy obrazow sa deduplikowane z zachowaniem kolejnosci.
    """
    if not raw:
        return {}

    summary: dict = {}
    image_urls: list[str] = []

    def _add_url(url):
        if isinstance(url, str) and url and url not in image_urls:
            image_urls.append(url)

    if isinstance(raw, dict):
        template_id = raw.get("template_id", raw.get("templateId"))
        if isinstance(template_id, int):
            summary["template_id"] = template_id
        urls = raw.get("image_urls", raw.get("imageUrls"))
        if isinstance(urls, (list, tuple)):
            for url in urls:
                _add_url(url)

    areas = []
    for area in _walk_areas(raw):
        flat = {}
        for key, alias in (("area_id", "areaId"), ("upload_id", "uploadId")):
            value = area.get(key, area.get(alias))
            if isinstance(value, int):
                flat[key] = value
        for key, alias in (("area_name", "areaName"), ("shape", "shape")):
            value = area.get(key, area.get(alias))
            if isinstance(value, str):
                flat[key] = value
        url = area.get("image_url", area.get("imageUrl"))
        if isinstance(url, str) and url:
            flat["image_url"] = url
            _add_url(url)
        for key, alias, default in (
            ("scale", "scale", 1.0),
            ("rotation", "rotation", 0.0),
            ("position_x", "positionX", 0.0),
            ("position_y", "positionY", 0.0),
        ):
            value = _number(area.get(key, area.get(alias)), default)
            if value is not None:
                flat[key] = value
        if flat:
            areas.append(flat)

    if image_urls:
        summary["image_urls"] = image_urls
    if areas:
        summary["areas"] = areas
    return summary
