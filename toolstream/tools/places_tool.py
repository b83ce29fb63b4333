# Contains the place lookup tools: nearby_search, text_search and find_place (Google Maps Platform).
# Date: 2025-06-14
# Version: 0.1.0

import math
from typing import Any, Dict, List, Optional, Type

import httpx
from pydantic import BaseModel, Field, field_validator

from toolstream.core.config import ProviderCredentials
from toolstream.core.errors import ToolError
from toolstream.utils.logger import console

from .base_tool import BaseTool

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
NEARBY_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"

DEFAULT_RADIUS = 3000
MAX_RADIUS = 50000
MAX_PLACES = 5
EARTH_RADIUS_M = 6371008.8


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def _trim(value: float) -> float:
    return round(float(value), 6)


class PlaceSearchInput(BaseModel):
    """
    Input model shared by nearby_search and text_search.
    Attributes:
        location (str): Free-text location to centre the search on, e.g. 'Boston'.
        type (str): The kind of place, e.g. 'cafe', 'restaurant', 'hotel'.
        keyword (Optional[str]): Extra term to narrow the search.
        radius (int): Search radius in metres, capped at 50000.
    """
    location: str = Field(..., min_length=1, description="The location name given by the user.")
    type: str = Field(..., min_length=1, description="The type of place to search for (e.g. cafe, restaurant, hotel, museum).")
    keyword: Optional[str] = Field(default=None, description="An optional keyword to narrow the search.")
    radius: int = Field(default=DEFAULT_RADIUS, gt=0, description="The radius in meters (max 50000, default 3000).")

    @field_validator("radius")
    @classmethod
    def _cap_radius(cls, value: int) -> int:
        return min(value, MAX_RADIUS)


class FindPlaceInput(BaseModel):
    """Input model for the find_place tool."""
    query: str = Field(..., min_length=1, description="The address or place name to geocode.")


class GooglePlacesTool(BaseTool):
    """Shared geocoding and places plumbing for the Google Maps tools."""

    def __init__(self, credentials: ProviderCredentials, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(credentials, transport)
        if not credentials.google_maps_api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY is not set in the .env file.")

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {**params, "key": self._credentials.google_maps_api_key}
        try:
            async with self._http_client() as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ToolError(f"Google Maps request failed: {e}") from e

    async def _geocode(self, address: str) -> List[Dict[str, Any]]:
        data = await self._get_json(GEOCODE_URL, {"address": address})
        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise ToolError(f"Geocoding failed for '{address}': {status} {data.get('error_message', '')}".strip())
        results = data.get("results") or []
        if not results:
            raise ToolError(f"No location found for '{address}'.")
        return results

    async def _resolve_center(self, location: str) -> Dict[str, Any]:
        top = (await self._geocode(location))[0]
        coords = top["geometry"]["location"]
        center = {"lat": _trim(coords["lat"]), "lng": _trim(coords["lng"])}
        console.info(f"Resolved '{location}' to {center['lat']}, {center['lng']}")
        return {"center": center, "formatted_address": top.get("formatted_address", location)}

    async def _search(self, url: str, params: Dict[str, Any], center: Dict[str, float], radius: int) -> List[Dict[str, Any]]:
        data = await self._get_json(url, params)
        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise ToolError(f"Places search failed: {status} {data.get('error_message', '')}".strip())

        places = []
        for raw in data.get("results") or []:
            coords = (raw.get("geometry") or {}).get("location")
            if not coords:
                continue
            distance = haversine_m(center["lat"], center["lng"], coords["lat"], coords["lng"])
            if distance > radius:
                continue
            places.append({
                "name": raw.get("name", "Unnamed Place"),
                "place_id": raw.get("place_id"),
                "address": raw.get("vicinity") or raw.get("formatted_address", ""),
                "location": {"lat": coords["lat"], "lng": coords["lng"]},
                "distance": round(distance, 1),
                "rating": raw.get("rating"),
                "reviews_count": raw.get("user_ratings_total", 0),
                "price_level": raw.get("price_level"),
                "is_open": (raw.get("opening_hours") or {}).get("open_now"),
                "types": raw.get("types", []),
            })
        places.sort(key=lambda place: place["distance"])
        return places[:MAX_PLACES]


class NearbySearchTool(GooglePlacesTool):
    """
    Two-stage lookup: geocode the free-text location, then list places of the
    requested type around it, nearest first.
    """
    name: str = "nearby_search"
    description: str = "Searches for places of a given type (restaurants, cafes, hotels, attractions) near a location."
    args_schema: Type[BaseModel] = PlaceSearchInput

    async def execute(self, location: str, type: str, keyword: Optional[str] = None, radius: int = DEFAULT_RADIUS) -> Dict[str, Any]:
        console.info(f"Executing tool '{self.name}': {type} near '{location}' within {radius}m")
        resolved = await self._resolve_center(location)
        center = resolved["center"]
        params = {"location": f"{center['lat']},{center['lng']}", "radius": radius, "type": type}
        if keyword:
            params["keyword"] = keyword
        results = await self._search(NEARBY_URL, params, center, radius)
        return {"results": results, **resolved}


class TextSearchTool(GooglePlacesTool):
    """
    Keyword-driven place search biased towards a geocoded location.
    """
    name: str = "text_search"
    description: str = "Searches places by keyword (e.g. 'vegan pizza') around a location."
    args_schema: Type[BaseModel] = PlaceSearchInput

    async def execute(self, location: str, type: str, keyword: Optional[str] = None, radius: int = DEFAULT_RADIUS) -> Dict[str, Any]:
        console.info(f"Executing tool '{self.name}': '{keyword or type}' around '{location}'")
        resolved = await self._resolve_center(location)
        center = resolved["center"]
        query = f"{keyword} {type}" if keyword else type
        params = {"query": query, "location": f"{center['lat']},{center['lng']}", "radius": radius}
        results = await self._search(TEXT_SEARCH_URL, params, center, radius)
        return {"results": results, **resolved}


class FindPlaceTool(GooglePlacesTool):
    """
    Forward geocoding: turns an address or place name into candidate features.
    """
    name: str = "find_place"
    description: str = "Finds a place or address and returns its coordinates and formatted address."
    args_schema: Type[BaseModel] = FindPlaceInput

    async def execute(self, query: str) -> Dict[str, Any]:
        console.info(f"Executing tool '{self.name}' for: '{query}'")
        features = []
        for result in await self._geocode(query):
            coords = result["geometry"]["location"]
            formatted = result.get("formatted_address", "")
            features.append({
                "id": result.get("place_id"),
                "name": formatted.split(",")[0],
                "formatted_address": formatted,
                "geometry": {"type": "Point", "coordinates": [coords["lng"], coords["lat"]]},
                "feature_type": (result.get("types") or [None])[0],
            })
        return {"features": features}
