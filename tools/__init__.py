from .geocoding_tools import NominatimGeocoder, NotFoundError, PhotonGeocoder
from .location_resolver import LocationResolver
from .routing_tools import RouteComputationError, haversine_km

__all__ = [
    "LocationResolver",
    "NominatimGeocoder",
    "NotFoundError",
    "PhotonGeocoder",
    "RouteComputationError",
    "haversine_km",
]
