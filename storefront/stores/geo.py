"""Distance helpers for store lookup and shipping"""
import math

from .models import Store

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1, lng1, lat2, lng2):
    """Great-circle distance between two coordinates in kilometres"""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def nearest_store(lat, lng, stores):
    """
    Return (store, distance_km) for the closest store, or (None, None)
    when there are no candidates.
    """
    best, best_distance = None, None
    for store in stores:
        distance = haversine_km(lat, lng, store.latitude, store.longitude)
        if best_distance is None or distance < best_distance:
            best, best_distance = store, distance
    return best, best_distance


def find_nearest_active_store(lat, lng):
    return nearest_store(lat, lng, Store.objects.alive().filter(is_active=True))
