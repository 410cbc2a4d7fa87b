"""Shipping cost by distance and weight for the configured delivery services"""
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings

from storefront.stores.geo import haversine_km, find_nearest_active_store


def services():
    return settings.STOREFRONT['SHIPPING_SERVICES']


def shipping_cost(service, distance_km, weight_grams):
    """base + km * rate_per_km + kg * rate_per_kg, rounded to a whole unit"""
    config = settings.STOREFRONT
    distance = Decimal(str(distance_km))
    weight_kg = Decimal(weight_grams or 0) / Decimal('1000')
    cost = service['base_cost'] + distance * config['SHIPPING_RATE_PER_KM'] + weight_kg * config['SHIPPING_RATE_PER_KG']
    return cost.quantize(Decimal('1'), rounding=ROUND_HALF_UP)


def shipping_options(distance_km, weight_grams):
    """Services that deliver over this distance, with their costs"""
    options = []
    for service in services():
        if distance_km > service['max_distance_km']:
            continue
        cost = shipping_cost(service, distance_km, weight_grams)
        options.append({
            'service': service['code'],
            'serviceCode': service['code'],
            'serviceName': service['name'],
            'description': service['description'],
            'cost': cost,
            'etd': service['etd'],
            'estimatedDays': service['etd'],
            'maxDistance': service['max_distance_km'],
        })
    return options


def find_option(distance_km, weight_grams, code):
    for option in shipping_options(distance_km, weight_grams):
        if option['serviceCode'] == code:
            return option
    return None


def distance_to(store, latitude, longitude):
    return round(haversine_km(store.latitude, store.longitude, latitude, longitude), 2)


def store_for_address(address, store=None):
    """
    The store shipping to an address: the one given, or the nearest active
    store. Returns (store, distance_km).
    """
    if store is not None:
        return store, distance_to(store, address.latitude, address.longitude)
    nearest, distance = find_nearest_active_store(address.latitude, address.longitude)
    if nearest is None:
        return None, None
    return nearest, round(distance, 2)


def in_range(distance_km):
    return distance_km is not None and distance_km <= settings.STOREFRONT['MAX_DELIVERY_DISTANCE_KM']
