from __future__ import annotations

import ipaddress
import math
from typing import Optional

from .model import AttendanceSettings, LocationCheck, LocationInput

EARTH_RADIUS_METERS = 6_371_000


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


def ip_in_ranges(ip: Optional[str], ranges) -> bool:
    if not ranges:
        return True
    if not ip:
        return False
    try:
        addr = ipaddress.ip_address(ip.strip())
    except ValueError:
        return False
    for cidr in ranges:
        try:
            if addr in ipaddress.ip_network(str(cidr).strip(), strict=False):
                return True
        except ValueError:
            continue
    return False


class LocationVerifier:
    """Checks a check-in against the office IP ranges and GPS geofence."""

    def verify(self, settings: AttendanceSettings, location: LocationInput) -> LocationCheck:
        reasons: list[str] = []

        ip_ok = ip_in_ranges(location.ip_address, settings.office_ip_ranges)
        if not ip_ok:
            reasons.append("IP address is outside the office network")

        has_fix = location.latitude is not None and location.longitude is not None
        has_office = settings.office_latitude is not None and settings.office_longitude is not None
        distance = None

        if has_fix and has_office:
            distance = haversine_meters(
                float(location.latitude),
                float(location.longitude),
                float(settings.office_latitude),
                float(settings.office_longitude),
            )
            gps_ok = distance <= settings.allowed_radius_meters
            if not gps_ok:
                reasons.append(f"You are {round(distance)}m from the office (allowed {settings.allowed_radius_meters}m)")
        elif settings.require_location:
            gps_ok = False
            reasons.append("Location is required to check in")
        else:
            gps_ok = True

        return LocationCheck(ip_ok=ip_ok, gps_ok=gps_ok, distance_meters=distance, reasons=tuple(reasons))
