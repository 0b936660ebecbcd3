"""Static administrative-region table and great-circle geometry.

The 17 region centroids are shared by the AI-search aggregator (cache-key
coarsening, availability fan-out) and the nearby-library locator.
"""

import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_KM = 6371.0
NO_GPS_BUCKET = "nogps"


@dataclass(frozen=True)
class RegionCenter:
    code: str
    name: str
    name_ko: str
    lat: float
    lon: float


REGION_CENTERS: tuple[RegionCenter, ...] = (
    RegionCenter("11", "Seoul", "서울", 37.5665, 126.9780),
    RegionCenter("21", "Busan", "부산", 35.1796, 129.0756),
    RegionCenter("22", "Daegu", "대구", 35.8714, 128.6014),
    RegionCenter("23", "Incheon", "인천", 37.4563, 126.7052),
    RegionCenter("24", "Gwangju", "광주", 35.1595, 126.8526),
    RegionCenter("25", "Daejeon", "대전", 36.3504, 127.3845),
    RegionCenter("26", "Ulsan", "울산", 35.5384, 129.3114),
    RegionCenter("29", "Sejong", "세종", 36.4800, 127.0000),
    RegionCenter("31", "Gyeonggi", "경기", 37.4138, 127.5183),
    RegionCenter("32", "Gangwon", "강원", 37.8228, 128.1555),
    RegionCenter("33", "Chungbuk", "충북", 36.6357, 127.4917),
    RegionCenter("34", "Chungnam", "충남", 36.5184, 126.8000),
    RegionCenter("35", "Jeonbuk", "전북", 35.8203, 127.1089),
    RegionCenter("36", "Jeonnam", "전남", 34.8161, 126.4629),
    RegionCenter("37", "Gyeongbuk", "경북", 36.4919, 128.8889),
    RegionCenter("38", "Gyeongnam", "경남", 35.4606, 128.2132),
    RegionCenter("39", "Jeju", "제주", 33.4890, 126.4983),
)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres between two lat/lon points."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push a just past 1 for near-antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def get_nearest_regions(lat: float, lon: float, count: int = 2) -> list[RegionCenter]:
    """Return the ``count`` region centres closest to the given point."""
    ranked = sorted(
        REGION_CENTERS,
        key=lambda region: haversine_distance(lat, lon, region.lat, region.lon),
    )
    return ranked[:count]


def region_bucket(lat: Optional[float], lon: Optional[float], count: int = 2) -> str:
    """Coarse cache-key bucket: ``"nogps"`` or hyphen-joined nearest region codes."""
    if lat is None or lon is None:
        return NO_GPS_BUCKET
    nearest = get_nearest_regions(lat, lon, count)
    if not nearest:
        return NO_GPS_BUCKET
    return "-".join(region.code for region in nearest)


def parse_coordinate(value: Optional[str]) -> Optional[float]:
    """Parse a query-string coordinate; anything non-numeric becomes ``None``."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def format_distance(km: float) -> str:
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{km:.1f}km"
