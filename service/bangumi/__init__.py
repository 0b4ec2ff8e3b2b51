from .cache import CalendarCache, CatalogGeneration
from .client import BangumiClient, BgmListClient
from .date_utils import is_current_season, parse_air_time, to_weekday
from .models import AirTime, CalendarItem, Subject
from .service import BangumiService

__all__ = [
    'CalendarCache',
    'CatalogGeneration',
    'BangumiClient',
    'BgmListClient',
    'is_current_season',
    'parse_air_time',
    'to_weekday',
    'AirTime',
    'CalendarItem',
    'Subject',
    'BangumiService',
]
