from datetime import datetime
from zoneinfo import ZoneInfo

def now_local(tz_name: str = "America/Sao_Paulo") -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))
