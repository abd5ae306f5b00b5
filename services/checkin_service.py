import re
from datetime import date, datetime
from typing import Callable, Optional

from config.constants import ALREADY_CHECKED_IN_MESSAGE
from core.exceptions import ApiError
from utils.logger import setup_logger, short_address

FRACTION_PATTERN = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


def parse_check_in_date(raw) -> Optional[date]:
    """lastCheckIn приходит ISO-строкой (с 'Z') или epoch (сек/мс); приводим к локальной дате"""
    if raw is None or raw == "":
        return None

    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        timestamp = raw / 1000 if raw > 1e11 else raw
        return datetime.fromtimestamp(timestamp).date()

    if isinstance(raw, str):
        text = raw.strip()
        if text.isdigit():
            return parse_check_in_date(int(text))
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        # fromisoformat до 3.11 принимает только 3 или 6 цифр дробной части
        text = FRACTION_PATTERN.sub(lambda m: m.group(1) + "." + m.group(2)[:6].ljust(6, "0"), text)
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone()
        return parsed.date()

    raise ValueError(f"Unsupported lastCheckIn value: {raw!r}")


class CheckInService:
    def __init__(self, api, now: Callable[[], datetime] = datetime.now, logger=None):
        self.api = api
        self.now = now
        self.logger = logger or setup_logger("CheckInService")

    async def check_in(self, address: str, proxy: Optional[str] = None) -> None:
        """Ежедневный check-in; идемпотентен в пределах календарного дня и никогда не бросает"""
        short = short_address(address)
        try:
            self.logger.info(f"📅 Checking check-in status for {short}")
            status = await self.api.get_check_in_status(address, proxy)

            raw_last = (status or {}).get('lastCheckIn')
            try:
                last_check_in = parse_check_in_date(raw_last)
            except ValueError as e:
                # Неизвестная дата не считается сегодняшней
                self.logger.warning(f"⚠️ Cannot parse lastCheckIn {raw_last!r} for {short}: {e}")
                last_check_in = None

            if last_check_in is not None and last_check_in == self.now().date():
                self.logger.info(f"✅ Already checked in today for {short}")
                return

            self.logger.info(f"⏳ Performing daily check-in for {short}")
            response = await self.api.check_in(address, proxy)
            points = (response or {}).get('points')
            self.logger.info(f"🎉 Check-in successful for {short}: +{points} points")

        except ApiError as e:
            if e.status == 400 and e.message == ALREADY_CHECKED_IN_MESSAGE:
                self.logger.info(f"✅ Already checked in today for {short}")
            else:
                self.logger.error(f"❌ Check-in failed for {short}: {e}")
        except Exception as e:
            self.logger.error(f"❌ Check-in failed for {short}: {e}")
