"""
Injection schedule helpers shared by the bot and the reminder producer.
"""

from datetime import date
from typing import Dict, List, Optional, Tuple

from apps.messaging.conf import get_setting
from apps.messaging.telegram.texts import BotTexts
from apps.patients.models import Patient


def split_injection_date(value: str) -> Tuple[str, str]:
    """
    "2025-03-01T14:30:00" -> ("2025-03-01", "14:30")
    "2025-03-01"          -> ("2025-03-01", <default injection time>)
    """
    day, _, rest = value.partition('T')
    time = rest[:5] if rest else get_setting('DEFAULT_INJECTION_TIME')
    return day, time


def display_date(iso_day: str) -> str:
    """"2025-03-01" -> "01.03.2025"; unparseable values are returned as-is."""
    try:
        parsed = date.fromisoformat(iso_day)
    except ValueError:
        return iso_day
    return parsed.strftime('%d.%m.%Y')


def upcoming_injections(patient: Patient, from_day: date) -> List[Dict]:
    """Scheduled injections on or after `from_day`, earliest first."""
    threshold = from_day.isoformat()
    upcoming = [
        inj for inj in patient.scheduled_injections()
        if str(inj['date'])[:10] >= threshold
    ]
    return sorted(upcoming, key=lambda inj: str(inj['date']))


def injection_due_on(patient: Patient, day: date) -> Optional[Dict]:
    """First scheduled injection whose stored date starts with `day`."""
    prefix = day.isoformat()
    for inj in patient.scheduled_injections():
        if str(inj['date']).startswith(prefix):
            return inj
    return None


def render_schedule(texts: BotTexts, patient: Patient, injections: List[Dict]) -> str:
    name = patient.display_name
    if not injections:
        return texts.no_injection_found.format(name=name)

    msg = texts.schedule_header.format(name=name)
    for inj in injections:
        day, time = split_injection_date(str(inj['date']))
        msg += texts.schedule_item.format(date=display_date(day), time=time) + "\n"
    msg += texts.schedule_footer
    return msg


def render_reminder(texts: BotTexts, patient: Patient, injection: Dict) -> str:
    day, time = split_injection_date(str(injection['date']))
    body = texts.injection_msg.format(name=patient.display_name, date=display_date(day), time=time)
    return f"{texts.reminder_title}\n\n{body}"
