import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from schemas.common import TenantOwner, VendorOwner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderEvent:
    """A renewal reminder the scheduler decided to fire"""
    coi_id: int
    building_id: int
    owner: Union[VendorOwner, TenantOwner]
    kind: str
    tag: str
    days_left: int
    expiration_date: datetime

    def to_dict(self) -> dict:
        return {
            "coi_id": self.coi_id,
            "building_id": self.building_id,
            "owner": self.owner.model_dump(),
            "kind": self.kind,
            "tag": self.tag,
            "days_left": self.days_left,
            "expiration_date": self.expiration_date.isoformat(),
        }


def render_expiry_message(event: ReminderEvent, owner_name: Optional[str] = None,
                          building_name: Optional[str] = None) -> str:
    """Plain-text reminder body; falls back to ids when names are not known"""
    owner_name = owner_name or f"{event.owner.type.lower()} {event.owner.id}"
    building_name = building_name or f"building {event.building_id}"
    return (
        f"The COI for {owner_name} at {building_name} expires in {event.days_left} days "
        f"({event.expiration_date.date().isoformat()}). Please upload the renewal from your dashboard."
    )


class Notifier:
    """Delivery collaborator. `send` returns once the event is accepted and
    raises errors.DeliveryError when it is not."""

    def send(self, event: ReminderEvent) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Default notifier: hands the rendered reminder to the log for a downstream relay"""

    def send(self, event: ReminderEvent) -> None:
        logger.info("Reminder %s/%s for COI %s: %s", event.kind, event.tag, event.coi_id,
                    render_expiry_message(event))
