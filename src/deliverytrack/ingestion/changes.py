"""Change-feed ingestion helpers.

Translates decoded change notifications and fetched rows into
state-store updates.
"""

from __future__ import annotations

import json

from pydantic import ValidationError

from deliverytrack._constants import DELIVERY_COLUMN
from deliverytrack.exceptions import SubscriptionError
from deliverytrack.models.location import LocationSample
from deliverytrack.models.notification import ChangeNotification
from deliverytrack.state.events import LocationUpdate, UpdateSource


def decode_change_payload(payload: bytes) -> ChangeNotification:
    """Decode raw change-feed bytes into a notification.

    Raises :class:`SubscriptionError` for anything that is not a JSON
    object describing a row change.
    """
    try:
        parsed = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SubscriptionError(f"change payload is not JSON: {payload[:64]!r}") from exc
    if not isinstance(parsed, dict):
        raise SubscriptionError("change payload decoded to non-object JSON")
    try:
        return ChangeNotification.model_validate(parsed)
    except ValidationError as exc:
        raise SubscriptionError(f"malformed change payload: {exc.error_count()} error(s)") from exc


def build_update_from_notification(
    notification: ChangeNotification,
    *,
    delivery_id: str,
) -> LocationUpdate | None:
    """Build a state update from a notification.

    Returns ``None`` for changes that do not replace the current row
    (deletes) or that belong to another delivery.
    """
    if not notification.replaces_state:
        return None
    if notification.delivery_id not in (None, delivery_id):
        return None
    row = {DELIVERY_COLUMN: delivery_id, **notification.new}
    try:
        sample = LocationSample.from_row(row)
    except ValidationError as exc:
        raise SubscriptionError(f"notification row is not a location sample: {exc.error_count()} error(s)") from exc
    return LocationUpdate(delivery_id=delivery_id, source=UpdateSource.REALTIME, sample=sample)
