"""Display helpers for courier and customer screens (pt-BR)."""

from __future__ import annotations

from deliverytrack.models.location import LocationFix, LocationSample


def format_coordinate(value: float) -> str:
    """Six decimal places, roughly 0.1 m."""
    return f"{value:.6f}"


def format_accuracy(meters: float | None) -> str | None:
    if not meters:
        return None
    return f"{round(meters)}m"


def format_speed(kmh: float | None) -> str | None:
    if not kmh:
        return None
    return f"{kmh:.1f} km/h"


def order_label(delivery_id: str) -> str:
    """Short order label, e.g. ``Pedido #3F2A9B10``."""
    return f"Pedido #{delivery_id[:8].upper()}"


def tracking_status(is_tracking: bool) -> tuple[str, str]:
    """Heading and description for the courier tracking card."""
    if is_tracking:
        return (
            "Rastreamento Ativo",
            "Sua localização está sendo compartilhada em tempo real com o cliente.",
        )
    return (
        "Rastreamento Inativo",
        "Ative o rastreamento para o cliente acompanhar sua localização.",
    )


def position_details(position: LocationFix | LocationSample) -> list[tuple[str, str]]:
    """Label/value rows describing a fix or stored sample."""
    if isinstance(position, LocationFix):
        accuracy, speed = position.accuracy, position.speed_kmh
    else:
        accuracy, speed = position.accuracy_meters, position.speed_kmh

    rows = [
        ("Latitude", format_coordinate(position.latitude)),
        ("Longitude", format_coordinate(position.longitude)),
    ]
    accuracy_text = format_accuracy(accuracy)
    if accuracy_text is not None:
        rows.append(("Precisão", accuracy_text))
    speed_text = format_speed(speed)
    if speed_text is not None:
        rows.append(("Velocidade", speed_text))
    return rows
