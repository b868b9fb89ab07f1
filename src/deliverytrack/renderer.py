"""Delivery map view builder.

The renderer holds no protocol state: :func:`build_map_view` is a pure
function of the known positions and labels. Drawing is left to whatever
front end consumes the resulting :class:`MapView`.
"""

from __future__ import annotations

import dataclasses
import logging

from deliverytrack._constants import MSG_MAP_ERROR
from deliverytrack.exceptions import MapInitError
from deliverytrack.models.location import LocationSample
from deliverytrack.models.map_view import (
    GeoBounds,
    LatLng,
    LegendEntry,
    MapErrorPanel,
    MapView,
    Marker,
    MarkerRole,
    MarkerStyle,
    Overlay,
    RouteLine,
)

_logger = logging.getLogger(__name__)

DEFAULT_CENTER = LatLng(latitude=-15.7801, longitude=-47.9292)

COURIER_STYLE = MarkerStyle(color="#8b5cf6", icon="scooter", size_px=40, css_class="delivery-marker")
CUSTOMER_STYLE = MarkerStyle(color="#22c55e", icon="map-pin", size_px=36, css_class="customer-marker")
RESTAURANT_STYLE = MarkerStyle(color="#ef4444", icon="store", size_px=36, css_class="restaurant-marker")

AWAITING_OVERLAY = Overlay(
    title="Aguardando rastreamento",
    message="O rastreamento em tempo real será exibido quando seu pedido sair para entrega.",
)

Position = LatLng | LocationSample | tuple[float, float]


@dataclasses.dataclass(frozen=True)
class MapOptions:
    """Base map surface settings."""

    tile_url: str = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
    attribution: str = '© <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a>'
    default_center: LatLng = DEFAULT_CENTER
    default_zoom: int = 13
    courier_zoom: int = 15
    max_zoom: int = 19
    padding_px: tuple[int, int] = (50, 50)


def _to_latlng(position: Position | None) -> LatLng | None:
    if position is None:
        return None
    if isinstance(position, LatLng):
        return position
    if isinstance(position, LocationSample):
        return LatLng(latitude=position.latitude, longitude=position.longitude)
    latitude, longitude = position
    return LatLng(latitude=latitude, longitude=longitude)


def build_map_view(
    courier: Position | None,
    customer: Position | None = None,
    restaurant: Position | None = None,
    *,
    restaurant_name: str | None = None,
    customer_address: str | None = None,
    options: MapOptions | None = None,
) -> MapView:
    """Build the map view for the current courier, customer and restaurant.

    - The courier marker centres the view at ``courier_zoom``.
    - With courier and customer known, a dashed route joins them and the
      view fits every known point, restaurant included, with padding.
    - Without a courier position the "awaiting tracking" overlay is shown
      and no courier marker is drawn.
    """
    opts = options or MapOptions()
    courier_pos = _to_latlng(courier)
    customer_pos = _to_latlng(customer)
    restaurant_pos = _to_latlng(restaurant)

    markers: list[Marker] = []
    if courier_pos is not None:
        markers.append(
            Marker(
                role=MarkerRole.COURIER,
                position=courier_pos,
                style=COURIER_STYLE,
                title="Entregador",
                description="Sua entrega está a caminho!",
            )
        )
    if customer_pos is not None:
        markers.append(
            Marker(
                role=MarkerRole.CUSTOMER,
                position=customer_pos,
                style=CUSTOMER_STYLE,
                title="Seu Endereço",
                description=customer_address or None,
            )
        )
    if restaurant_pos is not None:
        markers.append(
            Marker(
                role=MarkerRole.RESTAURANT,
                position=restaurant_pos,
                style=RESTAURANT_STYLE,
                title=restaurant_name or "Restaurante",
                description="Restaurante" if restaurant_name else None,
            )
        )

    center = opts.default_center
    zoom: int | None = opts.default_zoom
    route: RouteLine | None = None
    fit_bounds: GeoBounds | None = None

    if courier_pos is not None:
        center = courier_pos
        zoom = opts.courier_zoom

    if courier_pos is not None and customer_pos is not None:
        route = RouteLine(points=(courier_pos, customer_pos))
        points = [courier_pos, customer_pos]
        if restaurant_pos is not None:
            points.append(restaurant_pos)
        fit_bounds = GeoBounds.around(points)
        center = fit_bounds.center
        # Zoom follows from the bounds and the viewport.
        zoom = None

    legend = [
        LegendEntry(label="Entregador", color=COURIER_STYLE.color),
        LegendEntry(label="Você", color=CUSTOMER_STYLE.color),
    ]
    if restaurant_pos is not None:
        legend.append(LegendEntry(label="Restaurante", color=RESTAURANT_STYLE.color))

    return MapView(
        center=center,
        zoom=zoom,
        tile_url=opts.tile_url,
        attribution=opts.attribution,
        max_zoom=opts.max_zoom,
        markers=tuple(markers),
        route=route,
        fit_bounds=fit_bounds,
        padding_px=opts.padding_px,
        overlay=AWAITING_OVERLAY if courier_pos is None else None,
        legend=tuple(legend),
    )


class DeliveryMapRenderer:
    """Validates the base map surface once and renders views from it.

    A construction fault is logged once and every later render returns a
    static :class:`MapErrorPanel` instead of a partial map.
    """

    def __init__(self, options: MapOptions | None = None) -> None:
        self._options: MapOptions | None = None
        self.init_error: MapInitError | None = None
        try:
            self._options = self._init_surface(options or MapOptions())
        except MapInitError as exc:
            _logger.error("Error initializing map: %s", exc)
            self.init_error = exc

    @staticmethod
    def _init_surface(options: MapOptions) -> MapOptions:
        for placeholder in ("{z}", "{x}", "{y}"):
            if placeholder not in options.tile_url:
                raise MapInitError(f"tile_url is missing {placeholder}")
        if not 0 <= options.default_zoom <= options.max_zoom:
            raise MapInitError(f"default_zoom {options.default_zoom} outside 0..{options.max_zoom}")
        if not 0 <= options.courier_zoom <= options.max_zoom:
            raise MapInitError(f"courier_zoom {options.courier_zoom} outside 0..{options.max_zoom}")
        if min(options.padding_px) < 0:
            raise MapInitError("padding_px must be non-negative")
        return options

    @property
    def failed(self) -> bool:
        return self.init_error is not None

    def render(
        self,
        courier: Position | None,
        customer: Position | None = None,
        restaurant: Position | None = None,
        *,
        restaurant_name: str | None = None,
        customer_address: str | None = None,
    ) -> MapView | MapErrorPanel:
        if self._options is None:
            return MapErrorPanel(message=MSG_MAP_ERROR)
        return build_map_view(
            courier,
            customer,
            restaurant,
            restaurant_name=restaurant_name,
            customer_address=customer_address,
            options=self._options,
        )
