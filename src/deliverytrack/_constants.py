"""Internal constants shared across the library."""

DEFAULT_TABLE = "entregador_localizacao"
DELIVERY_COLUMN = "pedido_delivery_id"
USER_AGENT = "deliverytrack/1"

#: Multiplier converting device speed in m/s to km/h.
MPS_TO_KMH = 3.6

# ------------------------------------------------------------------
# Device position options
# ------------------------------------------------------------------

POSITION_TIMEOUT_MS = 10_000
POSITION_MAXIMUM_AGE_MS = 5_000

# ------------------------------------------------------------------
# User-facing messages (pt-BR)
# ------------------------------------------------------------------

MSG_LOAD_ERROR = "Erro ao carregar localização"
MSG_UPDATE_ERROR = "Erro ao atualizar localização"
MSG_UNSUPPORTED = "Geolocalização não suportada"
MSG_POSITION_ERROR = "Erro ao obter localização"
MSG_PERMISSION_DENIED = (
    "A permissão de localização foi negada. Por favor, ative a localização "
    "nas configurações do dispositivo para usar o rastreamento."
)
MSG_CONNECTION_LOST = "Conexão com o rastreamento perdida. Tentando reconectar..."
MSG_MAP_ERROR = "Erro ao carregar mapa"
