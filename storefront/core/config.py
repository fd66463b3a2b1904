import os
from dotenv import load_dotenv

# Carga el .env de la raíz del proyecto
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# Links públicos (vista del pedido)
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000").strip().rstrip("/")

# Panel admin: token compartido en el header X-Admin-Token
ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN", "").strip()

# Pedidos
ORDER_RATE_LIMIT = int(os.getenv("ORDER_RATE_LIMIT", "10"))
ORDER_RATE_WINDOW_SECONDS = int(os.getenv("ORDER_RATE_WINDOW_SECONDS", "60"))
TRUST_PROXY_HEADERS = _env_flag("TRUST_PROXY_HEADERS")

# Teléfonos (WhatsApp)
PHONE_COUNTRY_CODE = os.getenv("PHONE_COUNTRY_CODE", "54").strip()

# Carrito persistido (una sesión por archivo)
CART_STORE_DIR = os.getenv("CART_STORE_DIR", "./.carts")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
