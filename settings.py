import os

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
STORE_COLLECTION = os.getenv("STORE_COLLECTION", "kvstore")

CATALOG_URL = os.getenv("CATALOG_URL", "http://localhost:5173/products.json")
CATALOG_TIMEOUT = float(os.getenv("CATALOG_TIMEOUT", "5"))

# Seconds the order confirmation stays up before checkout resets
ORDER_DISPLAY_DELAY = float(os.getenv("ORDER_DISPLAY_DELAY", "2.0"))

PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
