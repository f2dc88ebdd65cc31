# giftcart/services/product_client.py
import requests

from giftcart.domain.errors import NotFoundError
from giftcart.utils.retry import http_retry
from giftcart.utils.settings import PRODUCT_SERVICE_URL
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    """
    Klient katalogu produktow (tylko odczyt).
    get_product -> {price, discounted_price, delivery_fee, stock, categories, ...}
    """

    def __init__(self, base_url: str | None = None, timeout: int = 2):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def get_product(self, product_id: int) -> dict:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        resp = requests.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            raise NotFoundError(f"Product {product_id} not found", code="product_not_found")
        resp.raise_for_status()
        return resp.json()
