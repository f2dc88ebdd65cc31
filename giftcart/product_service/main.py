# giftcart/product_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")


PRODUCTS = {
    1: {
        "id": 1, "name": "Custom Photo Mug", "price": 499.00, "discounted_price": 449.00,
        "delivery_fee": 40.00, "stock": 100, "categories": ["mugs", "gifts"],
        "flash_sale_price": None, "flash_sale_ends_at": None,
    },
    2: {
        "id": 2, "name": "Printed Cushion", "price": 899.00, "discounted_price": None,
        "delivery_fee": 60.00, "stock": 25, "categories": ["home"],
        "flash_sale_price": None, "flash_sale_ends_at": None,
    },
    3: {
        "id": 3, "name": "Heart Photo Frame", "price": 1299.00, "discounted_price": 999.00,
        "delivery_fee": 0.00, "stock": 10, "categories": ["frames", "gifts"],
        "flash_sale_price": 799.00, "flash_sale_ends_at": "2030-01-01T00:00:00+00:00",
    },
}

@app.get("/products/{product_id}")
def get_product(product_id: int):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
