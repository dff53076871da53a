# product_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")


PRODUCTS = {
    1: {
        "id": 1,
        "name": "Polo Sporty Stretch Shirt",
        "slug": "polo-sporty-stretch-shirt",
        "price": "59.99",
        "stock": 5,
        "images": ["/images/sample-products/p1-1.jpg"],
    },
    2: {
        "id": 2,
        "name": "Brooks Brothers Long Sleeved Shirt",
        "slug": "brooks-brothers-long-sleeved-shirt",
        "price": "85.90",
        "stock": 10,
        "images": ["/images/sample-products/p2-1.jpg"],
    },
    3: {
        "id": 3,
        "name": "Tommy Hilfiger Classic Fit Dress Shirt",
        "slug": "tommy-hilfiger-classic-fit-dress-shirt",
        "price": "99.95",
        "stock": 0,
        "images": ["/images/sample-products/p3-1.jpg"],
    },
}

@app.get("/products/{product_id}")
def get_product(product_id: int):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
