# shopcart/catalog_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Catalog Service (dev mock)")


ITEMS = {
    1: {"id": 1, "name": "Keyboard", "description": "Mechanical, 87 keys", "price": "199.99", "available": 25},
    2: {"id": 2, "name": "Mouse", "description": "Wireless", "price": "49.50", "available": 100},
    3: {"id": 3, "name": "Monitor", "description": "27 inch IPS", "price": "899.00", "available": 5},
    42: {"id": 42, "name": "Towel", "description": "Don't panic", "price": "10.00", "available": 42},
}


@app.get("/items")
def list_items():
    return list(ITEMS.values())


@app.get("/items/{item_id}")
def get_item(item_id: int):
    item = ITEMS.get(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item
