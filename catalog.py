"""
Static product catalog.

Products and categories are fixed at startup and never written to. Handlers
receive a Catalog through deps.get_catalog so tests can swap in their own.
"""

from typing import List, Optional

from schemas import Category, Product

DEAL_TAG = "deal"

CATEGORIES = [
    Category(id="bikes", name="Bikes"),
    Category(id="components", name="Components"),
    Category(id="clothing", name="Clothing"),
    Category(id="accessories", name="Accessories"),
]

PRODUCTS = [
    Product(id="P1", name="Sport-100 Helmet", brand="Adventure Works", category="accessories",
            price=40.00, tag=DEAL_TAG, image="/img/helmet-sport-100.jpg"),
    Product(id="P2", name="Mountain-200 Black 42", brand="Adventure Works", category="bikes",
            price=2294.99, image="/img/mountain-200.jpg"),
    Product(id="P3", name="Road-550-W Yellow 44", brand="Adventure Works", category="bikes",
            price=1120.49, tag=DEAL_TAG, image="/img/road-550-w.jpg"),
    Product(id="P4", name="Touring-1000 Blue 50", brand="Adventure Works", category="bikes",
            price=2384.07, tag="new", image="/img/touring-1000.jpg"),
    Product(id="P5", name="HL Mountain Frame", brand="Shimano", category="components",
            price=1364.50, image="/img/hl-mountain-frame.jpg"),
    Product(id="P6", name="ML Road Pedal", brand="Shimano", category="components",
            price=62.09, tag=DEAL_TAG, image="/img/ml-road-pedal.jpg"),
    Product(id="P7", name="HL Crankset", brand="SRAM", category="components",
            price=404.99, image="/img/hl-crankset.jpg"),
    Product(id="P8", name="Long-Sleeve Logo Jersey L", brand="Adventure Works", category="clothing",
            price=49.99, image="/img/jersey-long-sleeve.jpg"),
    Product(id="P9", name="Half-Finger Gloves M", brand="Pearl Izumi", category="clothing",
            price=24.49, tag=DEAL_TAG, image="/img/gloves-half-finger.jpg"),
    Product(id="P10", name="Classic Vest S", brand="Pearl Izumi", category="clothing",
            price=63.50, image="/img/classic-vest.jpg"),
    Product(id="P11", name="Water Bottle - 30 oz.", brand="CamelBak", category="accessories",
            price=4.99, image="/img/water-bottle.jpg"),
    Product(id="P12", name="Hydration Pack - 70 oz.", brand="CamelBak", category="accessories",
            price=54.99, tag="new", image="/img/hydration-pack.jpg"),
]


class Catalog:

    def __init__(self, products: List[Product], categories: List[Category]):
        self.products = list(products)
        self.categories = list(categories)

    def get(self, product_id: str) -> Optional[Product]:
        for product in self.products:
            if product.id == product_id:
                return product
        return None

    def list_products(self, category: Optional[str] = None, tag: Optional[str] = None, q: Optional[str] = None) -> List[Product]:
        """Filter by exact category and tag, and by case-insensitive substring of name or brand."""
        found = self.products
        if category:
            found = [p for p in found if p.category == category]
        if tag:
            found = [p for p in found if p.tag == tag]
        if q:
            term = q.lower()
            found = [p for p in found if term in p.name.lower() or term in p.brand.lower()]
        return list(found)

    def deals(self) -> List[Product]:
        return self.list_products(tag=DEAL_TAG)


def default_catalog() -> Catalog:
    return Catalog(PRODUCTS, CATEGORIES)
