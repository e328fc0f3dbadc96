from sqlalchemy.orm import Session

from marketplace_onboarding.models.products import Product


def get_product(db: Session, product_code: str) -> Product | None:
    return db.query(Product).filter(Product.product_code == product_code).first()


def upsert_product(db: Session, product_code: str, product_name: str | None = None) -> Product:
    """Stage a product row; an existing display name is kept unless a new one is given."""
    if not product_code:
        raise ValueError("product_code is required")
    product = get_product(db, product_code)
    if product:
        if product_name:
            product.product_name = product_name
    else:
        product = Product(product_code=product_code, product_name=product_name)
        db.add(product)
    return product
