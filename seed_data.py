from shopcart.core.logging import setup_logging
from shopcart.db.session import create_db_and_tables, session_scope
from shopcart.services.catalog import CatalogService


def seed_products():
    print("Creating database and tables...")
    create_db_and_tables()

    with session_scope() as session:
        seeded = CatalogService(session).seed_products()

    if seeded:
        print(f"Successfully seeded {seeded} products!")
    else:
        print("Catalog already populated. Skipping seed.")


if __name__ == "__main__":
    setup_logging()
    seed_products()
