import json
import sys
import tempfile
import uuid

from shopcart.client import LocalCartRepository, ShopClient, ShopClientError

BASE_URL = "http://localhost:8000"
EMAIL = f"verify_{uuid.uuid4().hex[:8]}@example.com"
PASSWORD = "SecurePassword123!"


def print_result(name, payload):
    print(f"--- {name} ---")
    print(json.dumps(payload, indent=2, default=str))
    print("\n")


def run_verification(base_url=BASE_URL):
    storage = tempfile.mkdtemp(prefix="shopcart_verify_")
    shop = ShopClient(base_url=base_url, repository=LocalCartRepository(storage))

    # 1. Browse anonymously
    print("1. Listing products...")
    products = shop.list_products()
    if len(products) < 2:
        print("Catalog needs at least two products, run seed_data.py first.")
        return 1
    first, second = products[0], products[1]

    # 2. Local cart before any session
    print("2. Adding to local cart...")
    print_result("Local Cart", shop.add_to_cart(first["id"], 1, product=first))

    # 3. Guest session absorbs the local cart
    print("3. Continuing as guest...")
    print_result("Guest", shop.continue_as_guest())
    print_result("Guest Cart", shop.add_to_cart(second["id"], 2))

    # 4. Signing up moves the guest cart to the account
    print("4. Signing up...")
    print_result("Signup", shop.signup(EMAIL, PASSWORD, name="Verify User"))
    cart = shop.get_cart()
    print_result("Account Cart", cart)
    expected = {first["id"]: 1, second["id"]: 2}
    if {line["product_id"]: line["quantity"] for line in cart["lines"]} != expected:
        print("Guest cart was not merged into the account cart, aborting.")
        return 1

    # 5. Checkout
    print("5. Checking out...")
    print_result("Receipt", shop.checkout("Verify User", EMAIL))

    # 6. Empty cart is rejected
    print("6. Checking out again (expected failure)...")
    try:
        shop.checkout("Verify User", EMAIL)
    except ShopClientError as e:
        print_result("Second Checkout", {"status": e.status_code, "error": e.kind, "message": e.message})

    # 7. Logout
    print("7. Logging out...")
    shop.logout()
    try:
        shop.me()
    except ShopClientError as e:
        print_result("Me After Logout", {"status": e.status_code, "error": e.kind})
    return 0


if __name__ == "__main__":
    sys.exit(run_verification(sys.argv[1] if len(sys.argv) > 1 else BASE_URL))
