from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "ShopCart API"
    DATABASE_URL: str = "sqlite:///./shopcart.db"
    SECRET_KEY: str = "supersecretkey_change_me_in_production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7 # 1 week

    # Guest carts live as long as the guest cookie
    GUEST_CART_TTL_DAYS: int = 7

    # Cookies
    TOKEN_COOKIE_NAME: str = "token"
    GUEST_COOKIE_NAME: str = "guestId"
    COOKIE_SECURE: bool = False
    COOKIE_SAMESITE: str = "strict"

    # Checkout
    CHECKOUT_MAX_ATTEMPTS: int = 3

    # Catalog seeding
    SEED_CATALOG: bool = True
    CATALOG_SEED_URL: str = "https://fakestoreapi.com/products?limit=10"
    CATALOG_USD_TO_INR: float = 83.0
    CATALOG_TIMEOUT_SECONDS: float = 5.0

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    @property
    def GUEST_COOKIE_MAX_AGE(self) -> int:
        return self.GUEST_CART_TTL_DAYS * 24 * 60 * 60

    @property
    def TOKEN_COOKIE_MAX_AGE(self) -> int:
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
