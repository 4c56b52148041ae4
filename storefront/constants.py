CART_STORAGE_KEY = "tmn-cart"

# категории позиций заказа PayPal
ITEM_CATEGORIES = {
    "DIGITAL_GOODS": "Digital",
    "PHYSICAL_GOODS": "Physical",
}
DEFAULT_ITEM_CATEGORY = "DIGITAL_GOODS"

PRODUCT_TYPES = ("PHYSICAL", "DIGITAL", "SERVICE")

PRODUCT_CATEGORIES = (
    "SOFTWARE",
    "DIGITAL_MEDIA_BOOKS_MOVIES_MUSIC",
    "BOOKS_PERIODICALS_AND_NEWSPAPERS",
    "ENTERTAINMENT",
    "MUSIC",
    "GAMES",
    "EDUCATION_AND_TEXTBOOKS",
    "ART_AND_CRAFTS",
    "COLLECTIBLES",
    "CLOTHING_SHOES_AND_ACCESSORIES",
    "ELECTRONICS_AND_COMPUTERS",
    "TOYS_AND_HOBBIES",
    "OTHER",
)

NO_INVENTORY_SUFFIX = "| no inventory"

PAYPAL_LIVE_URL = "https://api.paypal.com"
PAYPAL_SANDBOX_URL = "https://api-m.sandbox.paypal.com"

CATALOG_PAGE_SIZE = 20  # максимум у PayPal
CATALOG_MAX_PAGES = 100
