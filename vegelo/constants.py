from enum import Enum


class Category(str, Enum):
    VEGETABLES = "Vegetables"
    FRUITS = "Fruits"
    BUNDLES = "Bundles"
    SEASONAL = "Seasonal Deals"


class Unit(str, Enum):
    KG = "kg"
    PIECE = "piece"
    BUNDLE = "bundle"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PACKED = "Packed"
    DELIVERED = "Delivered"


class PaymentMethod(str, Enum):
    EASYPAISA = "Easypaisa"
    JAZZCASH = "JazzCash"


class Language(str, Enum):
    EN = "en"
    UR = "ur"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


# старые данные в таблице иногда приходят с "dozen"
UNIT_ALIASES = {
    "dozen": Unit.PIECE,
    "pc": Unit.PIECE,
    "pcs": Unit.PIECE,
}

QUANTITY_STEP = {
    Unit.KG: 0.25,
    Unit.PIECE: 1.0,
    Unit.BUNDLE: 1.0,
}

ORDER_ID_PREFIX = "TM-"

# ключи кэша: менять нельзя, иначе пользователи потеряют данные
CACHE_PRODUCTS = "vegelo_products"
CACHE_ORDERS = "vegelo_orders"
CACHE_FAVORITES = "vegelo_favorites"
CACHE_PROFILE = "vegelo_profile"
CACHE_LANGUAGE = "vegelo_lang"
CACHE_THEME = "vegelo_theme"

# remote write actions
REMOTE_ADD = "add"
REMOTE_EDIT = "edit"
REMOTE_DELETE = "delete"
REMOTE_ADD_ORDER = "addOrder"
REMOTE_UPDATE_ORDER_STATUS = "updateOrderStatus"
