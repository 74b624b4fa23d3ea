from vegelo.constants import Category, Unit
from vegelo.store.models import Product

INITIAL_PRODUCTS = (
    Product(
        id=1,
        name="Fresh Tomatoes",
        price=120.0,
        image="https://picsum.photos/id/1080/400/300",
        category=Category.VEGETABLES,
        unit=Unit.KG,
        description="Locally grown, vine-ripened red tomatoes. Perfect for salads, sauces, and sandwiches.",
    ),
    Product(
        id=2,
        name="Crisp Onions",
        price=80.0,
        image="https://picsum.photos/id/292/400/300",
        category=Category.VEGETABLES,
        unit=Unit.KG,
        description="High-quality red onions with a sharp flavor and crisp texture. Essential for desi cooking.",
    ),
    Product(
        id=3,
        name="Organic Potatoes",
        price=60.0,
        image="https://picsum.photos/id/1078/400/300",
        category=Category.VEGETABLES,
        unit=Unit.KG,
        description="Versatile organic potatoes. Great for baking, mashing, or frying.",
    ),
    Product(
        id=4,
        name="Sweet Apples",
        price=250.0,
        image="https://picsum.photos/id/102/400/300",
        category=Category.FRUITS,
        unit=Unit.KG,
        description="Crunchy and sweet seasonal apples picked from the orchards of the north.",
    ),
    Product(
        id=5,
        name="Ripe Bananas",
        price=150.0,
        image="https://picsum.photos/id/219/400/300",
        category=Category.FRUITS,
        unit=Unit.PIECE,
        description="Energy-rich ripe bananas, naturally sweet and perfect for smoothies or snacks.",
    ),
    Product(
        id=6,
        name="Juicy Oranges",
        price=180.0,
        image="https://picsum.photos/id/40/400/300",
        category=Category.FRUITS,
        unit=Unit.KG,
        description="Vitamin C packed juicy oranges. Sweet, tangy, and refreshing.",
    ),
    Product(
        id=7,
        name="Weekly Veggie Box",
        price=800.0,
        image="https://picsum.photos/id/312/400/300",
        category=Category.BUNDLES,
        unit=Unit.BUNDLE,
        description="A curated selection of seasonal vegetables enough for a small family for a week.",
    ),
    Product(
        id=8,
        name="Fruit Fiesta Basket",
        price=1200.0,
        image="https://picsum.photos/id/355/400/300",
        category=Category.BUNDLES,
        unit=Unit.BUNDLE,
        description="A premium assortment of the freshest seasonal fruits presented in a lovely basket.",
    ),
    Product(
        id=9,
        name="Summer Mangoes",
        price=300.0,
        image="https://picsum.photos/id/211/400/300",
        category=Category.SEASONAL,
        unit=Unit.KG,
        description="The king of fruits! Sweet, aromatic, and pulpy mangoes available for a limited time.",
    ),
    Product(
        id=10,
        name="Winter Greens",
        price=100.0,
        image="https://picsum.photos/id/1015/400/300",
        category=Category.SEASONAL,
        unit=Unit.KG,
        description="Fresh mustard greens (Sarson) and spinach, perfect for traditional winter dishes.",
    ),
)
