from storefront.models.category import Category
from storefront.models.product import OptionGroup, OptionValue, Product
from storefront.models.restaurant_settings import RestaurantSettings
from storefront.models.order import Order
