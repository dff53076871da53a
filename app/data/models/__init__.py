#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from app.data.models.user import UserModel
from app.data.models.cart import CartModel
from app.data.models.order import OrderModel, OrderItemModel

__all__ = ["UserModel", "CartModel", "OrderModel", "OrderItemModel"]
