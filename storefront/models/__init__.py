# storefront/models/__init__.py
from storefront.models.user_models import User, RefreshToken
from storefront.models.activity_models import UserActivity
from storefront.models.product_models import Product, ProductVariant
from storefront.models.voucher_models import Voucher, VoucherUsage
from storefront.models.address_models import Address
from storefront.models.payment_models import PaymentMethod, PaymentMethodEnum
from storefront.models.order_models import Order, OrderItem, OrderStatus
