from app.models.user import User, RevokedToken
from app.models.product import Product
from app.models.order import Order, DeliveryAssignment, Payment, CommissionRule
from app.models.cart import CartItem, WishlistItem
from app.models.review import Review
from app.models.promo import (
    PromoCode,
    ReferralReward,
    PromoCodeClaim,
    Referral,
    ReferralInvite,
    UserReward,
)
from app.models.kyc import KYCDocument, KYCVerification
from app.models.notification import Notification, NotificationOutbox
