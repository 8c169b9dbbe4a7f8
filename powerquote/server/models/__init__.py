from .profile import Profile
from .product import Product, PartNumberConfig, PartNumberCode
from .quote import Quote, BOMItem, QuoteEvent
from .app_setting import AppSetting
from .common import utcnow

__all_models = [Profile, Product, PartNumberConfig, PartNumberCode, Quote, BOMItem, QuoteEvent, AppSetting]
