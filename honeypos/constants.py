ORDER_COMPLETED = "completed"
ORDER_CANCELLED = "cancelled"

PAYMENT_CASH = "cash"
PAYMENT_CREDIT_CARD = "credit_card"
PAYMENT_LINE_PAY = "line_pay"

PAYMENT_DISPLAY_NAMES = {
    PAYMENT_CASH: "現金",
    PAYMENT_CREDIT_CARD: "信用卡",
    PAYMENT_LINE_PAY: "LINE Pay",
}

PAYMENT_ALIASES = {
    "cash": PAYMENT_CASH,
    "現金": PAYMENT_CASH,
    "credit_card": PAYMENT_CREDIT_CARD,
    "creditcard": PAYMENT_CREDIT_CARD,
    "信用卡": PAYMENT_CREDIT_CARD,
    "line_pay": PAYMENT_LINE_PAY,
    "linepay": PAYMENT_LINE_PAY,
    "line pay": PAYMENT_LINE_PAY,
}

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_AMOUNT = "amount"
DISCOUNT_GIFT = "gift"

DISCOUNT_TYPE_ALIASES = {
    "percentage": DISCOUNT_PERCENTAGE,
    "percent": DISCOUNT_PERCENTAGE,
    "amount": DISCOUNT_AMOUNT,
    "fixed": DISCOUNT_AMOUNT,
    "gift": DISCOUNT_GIFT,
    "free": DISCOUNT_GIFT,
}

SHIFT_OPEN = "open"
SHIFT_CLOSED = "closed"

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"

ROLE_ADMIN = "admin"
ROLE_POS_USER = "pos_user"

LINE_ADMIN_PENDING = "pending"
LINE_ADMIN_APPROVED = "approved"
LINE_ADMIN_REJECTED = "rejected"

STOCK_IN = "in"
STOCK_OUT = "out"
STOCK_ADJUST = "adjust"
STOCK_WASTE = "waste"
STOCK_CHANGE_TYPES = (STOCK_IN, STOCK_OUT, STOCK_ADJUST, STOCK_WASTE)

AUDIT_REGISTER = "register"
AUDIT_LOGIN = "login"
AUDIT_CHANGE_PASSWORD = "change_password"
AUDIT_CREATE_USER = "create_user"
AUDIT_UPDATE_USER = "update_user"
AUDIT_DISABLE_USER = "disable_user"
AUDIT_ENABLE_USER = "enable_user"
AUDIT_RESET_PASSWORD = "reset_password"

ORDER_NUMBER_PREFIX = "#"
ORDER_NUMBER_PADDING = 4

BUSINESS_HOUR_START = 9
BUSINESS_HOUR_END = 18

ADDON_CATEGORY = "加料"
OTHER_CATEGORY = "其他"

GENDER_TAGS = ("男", "女")
AGE_TAGS = ("成人", "學生")
UNTAGGED = "未標記"

GIFT_ITEM_LABEL = "贈送"

DEFAULT_INCENTIVE_TARGET = 125

TEMPLATE_DAILY_REPORT = "daily_report"
TEMPLATE_ORDER = "order"
TEMPLATE_PROMOTION = "promotion"
